"""Schema type definitions linking folder nodes to their files."""

from __future__ import annotations

from dropbox_nodes.nodes.models import NodeKind

_FILE_FIELDS = """  dbxPath: String,
  path: String,
  directory: String,
  name: String,
  lastModified: String,"""


def _file_type_def(kind: NodeKind) -> str:
    return f"type {kind.type_name} implements Node {{\n{_FILE_FIELDS}\n}}"


def build_type_defs(create_folder_nodes: bool) -> list[str]:
    """Return SDL type definitions for the folder-to-file linkage.

    A folder's images and markdown files are those whose ``directory`` equals
    the folder's ``folderPath``. Nothing is contributed when folder nodes are
    disabled.

    Args:
        create_folder_nodes: Whether folder nodes are produced.

    Returns:
        List of SDL strings (empty when folder nodes are disabled).
    """
    if not create_folder_nodes:
        return []
    image = NodeKind.IMAGE_FILE.type_name
    markdown = NodeKind.MARKDOWN_FILE.type_name
    folder = (
        f"type {NodeKind.FOLDER.type_name} implements Node {{\n"
        f'  {image}: [{image}] @link(from: "folderPath", by: "directory")\n'
        f'  {markdown}: [{markdown}] @link(from: "folderPath", by: "directory")\n'
        "}"
    )
    return [
        _file_type_def(NodeKind.IMAGE_FILE),
        _file_type_def(NodeKind.MARKDOWN_FILE),
        folder,
    ]
