"""Build SyncNode objects from classified listing entries."""

from __future__ import annotations

import posixpath
from collections.abc import Sequence
from typing import TYPE_CHECKING

from dropbox_nodes.nodes.classifier import classify_files, classify_folders, file_extension
from dropbox_nodes.nodes.models import (
    ROOT_FOLDER_ID,
    ROOT_FOLDER_LOCAL_PATH,
    VIRTUAL_ROOT,
    NodeKind,
    SyncNode,
    content_digest,
)

if TYPE_CHECKING:
    from dropbox_nodes.config import SourceConfig
    from dropbox_nodes.remote.models import RemoteEntry

_KIND_BY_EXTENSION: dict[str, NodeKind] = {
    ".md": NodeKind.MARKDOWN_FILE,
    ".png": NodeKind.IMAGE_FILE,
    ".jpg": NodeKind.IMAGE_FILE,
    ".jpeg": NodeKind.IMAGE_FILE,
}


def _local_path(remote_path: str) -> str:
    return f"{VIRTUAL_ROOT}{remote_path}"


def file_kind(entry: RemoteEntry, create_folder_nodes: bool) -> NodeKind:
    """Pick the kind of a file node.

    Per-extension kinds are only used when folder nodes are enabled;
    otherwise every file is a default file node.
    """
    if not create_folder_nodes:
        return NodeKind.DEFAULT_FILE
    return _KIND_BY_EXTENSION.get(file_extension(entry.path_display), NodeKind.DEFAULT_FILE)


def build_file_node(entry: RemoteEntry, create_folder_nodes: bool = False) -> SyncNode:
    """Map a file entry to a SyncNode.

    Args:
        entry: File entry from the listing.
        create_folder_nodes: Whether per-extension kinds are enabled.

    Returns:
        SyncNode with a digest over path, directory, name, modification time and kind.
    """
    local_path = _local_path(entry.path_display)
    directory = posixpath.dirname(local_path)
    kind = file_kind(entry, create_folder_nodes)
    digest = content_digest(
        {
            "path": local_path,
            "directory": directory,
            "name": entry.name,
            "lastModified": entry.client_modified,
            "type": kind.type_name,
        }
    )
    return SyncNode(
        id=entry.id,
        remote_path=entry.path_display,
        local_path=local_path,
        directory=directory,
        name=entry.name,
        kind=kind,
        content_digest=digest,
        last_modified=entry.client_modified,
    )


def build_folder_node(entry: RemoteEntry) -> SyncNode:
    """Map a folder entry to a folder-kind SyncNode."""
    local_path = _local_path(entry.path_display)
    directory = posixpath.dirname(local_path)
    digest = content_digest(
        {
            "path": local_path,
            "directory": directory,
            "name": entry.name,
            "type": NodeKind.FOLDER.type_name,
        }
    )
    return SyncNode(
        id=entry.id,
        remote_path=entry.path_display,
        local_path=local_path,
        directory=directory,
        name=entry.name,
        kind=NodeKind.FOLDER,
        content_digest=digest,
        folder_path=local_path,
    )


def build_root_folder_node() -> SyncNode:
    """Synthesize the well-known virtual root folder node."""
    digest = content_digest(
        {
            "path": ROOT_FOLDER_LOCAL_PATH,
            "folderPath": VIRTUAL_ROOT,
            "name": VIRTUAL_ROOT,
            "type": NodeKind.ROOT_FOLDER.type_name,
        }
    )
    return SyncNode(
        id=ROOT_FOLDER_ID,
        remote_path="",
        local_path=ROOT_FOLDER_LOCAL_PATH,
        directory=None,
        name=VIRTUAL_ROOT,
        kind=NodeKind.ROOT_FOLDER,
        content_digest=digest,
        folder_path=VIRTUAL_ROOT,
    )


def build_nodes(entries: Sequence[RemoteEntry], config: SourceConfig) -> list[SyncNode]:
    """Classify a listing and build the full node set for one pass.

    File nodes come first, followed by folder nodes and the root folder node
    when folder nodes are enabled.

    Args:
        entries: Raw listing entries.
        config: Source configuration (extensions and folder-node switch).

    Returns:
        List of SyncNode objects in deterministic order.
    """
    files = classify_files(entries, config.extensions)
    nodes = [build_file_node(entry, config.create_folder_nodes) for entry in files]
    if config.create_folder_nodes:
        nodes.extend(build_folder_node(entry) for entry in classify_folders(entries))
        nodes.append(build_root_folder_node())
    return nodes
