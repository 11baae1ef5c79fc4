"""Canonical node shapes published to the graph store."""

from __future__ import annotations

import enum
import hashlib
import json
from dataclasses import dataclass
from typing import Any

# Marks a node as sourced from outside the graph (no parent node).
SOURCE_PARENT_MARKER = "__SOURCE__"

# Every local path is namespaced under this virtual root folder.
VIRTUAL_ROOT = "root"

ROOT_FOLDER_ID = "dropboxRoot"
ROOT_FOLDER_LOCAL_PATH = f"{VIRTUAL_ROOT}/"


class NodeKind(enum.Enum):
    """Closed set of node kinds produced by the synthesizer."""

    DEFAULT_FILE = "dropboxNode"
    MARKDOWN_FILE = "dropboxMarkdown"
    IMAGE_FILE = "dropboxImage"
    FOLDER = "dropboxFolder"
    ROOT_FOLDER = "dropboxRootFolder"

    @property
    def is_file(self) -> bool:
        return self in (NodeKind.DEFAULT_FILE, NodeKind.MARKDOWN_FILE, NodeKind.IMAGE_FILE)

    @property
    def type_name(self) -> str:
        """Graph type name the node is published under.

        The root folder publishes as a regular folder so that folder-to-file
        links resolve against it.
        """
        if self is NodeKind.ROOT_FOLDER:
            return NodeKind.FOLDER.value
        return self.value


def content_digest(fields: dict[str, Any]) -> str:
    """Compute a deterministic SHA-256 fingerprint over semantic node fields.

    The fields are encoded as canonical JSON (sorted keys, compact separators)
    so the digest does not depend on the order fields were collected in.

    Args:
        fields: Mapping of JSON-serialisable semantic field values.

    Returns:
        Lowercase hex string of the SHA-256 hash.
    """
    encoded = json.dumps(fields, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class SyncNode:
    """A remote file or folder in canonical graph-node form.

    Attributes:
        id: Stable node id (the Dropbox entry id, or ROOT_FOLDER_ID).
        remote_path: Dropbox ``path_display`` ("" for the root node).
        local_path: ``remote_path`` namespaced under the virtual root.
        directory: Parent directory of ``local_path``; None for the root node.
        name: Entry name.
        kind: Node kind; drives both content sync and the published type.
        content_digest: Fingerprint of the semantic fields, excluding ``id``.
        last_modified: Client modification timestamp (files only).
        folder_path: Path files link against via their ``directory`` (folders only).
        local_file_ref: Id of the materialized file node, once resolved.
        parent_marker: Sentinel indicating an externally sourced node.
    """

    id: str
    remote_path: str
    local_path: str
    directory: str | None
    name: str
    kind: NodeKind
    content_digest: str
    last_modified: str | None = None
    folder_path: str | None = None
    local_file_ref: str | None = None
    parent_marker: str = SOURCE_PARENT_MARKER

    @property
    def cache_key(self) -> str:
        """Cache key derived from node identity, never from its path."""
        return f"dropbox-file-{self.id}"

    def to_record(self) -> dict[str, Any]:
        """Render the node as the record handed to the graph store."""
        record: dict[str, Any] = {
            "id": self.id,
            "parent": self.parent_marker,
            "children": [],
            "dbxPath": self.remote_path,
            "path": self.local_path,
            "name": self.name,
        }
        if self.directory is not None:
            record["directory"] = self.directory
        if self.last_modified is not None:
            record["lastModified"] = self.last_modified
        if self.folder_path is not None:
            record["folderPath"] = self.folder_path
        if self.local_file_ref is not None:
            record["localFile___NODE"] = self.local_file_ref
        record["internal"] = {
            "type": self.kind.type_name,
            "contentDigest": self.content_digest,
        }
        return record
