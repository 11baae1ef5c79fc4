"""Data models for Dropbox listing entries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

# Dropbox API JSON field names
FIELD_TAG = ".tag"
FIELD_ID = "id"
FIELD_NAME = "name"
FIELD_PATH_DISPLAY = "path_display"
FIELD_CONTENT_HASH = "content_hash"
FIELD_CLIENT_MODIFIED = "client_modified"

# list_folder response keys
FIELD_ENTRIES = "entries"
FIELD_CURSOR = "cursor"
FIELD_HAS_MORE = "has_more"
FIELD_LINK = "link"

TAG_FILE = "file"
TAG_FOLDER = "folder"


@dataclass(frozen=True)
class RemoteEntry:
    """A single item (file or folder) from a Dropbox folder listing."""

    tag: str
    name: str
    path_display: str
    id: str
    content_hash: str | None = None
    client_modified: str | None = None

    @property
    def is_file(self) -> bool:
        return self.tag == TAG_FILE

    @property
    def is_folder(self) -> bool:
        return self.tag == TAG_FOLDER

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> RemoteEntry:
        """Map a raw Dropbox metadata dict to a RemoteEntry."""
        return cls(
            tag=raw.get(FIELD_TAG, ""),
            name=raw.get(FIELD_NAME, ""),
            path_display=raw.get(FIELD_PATH_DISPLAY, ""),
            id=raw.get(FIELD_ID, ""),
            content_hash=raw.get(FIELD_CONTENT_HASH),
            client_modified=raw.get(FIELD_CLIENT_MODIFIED),
        )
