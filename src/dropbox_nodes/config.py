"""Source configuration loaded from environment variables or plugin options."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

DEFAULT_EXTENSIONS: tuple[str, ...] = (".jpg", ".png", ".md")

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


def _parse_bool(raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean value: {raw!r}")


def _parse_extensions(raw: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class SourceConfig:
    """Immutable configuration for one sync pass.

    Required fields have no defaults and will cause a KeyError at startup
    if the corresponding environment variable is missing. Sync options mirror
    the plugin options of the Dropbox source: ``path``, ``recursive``,
    ``createFolderNodes`` and ``extensions``.
    """

    # Required — no defaults, fail at startup if missing
    access_token: str
    storage_connection_string: str

    # Sync options
    path: str = ""
    recursive: bool = True
    create_folder_nodes: bool = False
    extensions: tuple[str, ...] = field(default=DEFAULT_EXTENSIONS)

    # Storage locations
    cache_container: str = "dropbox-nodes-state"
    cache_blob_prefix: str = "file-cache/"
    download_dir: str = ".cache/dropbox-nodes"
    node_store_path: str = ".cache/dropbox-nodes/nodes.json"
    max_workers: int | None = None

    def __post_init__(self) -> None:
        # Lists are accepted for convenience but stored as a tuple.
        object.__setattr__(self, "extensions", tuple(self.extensions))
        for ext in self.extensions:
            if not ext.startswith("."):
                raise ValueError(f"Extension must start with a dot: {ext!r}")

    @classmethod
    def from_options(
        cls, options: Mapping[str, Any], storage_connection_string: str
    ) -> SourceConfig:
        """Build a config from camelCase plugin options merged over the defaults.

        Args:
            options: Plugin options; ``accessToken`` is required.
            storage_connection_string: Azure Storage connection string for the cache.

        Returns:
            Configured SourceConfig instance.
        """
        kwargs: dict[str, Any] = {
            "access_token": options["accessToken"],
            "storage_connection_string": storage_connection_string,
        }
        if "path" in options:
            kwargs["path"] = options["path"]
        if "recursive" in options:
            kwargs["recursive"] = bool(options["recursive"])
        if "createFolderNodes" in options:
            kwargs["create_folder_nodes"] = bool(options["createFolderNodes"])
        if "extensions" in options:
            kwargs["extensions"] = tuple(options["extensions"])
        return cls(**kwargs)


def load_config() -> SourceConfig:
    """Construct a SourceConfig from environment variables.

    Required environment variables:
        DBX_ACCESS_TOKEN: Dropbox API access token.
        AzureWebJobsStorage: Azure Storage account connection string (file cache).

    Optional environment variables (with defaults):
        DBX_PATH: Remote folder to sync (default: account root).
        DBX_RECURSIVE: List descendants recursively (default: true).
        DBX_CREATE_FOLDER_NODES: Create folder and root nodes (default: false).
        DBX_EXTENSIONS: Comma-separated extension allow-list (default: .jpg,.png,.md).
        DBX_CACHE_CONTAINER: Blob container for cache entries.
        DBX_CACHE_BLOB_PREFIX: Blob path prefix for cache entries.
        DBX_DOWNLOAD_DIR: Local directory for materialized files.
        DBX_NODE_STORE_PATH: JSON snapshot of the node store.
        DBX_MAX_WORKERS: Worker threads for content sync (default: executor default).

    Returns:
        Configured SourceConfig instance.
    """
    max_workers = os.environ.get("DBX_MAX_WORKERS")
    return SourceConfig(
        access_token=os.environ["DBX_ACCESS_TOKEN"],
        storage_connection_string=os.environ["AzureWebJobsStorage"],  # noqa: SIM112
        path=os.environ.get("DBX_PATH", ""),
        recursive=_parse_bool(os.environ.get("DBX_RECURSIVE", "true")),
        create_folder_nodes=_parse_bool(os.environ.get("DBX_CREATE_FOLDER_NODES", "false")),
        extensions=_parse_extensions(
            os.environ.get("DBX_EXTENSIONS", ",".join(DEFAULT_EXTENSIONS))
        ),
        cache_container=os.environ.get("DBX_CACHE_CONTAINER", "dropbox-nodes-state"),
        cache_blob_prefix=os.environ.get("DBX_CACHE_BLOB_PREFIX", "file-cache/"),
        download_dir=os.environ.get("DBX_DOWNLOAD_DIR", ".cache/dropbox-nodes"),
        node_store_path=os.environ.get("DBX_NODE_STORE_PATH", ".cache/dropbox-nodes/nodes.json"),
        max_workers=int(max_workers) if max_workers else None,
    )
