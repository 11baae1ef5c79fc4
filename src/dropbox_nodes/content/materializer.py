"""Download remote bytes to local files and register them as File nodes."""

from __future__ import annotations

import hashlib
import logging
import os
import uuid
from http.client import HTTPException
from typing import TYPE_CHECKING
from urllib import request as urllib_request
from urllib.error import URLError

if TYPE_CHECKING:
    from dropbox_nodes.config import SourceConfig
    from dropbox_nodes.store.node_store import NodeStore

logger = logging.getLogger(__name__)

FILE_NODE_TYPE = "File"

# Namespace for deterministic File node ids.
_FILE_NODE_NAMESPACE = uuid.UUID("6f1d3c2e-5b7a-4e0f-9d8c-1a2b3c4d5e6f")


class MaterializeError(Exception):
    """Raised when remote bytes cannot be downloaded or written locally."""


class FileMaterializer:
    """Materializes remote files into a local directory."""

    def __init__(self, download_dir: str, node_store: NodeStore) -> None:
        """Initialise the materializer.

        Args:
            download_dir: Root directory for downloaded files.
            node_store: Store that receives the created File nodes.
        """
        self._download_dir = download_dir
        self._node_store = node_store

    def _destination(self, url: str, name: str, extension: str, parent_node_id: str | None) -> str:
        seed = parent_node_id if parent_node_id is not None else url
        bucket = hashlib.sha256(seed.encode("utf-8")).hexdigest()[:16]
        return os.path.abspath(os.path.join(self._download_dir, bucket, f"{name}{extension}"))

    def _download(self, url: str) -> bytes:
        with urllib_request.urlopen(url) as resp:
            return resp.read()  # type: ignore[no-any-return]

    def materialize(
        self,
        url: str,
        name: str,
        extension: str,
        parent_node_id: str | None = None,
    ) -> str:
        """Download ``url`` and store it as ``<name><extension>``.

        Args:
            url: Temporary download URL.
            name: Base name of the local file (without extension).
            extension: Extension including the dot.
            parent_node_id: Node that owns the file; keeps its location stable.

        Returns:
            Id of the created File node.

        Raises:
            MaterializeError: If the download or the local write fails.
        """
        destination = self._destination(url, name, extension, parent_node_id)
        try:
            content = self._download(url)
            os.makedirs(os.path.dirname(destination), exist_ok=True)
            tmp_path = f"{destination}.tmp"
            with open(tmp_path, "wb") as fh:
                fh.write(content)
            os.replace(tmp_path, destination)
        except (URLError, HTTPException, OSError, ValueError) as exc:
            logger.warning("[materialize] failed to materialize file; name:%s%s", name, extension)
            raise MaterializeError(f"Cannot materialize {name}{extension}") from exc

        file_node_id = str(uuid.uuid5(_FILE_NODE_NAMESPACE, destination))
        self._node_store.create_or_update_node(
            {
                "id": file_node_id,
                "parent": parent_node_id,
                "children": [],
                "absolutePath": destination,
                "base": f"{name}{extension}",
                "name": name,
                "ext": extension,
                "size": len(content),
                "internal": {
                    "type": FILE_NODE_TYPE,
                    "contentDigest": hashlib.sha256(content).hexdigest(),
                },
            }
        )
        logger.info(
            "[materialize] stored file; path:%s;bytes:%d;file_node:%s",
            destination,
            len(content),
            file_node_id,
        )
        return file_node_id


def file_materializer_from_config(config: SourceConfig, node_store: NodeStore) -> FileMaterializer:
    """Construct a FileMaterializer from source configuration.

    Args:
        config: Source configuration instance.
        node_store: Store that receives the created File nodes.

    Returns:
        Configured FileMaterializer instance.
    """
    return FileMaterializer(download_dir=config.download_dir, node_store=node_store)
