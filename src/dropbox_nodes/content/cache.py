"""Per-node materialization cache backed by Azure Blob Storage."""

from __future__ import annotations

import contextlib
import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.storage.blob import BlobServiceClient

if TYPE_CHECKING:
    from dropbox_nodes.config import SourceConfig

logger = logging.getLogger(__name__)

# Named constants for cache configuration defaults
DEFAULT_CACHE_CONTAINER = "dropbox-nodes-state"
DEFAULT_CACHE_BLOB_PREFIX = "file-cache/"


class CacheError(Exception):
    """Raised when a cache entry cannot be read or written."""


@dataclass(frozen=True)
class CacheEntry:
    """Materialization state recorded for one node.

    Attributes:
        local_file_ref: Id of the materialized file node.
        content_digest: Node digest observed when the file was materialized.
    """

    local_file_ref: str
    content_digest: str

    def to_json(self) -> str:
        return json.dumps(
            {"localFileRef": self.local_file_ref, "contentDigest": self.content_digest}
        )

    @classmethod
    def from_json(cls, raw: str) -> CacheEntry:
        data = json.loads(raw)
        return cls(local_file_ref=data["localFileRef"], content_digest=data["contentDigest"])


class ContentCache:
    """Key-value store of CacheEntry objects backed by Azure Blob Storage.

    Entries are stored as JSON blobs named ``<prefix><key>``. Keys are derived
    from node identity, so concurrent tasks for different nodes never touch the
    same blob.
    """

    def __init__(
        self,
        storage_connection_string: str,
        container: str = DEFAULT_CACHE_CONTAINER,
        blob_prefix: str = DEFAULT_CACHE_BLOB_PREFIX,
    ) -> None:
        """Initialise the content cache.

        Args:
            storage_connection_string: Azure Storage connection string.
            container: Blob container name for cache storage.
            blob_prefix: Prefix for cache blob paths (e.g. "file-cache/").
        """
        self._blob_service = BlobServiceClient.from_connection_string(storage_connection_string)
        self._container = container
        self._blob_prefix = blob_prefix

    def get(self, key: str) -> CacheEntry | None:
        """Retrieve a cache entry.

        Args:
            key: Cache key derived from the node id.

        Returns:
            The stored CacheEntry, or None if not found.

        Raises:
            CacheError: If the blob cannot be read or decoded.
        """
        blob_path = f"{self._blob_prefix}{key}"
        try:
            container_client = self._blob_service.get_container_client(self._container)
            blob_client = container_client.get_blob_client(blob_path)
            data = blob_client.download_blob().readall()
        except ResourceNotFoundError:
            logger.info("[content_cache] cache miss; key:%s", key)
            return None
        except AzureError as exc:
            raise CacheError(f"Cannot read cache entry {key!r}") from exc
        try:
            entry = CacheEntry.from_json(data.decode("utf-8"))
        except (ValueError, KeyError, TypeError) as exc:
            raise CacheError(f"Corrupt cache entry {key!r}") from exc
        logger.info("[content_cache] cache hit; key:%s", key)
        return entry

    def set(self, key: str, entry: CacheEntry) -> None:
        """Store a cache entry, overwriting any previous one.

        Creates the container if it does not exist.

        Args:
            key: Cache key derived from the node id.
            entry: Entry to persist.

        Raises:
            CacheError: If the blob cannot be written.
        """
        blob_path = f"{self._blob_prefix}{key}"
        container_client = self._blob_service.get_container_client(self._container)
        with contextlib.suppress(Exception):
            container_client.create_container()

        blob_client = container_client.get_blob_client(blob_path)
        try:
            blob_client.upload_blob(entry.to_json().encode("utf-8"), overwrite=True)
        except AzureError as exc:
            raise CacheError(f"Cannot write cache entry {key!r}") from exc
        logger.info("[content_cache] stored; key:%s;file_ref:%s", key, entry.local_file_ref)


def content_cache_from_config(config: SourceConfig) -> ContentCache:
    """Construct a ContentCache from source configuration.

    Args:
        config: Source configuration instance.

    Returns:
        Configured ContentCache instance.
    """
    return ContentCache(
        storage_connection_string=config.storage_connection_string,
        container=config.cache_container,
        blob_prefix=config.cache_blob_prefix,
    )
