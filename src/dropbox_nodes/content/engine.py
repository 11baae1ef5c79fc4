"""Content sync engine: reuse or re-materialize the file behind each node."""

from __future__ import annotations

import dataclasses
import enum
import logging
import posixpath
from dataclasses import dataclass
from typing import TYPE_CHECKING

from dropbox_nodes.content.cache import CacheEntry, CacheError
from dropbox_nodes.content.materializer import MaterializeError
from dropbox_nodes.remote.client import RemoteLinkError

if TYPE_CHECKING:
    from dropbox_nodes.content.cache import ContentCache
    from dropbox_nodes.content.materializer import FileMaterializer
    from dropbox_nodes.nodes.models import SyncNode
    from dropbox_nodes.remote.client import DropboxClient
    from dropbox_nodes.store.node_store import NodeStore

logger = logging.getLogger(__name__)


class SyncState(enum.Enum):
    """States a file node passes through during content sync."""

    UNRESOLVED = "unresolved"
    CACHE_HIT_FRESH = "cache_hit_fresh"
    CACHE_HIT_STALE = "cache_hit_stale"
    CACHE_MISS = "cache_miss"
    DOWNLOADING = "downloading"
    RESOLVED = "resolved"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class NodeSyncResult:
    """Outcome of syncing one node.

    Attributes:
        node: The node to publish, with ``local_file_ref`` attached when resolved.
        state: Final state (CACHE_HIT_FRESH, RESOLVED, FAILED or SKIPPED).
        error: The failure cause when state is FAILED.
    """

    node: SyncNode
    state: SyncState
    error: Exception | None = None

    @property
    def node_id(self) -> str:
        return self.node.id

    @property
    def local_file_ref(self) -> str | None:
        return self.node.local_file_ref


class ContentSyncEngine:
    """Decides per file node whether cached content is still valid.

    A cache entry is reused only when its stored digest equals the node's
    current digest and the file node it references still exists; otherwise
    the file is downloaded again and the entry overwritten.
    """

    def __init__(
        self,
        remote: DropboxClient,
        cache: ContentCache,
        materializer: FileMaterializer,
        node_store: NodeStore,
    ) -> None:
        self._remote = remote
        self._cache = cache
        self._materializer = materializer
        self._node_store = node_store

    def _lookup(self, node: SyncNode) -> tuple[SyncState, CacheEntry | None]:
        try:
            entry = self._cache.get(node.cache_key)
        except CacheError:
            logger.warning(
                "[sync_node] cache read failed, treating as miss; node:%s", node.id, exc_info=True
            )
            return SyncState.CACHE_MISS, None
        if entry is None:
            return SyncState.CACHE_MISS, None
        if entry.content_digest != node.content_digest:
            return SyncState.CACHE_HIT_STALE, entry
        if not self._node_store.mark_node_fresh(entry.local_file_ref, node.content_digest):
            logger.info(
                "[sync_node] cached file node missing; node:%s;file_ref:%s",
                node.id,
                entry.local_file_ref,
            )
            return SyncState.CACHE_HIT_STALE, entry
        return SyncState.CACHE_HIT_FRESH, entry

    def _download(self, node: SyncNode) -> str:
        url = self._remote.get_temporary_download_url(node.remote_path)
        base_name, extension = posixpath.splitext(node.name)
        return self._materializer.materialize(url, base_name, extension, parent_node_id=node.id)

    def sync_node(self, node: SyncNode) -> NodeSyncResult:
        """Resolve the local file behind one node.

        Folder and root nodes are returned unchanged with state SKIPPED.
        Failures are reported in the result, never raised.

        Args:
            node: Node to sync.

        Returns:
            NodeSyncResult carrying the node to publish.
        """
        if not node.kind.is_file:
            return NodeSyncResult(node=node, state=SyncState.SKIPPED)

        state, entry = self._lookup(node)
        logger.debug(
            "[sync_node] transition; node:%s;from:%s;to:%s",
            node.id,
            SyncState.UNRESOLVED.value,
            state.value,
        )
        if state is SyncState.CACHE_HIT_FRESH and entry is not None:
            logger.info("[sync_node] reusing cached file; node:%s", node.id)
            return NodeSyncResult(
                node=dataclasses.replace(node, local_file_ref=entry.local_file_ref),
                state=state,
            )

        logger.info(
            "[sync_node] transition; node:%s;from:%s;to:%s",
            node.id,
            state.value,
            SyncState.DOWNLOADING.value,
        )
        try:
            file_ref = self._download(node)
        except (RemoteLinkError, MaterializeError) as exc:
            logger.warning("[sync_node] content sync failed; node:%s;error:%s", node.id, exc)
            return NodeSyncResult(node=node, state=SyncState.FAILED, error=exc)

        try:
            self._cache.set(
                node.cache_key,
                CacheEntry(local_file_ref=file_ref, content_digest=node.content_digest),
            )
        except CacheError:
            logger.warning("[sync_node] cache write failed; node:%s", node.id, exc_info=True)
        return NodeSyncResult(
            node=dataclasses.replace(node, local_file_ref=file_ref),
            state=SyncState.RESOLVED,
        )
