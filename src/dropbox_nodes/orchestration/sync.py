"""Sync orchestrator — drives one listing-to-published-nodes pass."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from dropbox_nodes.content.cache import content_cache_from_config
from dropbox_nodes.content.engine import ContentSyncEngine, NodeSyncResult, SyncState
from dropbox_nodes.content.materializer import file_materializer_from_config
from dropbox_nodes.nodes.synthesizer import build_nodes
from dropbox_nodes.remote.client import (
    DropboxClient,
    RemoteListError,
    RemoteLookupError,
    dropbox_client_from_config,
)
from dropbox_nodes.store.node_store import NodeStore, node_store_from_config
from dropbox_nodes.store.schema import build_type_defs

if TYPE_CHECKING:
    from dropbox_nodes.config import SourceConfig
    from dropbox_nodes.nodes.models import SyncNode

logger = logging.getLogger(__name__)


@dataclass
class SyncReport:
    """Result of one sync pass.

    Attributes:
        nodes: Every node published in this pass.
        results: One content-sync result per file node.
        listing_failed: True when the pass degraded to an empty result.
    """

    nodes: list[SyncNode] = field(default_factory=list)
    results: list[NodeSyncResult] = field(default_factory=list)
    listing_failed: bool = False

    @property
    def failures(self) -> list[NodeSyncResult]:
        return [r for r in self.results if r.state is SyncState.FAILED]

    def count(self, state: SyncState) -> int:
        return sum(1 for r in self.results if r.state is state)


class SyncOrchestrator:
    """Runs listing, node synthesis, content sync and publication."""

    def __init__(
        self,
        config: SourceConfig,
        remote: DropboxClient,
        engine: ContentSyncEngine,
        node_store: NodeStore,
    ) -> None:
        """Initialise the orchestrator.

        Args:
            config: Source configuration for every pass run by this instance.
            remote: Dropbox client used for root resolution and listing.
            engine: Content sync engine for file nodes.
            node_store: Store that receives the published nodes.
        """
        self._config = config
        self._remote = remote
        self._engine = engine
        self._store = node_store

    def customize_schema(self) -> list[str]:
        """Register the folder linkage type definitions with the store."""
        type_defs = build_type_defs(self._config.create_folder_nodes)
        if type_defs:
            self._store.create_types(type_defs)
        return type_defs

    def _sync_all(self, nodes: list[SyncNode]) -> list[NodeSyncResult]:
        file_nodes = [node for node in nodes if node.kind.is_file]
        if not file_nodes:
            return []
        with ThreadPoolExecutor(max_workers=self._config.max_workers) as executor:
            return list(executor.map(self._engine.sync_node, file_nodes))

    def run_sync_pass(self) -> SyncReport:
        """Run the full listing-to-published-nodes pipeline.

        Steps:
            1. Resolve the sync root folder id from ``config.path``.
            2. List entries (optionally recursive).
            3. Classify and synthesize nodes.
            4. Sync content for every file node concurrently and join.
            5. Publish every node, then drop nodes not seen this pass.

        A failed lookup or listing is logged and yields an empty report; the
        store is left untouched in that case.

        Returns:
            SyncReport describing the pass.
        """
        config = self._config
        logger.info(
            "[run_sync_pass] starting sync pass; path:%s;recursive:%s",
            config.path,
            config.recursive,
        )
        try:
            folder_id = self._remote.resolve_folder_id(config.path)
            entries = self._remote.list_entries(folder_id, config.recursive)
        except (RemoteLookupError, RemoteListError) as exc:
            logger.warning("[run_sync_pass] listing failed, publishing nothing; error:%s", exc)
            return SyncReport(listing_failed=True)

        nodes = build_nodes(entries, config)
        logger.info("[run_sync_pass] built nodes; node_count:%d", len(nodes))

        self._store.begin_pass()
        results = self._sync_all(nodes)
        synced = {result.node_id: result.node for result in results}
        published = [synced.get(node.id, node) for node in nodes]
        for node in published:
            self._store.create_or_update_node(node.to_record())
        self._store.sweep_stale()
        try:
            self._store.save()
        except OSError:
            logger.warning("[run_sync_pass] failed to save node snapshot", exc_info=True)

        report = SyncReport(nodes=published, results=results)
        for failure in report.failures:
            logger.warning(
                "[run_sync_pass] node published without content; node:%s;error:%s",
                failure.node_id,
                failure.error,
            )
        logger.info(
            "[run_sync_pass] pass complete; nodes:%d;fresh:%d;downloaded:%d;failed:%d",
            len(published),
            report.count(SyncState.CACHE_HIT_FRESH),
            report.count(SyncState.RESOLVED),
            len(report.failures),
        )
        return report


def sync_orchestrator_from_config(config: SourceConfig) -> SyncOrchestrator:
    """Construct a SyncOrchestrator from source configuration.

    Creates the Dropbox client, node store, cache and materializer from the
    config, then wires them into a ContentSyncEngine and SyncOrchestrator.

    Args:
        config: Source configuration instance.

    Returns:
        Configured SyncOrchestrator instance.
    """
    remote = dropbox_client_from_config(config)
    store = node_store_from_config(config)
    engine = ContentSyncEngine(
        remote=remote,
        cache=content_cache_from_config(config),
        materializer=file_materializer_from_config(config, store),
        node_store=store,
    )
    return SyncOrchestrator(config=config, remote=remote, engine=engine, node_store=store)


def run_sync_pass(config: SourceConfig) -> SyncReport:
    """Run one sync pass with collaborators built from ``config``."""
    orchestrator = sync_orchestrator_from_config(config)
    orchestrator.customize_schema()
    return orchestrator.run_sync_pass()
