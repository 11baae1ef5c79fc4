"""Graph node store with freshness tracking and a JSON snapshot."""

from __future__ import annotations

import copy
import json
import logging
import os
import threading
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from dropbox_nodes.config import SourceConfig

logger = logging.getLogger(__name__)


class NodeStore:
    """Holds published node records keyed by node id.

    Every node created, updated or touched since ``begin_pass()`` counts as
    fresh; ``sweep_stale()`` removes the rest. All methods are safe to call
    from concurrent sync tasks.
    """

    def __init__(self, snapshot_path: str | None = None) -> None:
        """Initialise an empty store.

        Args:
            snapshot_path: JSON file used by load() and save(); None keeps the
                store in memory only.
        """
        self._snapshot_path = snapshot_path
        self._nodes: dict[str, dict[str, Any]] = {}
        self._fresh: set[str] = set()
        self._type_defs: list[str] = []
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Node operations
    # ------------------------------------------------------------------

    def create_or_update_node(self, record: dict[str, Any]) -> None:
        """Insert or replace a node record and mark it fresh.

        Args:
            record: Node record with at least ``id`` and ``internal.contentDigest``.

        Raises:
            ValueError: If the record has no id.
        """
        node_id = record.get("id")
        if not node_id:
            raise ValueError("Node record has no id")
        with self._lock:
            self._nodes[node_id] = copy.deepcopy(record)
            self._fresh.add(node_id)

    def mark_node_fresh(self, node_id: str, digest: str) -> bool:
        """Mark an existing node as current for this pass.

        Args:
            node_id: Id of the node to touch.
            digest: Digest to record on the touched node.

        Returns:
            True if the node exists, False otherwise.
        """
        with self._lock:
            node = self._nodes.get(node_id)
            if node is None:
                return False
            node.setdefault("internal", {})["ownerDigest"] = digest
            self._fresh.add(node_id)
        return True

    def get_node(self, node_id: str) -> dict[str, Any] | None:
        with self._lock:
            node = self._nodes.get(node_id)
            return copy.deepcopy(node) if node is not None else None

    def nodes(self) -> list[dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(node) for node in self._nodes.values()]

    def begin_pass(self) -> None:
        """Start a new pass; no node is fresh until created or touched."""
        with self._lock:
            self._fresh.clear()

    def sweep_stale(self) -> list[str]:
        """Delete every node that was neither created nor touched this pass.

        Returns:
            Ids of the deleted nodes.
        """
        with self._lock:
            stale = [node_id for node_id in self._nodes if node_id not in self._fresh]
            for node_id in stale:
                del self._nodes[node_id]
        if stale:
            logger.info("[sweep_stale] deleted stale nodes; count:%d", len(stale))
        return stale

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def create_types(self, type_defs: list[str]) -> None:
        with self._lock:
            self._type_defs.extend(type_defs)

    @property
    def type_defs(self) -> list[str]:
        with self._lock:
            return list(self._type_defs)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Replace the in-memory nodes with the snapshot, if one exists."""
        if self._snapshot_path is None or not os.path.exists(self._snapshot_path):
            return
        with open(self._snapshot_path, encoding="utf-8") as fh:
            data = json.load(fh)
        with self._lock:
            self._nodes = {node["id"]: node for node in data.get("nodes", [])}
            self._fresh.clear()
        logger.info("[load] loaded node snapshot; node_count:%d", len(self._nodes))

    def save(self) -> None:
        """Write all nodes to the snapshot file, creating parent directories."""
        if self._snapshot_path is None:
            return
        directory = os.path.dirname(self._snapshot_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with self._lock:
            data = {"nodes": list(self._nodes.values())}
            tmp_path = f"{self._snapshot_path}.tmp"
            with open(tmp_path, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2, sort_keys=True)
            os.replace(tmp_path, self._snapshot_path)
        logger.info("[save] saved node snapshot; node_count:%d", len(data["nodes"]))


def node_store_from_config(config: SourceConfig) -> NodeStore:
    """Construct a NodeStore from source configuration and load its snapshot.

    Args:
        config: Source configuration instance.

    Returns:
        NodeStore populated from the snapshot file, if present.
    """
    store = NodeStore(snapshot_path=config.node_store_path)
    store.load()
    return store
