"""Unit tests for orchestration/sync.py — SyncOrchestrator behaviour."""

from http.client import IncompleteRead
from pathlib import Path
from unittest.mock import MagicMock, patch

from dropbox_nodes.config import SourceConfig
from dropbox_nodes.content.cache import CacheEntry
from dropbox_nodes.content.engine import ContentSyncEngine, SyncState
from dropbox_nodes.content.materializer import FileMaterializer
from dropbox_nodes.nodes.models import NodeKind
from dropbox_nodes.orchestration.sync import (
    SyncOrchestrator,
    run_sync_pass,
    sync_orchestrator_from_config,
)
from dropbox_nodes.remote.client import (
    DropboxClient,
    RemoteLinkError,
    RemoteListError,
    RemoteLookupError,
)
from dropbox_nodes.remote.models import RemoteEntry
from dropbox_nodes.store.node_store import NodeStore

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _DictCache:
    """In-memory stand-in for ContentCache."""

    def __init__(self) -> None:
        self.entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> CacheEntry | None:
        return self.entries.get(key)

    def set(self, key: str, entry: CacheEntry) -> None:
        self.entries[key] = entry


def _config(**overrides: object) -> SourceConfig:
    kwargs: dict[str, object] = {
        "access_token": "tok",
        "storage_connection_string": "conn",
        "extensions": (".md",),
        "create_folder_nodes": True,
    }
    kwargs.update(overrides)
    return SourceConfig(**kwargs)  # type: ignore[arg-type]


def _listing() -> list[RemoteEntry]:
    return [
        RemoteEntry(
            tag="file", name="a.md", path_display="/a.md", id="f1", client_modified="t1"
        ),
        RemoteEntry(tag="folder", name="sub", path_display="/sub", id="d1"),
    ]


def _make_orchestrator(
    config: SourceConfig | None = None,
    store: NodeStore | None = None,
) -> tuple[SyncOrchestrator, MagicMock, MagicMock, NodeStore, _DictCache]:
    """Return (orchestrator, mock_remote, mock_materializer, store, cache)."""
    config = config or _config()
    mock_remote = MagicMock()
    mock_remote.resolve_folder_id.return_value = ""
    mock_remote.list_entries.return_value = _listing()
    mock_remote.get_temporary_download_url.return_value = "https://dl/tmp"
    store = store if store is not None else NodeStore()
    cache = _DictCache()
    mock_materializer = MagicMock()
    counter = iter(range(1, 100))

    def _materialize(url: str, name: str, ext: str, parent_node_id: str | None = None) -> str:
        file_ref = f"file-{next(counter)}"
        store.create_or_update_node({"id": file_ref, "internal": {"type": "File"}})
        return file_ref

    mock_materializer.materialize.side_effect = _materialize
    engine = ContentSyncEngine(
        remote=mock_remote,
        cache=cache,  # type: ignore[arg-type]
        materializer=mock_materializer,
        node_store=store,
    )
    orchestrator = SyncOrchestrator(
        config=config, remote=mock_remote, engine=engine, node_store=store
    )
    return orchestrator, mock_remote, mock_materializer, store, cache


# ---------------------------------------------------------------------------
# run_sync_pass tests
# ---------------------------------------------------------------------------


class TestRunSyncPass:
    def test_publishes_file_folder_and_root_nodes(self) -> None:
        orchestrator, _, _, store, _ = _make_orchestrator()

        report = orchestrator.run_sync_pass()

        by_id = {node.id: node for node in report.nodes}
        assert by_id["f1"].kind is NodeKind.MARKDOWN_FILE
        assert by_id["f1"].local_path == "root/a.md"
        assert by_id["f1"].directory == "root"
        assert by_id["f1"].local_file_ref == "file-1"
        assert by_id["d1"].kind is NodeKind.FOLDER
        assert by_id["d1"].local_path == "root/sub"
        assert by_id["dropboxRoot"].local_path == "root/"
        published = store.get_node("f1")
        assert published is not None
        assert published["localFile___NODE"] == "file-1"
        assert published["internal"]["type"] == "dropboxMarkdown"

    def test_second_identical_pass_downloads_nothing(self) -> None:
        orchestrator, _, mock_materializer, _, _ = _make_orchestrator()

        first = orchestrator.run_sync_pass()
        second = orchestrator.run_sync_pass()

        assert [n.content_digest for n in first.nodes] == [n.content_digest for n in second.nodes]
        assert mock_materializer.materialize.call_count == 1
        assert second.count(SyncState.CACHE_HIT_FRESH) == 1
        assert second.nodes[0].local_file_ref == first.nodes[0].local_file_ref

    def test_modified_file_is_downloaded_again(self) -> None:
        orchestrator, mock_remote, mock_materializer, _, cache = _make_orchestrator()
        orchestrator.run_sync_pass()
        mock_remote.list_entries.return_value = [
            RemoteEntry(
                tag="file", name="a.md", path_display="/a.md", id="f1", client_modified="t2"
            )
        ]

        report = orchestrator.run_sync_pass()

        assert mock_materializer.materialize.call_count == 2
        assert report.count(SyncState.RESOLVED) == 1
        assert cache.entries["dropbox-file-f1"].local_file_ref == "file-2"

    def test_resolves_configured_path_and_recursion(self) -> None:
        config = _config(path="/blog", recursive=False)
        orchestrator, mock_remote, _, _, _ = _make_orchestrator(config)
        mock_remote.resolve_folder_id.return_value = "id:blog"

        orchestrator.run_sync_pass()

        mock_remote.resolve_folder_id.assert_called_once_with("/blog")
        mock_remote.list_entries.assert_called_once_with("id:blog", False)

    def test_without_folder_nodes_only_file_nodes_are_published(self) -> None:
        orchestrator, _, _, store, _ = _make_orchestrator(_config(create_folder_nodes=False))

        report = orchestrator.run_sync_pass()

        assert [n.kind for n in report.nodes] == [NodeKind.DEFAULT_FILE]
        assert store.get_node("dropboxRoot") is None

    def test_listing_failure_yields_empty_pass(self) -> None:
        orchestrator, mock_remote, _, store, _ = _make_orchestrator()
        orchestrator.run_sync_pass()
        mock_remote.list_entries.side_effect = RemoteListError("", "network down")

        report = orchestrator.run_sync_pass()

        assert report.listing_failed is True
        assert report.nodes == []
        # Previously published nodes are not swept by a failed pass.
        assert store.get_node("f1") is not None

    def test_lookup_failure_yields_empty_pass(self) -> None:
        orchestrator, mock_remote, _, _, _ = _make_orchestrator(_config(path="/missing"))
        mock_remote.resolve_folder_id.side_effect = RemoteLookupError("/missing")

        report = orchestrator.run_sync_pass()

        assert report.listing_failed is True
        mock_remote.list_entries.assert_not_called()

    def test_per_node_failure_still_publishes_node(self) -> None:
        orchestrator, mock_remote, _, store, _ = _make_orchestrator()
        mock_remote.get_temporary_download_url.side_effect = RemoteLinkError("/a.md")

        report = orchestrator.run_sync_pass()

        assert [f.node_id for f in report.failures] == ["f1"]
        published = store.get_node("f1")
        assert published is not None
        assert "localFile___NODE" not in published

    def test_removed_remote_file_is_swept(self) -> None:
        orchestrator, mock_remote, _, store, _ = _make_orchestrator()
        orchestrator.run_sync_pass()
        mock_remote.list_entries.return_value = []

        orchestrator.run_sync_pass()

        assert store.get_node("f1") is None
        assert store.get_node("file-1") is None
        assert store.get_node("dropboxRoot") is not None


# ---------------------------------------------------------------------------
# customize_schema tests
# ---------------------------------------------------------------------------


class TestCustomizeSchema:
    def test_registers_type_defs_when_folder_nodes_enabled(self) -> None:
        orchestrator, _, _, store, _ = _make_orchestrator()

        type_defs = orchestrator.customize_schema()

        assert len(type_defs) == 3
        assert store.type_defs == type_defs

    def test_no_type_defs_when_folder_nodes_disabled(self) -> None:
        orchestrator, _, _, store, _ = _make_orchestrator(_config(create_folder_nodes=False))

        assert orchestrator.customize_schema() == []
        assert store.type_defs == []


# ---------------------------------------------------------------------------
# Factory tests
# ---------------------------------------------------------------------------


class TestSyncOrchestratorFromConfig:
    def test_wires_components_from_config(self, tmp_path: object) -> None:
        config = _config(node_store_path=f"{tmp_path}/nodes.json", download_dir=str(tmp_path))

        with patch("dropbox_nodes.content.cache.BlobServiceClient") as mock_bsc_cls:
            orchestrator = sync_orchestrator_from_config(config)

        mock_bsc_cls.from_connection_string.assert_called_once_with("conn")
        assert orchestrator._remote._access_token == "tok"
        assert orchestrator._engine._node_store is orchestrator._store

    def test_run_sync_pass_helper_runs_orchestrator(self) -> None:
        mock_orchestrator = MagicMock()
        config = _config()

        with patch(
            "dropbox_nodes.orchestration.sync.sync_orchestrator_from_config",
            return_value=mock_orchestrator,
        ) as mock_factory:
            run_sync_pass(config)

        mock_factory.assert_called_once_with(config)
        mock_orchestrator.customize_schema.assert_called_once()
        mock_orchestrator.run_sync_pass.assert_called_once()


# ---------------------------------------------------------------------------
# Soft-failure tests
# ---------------------------------------------------------------------------


def _raw_response(body: bytes = b"") -> MagicMock:
    response = MagicMock()
    response.read.return_value = body
    response.__enter__ = lambda s: s
    response.__exit__ = MagicMock(return_value=False)
    return response


class TestSoftFailures:
    def test_truncated_downloads_are_isolated_per_node(self, tmp_path: Path) -> None:
        config = _config()
        mock_remote = MagicMock()
        mock_remote.resolve_folder_id.return_value = ""
        mock_remote.list_entries.return_value = [
            RemoteEntry(tag="file", name="a.md", path_display="/a.md", id="f1"),
            RemoteEntry(tag="file", name="b.md", path_display="/b.md", id="f2"),
        ]
        mock_remote.get_temporary_download_url.return_value = "https://dl/tmp"
        store = NodeStore()
        engine = ContentSyncEngine(
            remote=mock_remote,
            cache=_DictCache(),  # type: ignore[arg-type]
            materializer=FileMaterializer(download_dir=str(tmp_path), node_store=store),
            node_store=store,
        )
        orchestrator = SyncOrchestrator(
            config=config, remote=mock_remote, engine=engine, node_store=store
        )
        response = _raw_response()
        response.read.side_effect = IncompleteRead(b"par", 10)

        with patch(
            "dropbox_nodes.content.materializer.urllib_request.urlopen", return_value=response
        ):
            report = orchestrator.run_sync_pass()

        assert sorted(f.node_id for f in report.failures) == ["f1", "f2"]
        assert store.get_node("f1") is not None
        assert store.get_node("f2") is not None

    def test_non_json_listing_yields_empty_pass(self) -> None:
        config = _config()
        remote = DropboxClient(access_token="tok")
        store = NodeStore()
        engine = ContentSyncEngine(
            remote=remote,
            cache=_DictCache(),  # type: ignore[arg-type]
            materializer=MagicMock(),
            node_store=store,
        )
        orchestrator = SyncOrchestrator(
            config=config, remote=remote, engine=engine, node_store=store
        )

        with patch(
            "dropbox_nodes.remote.client.urllib_request.urlopen",
            return_value=_raw_response(b"<html>gateway</html>"),
        ):
            report = orchestrator.run_sync_pass()

        assert report.listing_failed is True
        assert report.nodes == []
        assert store.nodes() == []

    def test_snapshot_write_failure_still_returns_report(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        store = NodeStore(snapshot_path=str(blocker / "nodes.json"))
        orchestrator, _, _, _, _ = _make_orchestrator(store=store)

        report = orchestrator.run_sync_pass()

        assert report.listing_failed is False
        assert {n.id for n in report.nodes} == {"f1", "d1", "dropboxRoot"}
        assert store.get_node("f1") is not None
