"""Tests for catalog reconciliation."""

import hashlib
import threading
import pytest
from pathlib import Path

from src.catalog.config import CatalogConfig
from src.catalog.events import RecordingEventSink
from src.catalog.exceptions import VersionNotFoundError
from src.catalog.models import CLIENT_FILES_UPDATED
from src.catalog.reconciler import CatalogReconciler
from src.catalog.store import CatalogStore


def _write(path: Path, data: bytes) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


class TestReconcile:
    """Tests for CatalogReconciler.reconcile."""

    @pytest.fixture
    def updates(self, tmp_path):
        root = tmp_path / "updates"
        root.mkdir()
        return root

    @pytest.fixture
    def store(self, tmp_path, updates):
        config = CatalogConfig(db_path=tmp_path / "catalog.db", updates_root=updates)
        store = CatalogStore(config)
        yield store
        store.close()

    @pytest.fixture
    def sink(self):
        return RecordingEventSink()

    @pytest.fixture
    def reconciler(self, store, sink):
        return CatalogReconciler(store, sink=sink)

    def test_initial_sync_adds_files(self, reconciler, store, updates, sink):
        _write(updates / "vanilla" / "client.jar", b"jar")
        _write(updates / "vanilla" / "libraries" / "a.jar", b"lib")

        result = reconciler.reconcile("vanilla", "1.20.1")

        assert result.added == 2
        assert result.updated == 0
        assert result.errors == 0
        version = store.get_version("1.20.1")
        assert version.title == "Minecraft 1.20.1"
        assert version.main_class == "net.minecraft.client.main.Main"
        assert len(store.find_files(version.id, "vanilla")) == 2
        assert sink.actions() == ["file_added", "file_added", "sync"]
        assert all(event == CLIENT_FILES_UPDATED for event, _ in sink.events)

    def test_second_sync_is_idempotent(self, reconciler, updates, sink):
        _write(updates / "vanilla" / "client.jar", b"jar")
        reconciler.reconcile("vanilla", "1.20.1")
        sink.events.clear()

        result = reconciler.reconcile("vanilla", "1.20.1")

        assert (result.added, result.updated, result.errors) == (0, 0, 0)
        assert sink.actions() == ["sync"]

    def test_modified_file_is_updated(self, reconciler, store, updates):
        jar = _write(updates / "vanilla" / "client.jar", b"jar")
        reconciler.reconcile("vanilla", "1.20.1")
        version = store.get_version("1.20.1")
        row = store.get_file(version.id, "vanilla", "client.jar")
        store.set_verification(row.id, True, False)

        jar.write_bytes(b"new-jar")
        result = reconciler.reconcile("vanilla", "1.20.1")

        assert result.updated == 1
        refreshed = store.get_file(version.id, "vanilla", "client.jar")
        assert refreshed.file_hash == hashlib.sha256(b"new-jar").hexdigest()
        assert refreshed.verified is False
        assert refreshed.integrity_check_failed is False

    def test_missing_file_row_is_kept(self, reconciler, store, updates):
        _write(updates / "vanilla" / "client.jar", b"jar")
        extra = _write(updates / "vanilla" / "mods" / "x.jar", b"mod")
        reconciler.reconcile("vanilla", "1.20.1")

        extra.unlink()
        result = reconciler.reconcile("vanilla", "1.20.1")

        assert result.added == 0
        version = store.get_version("1.20.1")
        paths = [f.file_path for f in store.find_files(version.id)]
        assert "mods/x.jar" in paths

    def test_client_jar_refreshes_version(self, reconciler, store, updates):
        _write(updates / "vanilla" / "client.jar", b"jar-v1")
        reconciler.reconcile("vanilla", "1.20.1")

        version = store.get_version("1.20.1")
        assert version.client_jar_hash == hashlib.sha256(b"jar-v1").hexdigest()
        assert version.client_jar_size == len(b"jar-v1")

    def test_missing_directory(self, reconciler, store, sink):
        result = reconciler.reconcile("absent", "1.20.1")
        assert (result.added, result.updated, result.errors) == (0, 0, 0)
        assert sink.events == []
        assert store.get_version("1.20.1") is None

    def test_empty_directory(self, reconciler, store, updates, sink):
        (updates / "empty").mkdir()
        result = reconciler.reconcile("empty", "1.20.1")
        assert result.added == 0
        assert sink.events == []
        assert store.get_version("1.20.1") is None

    def test_sync_event_stats(self, reconciler, updates, sink):
        _write(updates / "vanilla" / "client.jar", b"jar")
        reconciler.reconcile("vanilla", "1.20.1")

        _, payload = sink.events[-1]
        assert payload["action"] == "sync"
        assert payload["version"] == "1.20.1"
        assert payload["stats"] == {
            "added": 1,
            "updated": 0,
            "errors": 0,
            "totalFiles": 1,
            "verifiedFiles": 0,
            "failedFiles": 0,
        }

    def test_sync_event_carries_all_version_files(self, reconciler, updates, sink):
        _write(updates / "vanilla" / "client.jar", b"jar")
        _write(updates / "forge" / "client.jar", b"forge")
        _write(updates / "forge" / "mods" / "a.jar", b"mod")
        reconciler.reconcile("vanilla", "1.20.1")
        reconciler.reconcile("forge", "1.20.1")

        _, payload = sink.events[-1]
        assert payload["action"] == "sync"
        assert sorted(f["filePath"] for f in payload["files"]) == ["client.jar", "client.jar", "mods/a.jar"]

    def test_file_event_payload(self, reconciler, updates, sink):
        _write(updates / "vanilla" / "client.jar", b"jar")
        reconciler.reconcile("vanilla", "1.20.1")

        _, payload = sink.events[0]
        assert payload["action"] == "file_added"
        assert payload["files"][0]["filePath"] == "client.jar"
        assert payload["files"][0]["fileSize"] == "3"
        assert payload["files"][0]["fileType"] == "jar"

    def test_store_failure_counts_error(self, reconciler, store, updates, monkeypatch):
        _write(updates / "vanilla" / "a.txt", b"a")
        _write(updates / "vanilla" / "b.txt", b"b")
        original = store.upsert_file

        def failing_upsert(version_id, client_directory, scanned):
            if scanned.relative_path == "b.txt":
                raise RuntimeError("disk full")
            return original(version_id, client_directory, scanned)

        monkeypatch.setattr(store, "upsert_file", failing_upsert)

        result = reconciler.reconcile("vanilla", "1.20.1")
        assert result.added == 1
        assert result.errors == 1

    def test_sink_failure_does_not_abort(self, store, updates):
        def broken(event, payload):
            raise RuntimeError("sink down")

        from src.catalog.events import CallbackEventSink
        reconciler = CatalogReconciler(store, sink=CallbackEventSink(broken))
        _write(updates / "vanilla" / "client.jar", b"jar")

        result = reconciler.reconcile("vanilla", "1.20.1")
        assert result.added == 1

    def test_two_directories_share_version(self, reconciler, store, updates):
        _write(updates / "a" / "client.jar", b"a")
        _write(updates / "b" / "client.jar", b"b")

        threads = [
            threading.Thread(target=reconciler.reconcile, args=(d, "1.20.1"))
            for d in ("a", "b")
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(store.list_versions()) == 1
        version = store.get_version("1.20.1")
        assert len(store.find_files(version.id)) == 2


class TestSyncDirectory:
    """Tests for profile-aware directory sync."""

    @pytest.fixture
    def store(self, tmp_path):
        updates = tmp_path / "updates"
        updates.mkdir()
        config = CatalogConfig(db_path=tmp_path / "catalog.db", updates_root=updates)
        store = CatalogStore(config)
        yield store
        store.close()

    def test_directory_name_is_version(self, store):
        _write(store.config.updates_root / "1.12.2" / "client.jar", b"jar")
        CatalogReconciler(store).sync_directory("1.12.2")
        assert store.get_version("1.12.2") is not None

    def test_profile_supplies_version_and_defaults(self, store):
        store.add_profile(
            "My Forge", "1.20.1", "my_forge",
            main_class="cpw.mods.bootstraplauncher.BootstrapLauncher",
            jvm_version="17", loader="forge",
        )
        _write(store.config.updates_root / "my_forge" / "client.jar", b"jar")

        result = CatalogReconciler(store).sync_directory("my_forge")

        assert result.added == 1
        version = store.get_version("1.20.1")
        assert version.title == "My Forge"
        assert version.main_class == "cpw.mods.bootstraplauncher.BootstrapLauncher"
        assert version.jvm_version == "17"
        assert store.get_version("my_forge") is None


class TestDeletion:
    """Tests for explicit row deletion."""

    @pytest.fixture
    def store(self, tmp_path):
        updates = tmp_path / "updates"
        updates.mkdir()
        config = CatalogConfig(db_path=tmp_path / "catalog.db", updates_root=updates)
        store = CatalogStore(config)
        yield store
        store.close()

    @pytest.fixture
    def sink(self):
        return RecordingEventSink()

    @pytest.fixture
    def reconciler(self, store, sink):
        _write(store.config.updates_root / "vanilla" / "client.jar", b"jar")
        _write(store.config.updates_root / "vanilla" / "mods" / "x.jar", b"mod")
        reconciler = CatalogReconciler(store, sink=sink)
        reconciler.reconcile("vanilla", "1.20.1")
        sink.events.clear()
        return reconciler

    def test_delete_file(self, reconciler, store, sink):
        version = store.get_version("1.20.1")
        assert reconciler.delete_file(version.id, "vanilla", "mods/x.jar") is True
        assert store.get_file(version.id, "vanilla", "mods/x.jar") is None
        assert sink.actions() == ["file_deleted"]
        assert sink.events[0][1]["files"][0]["filePath"] == "mods/x.jar"

    def test_delete_already_gone(self, reconciler, store, sink):
        version = store.get_version("1.20.1")
        assert reconciler.delete_file(version.id, "vanilla", "never/there.jar") is True
        assert sink.events == []

    def test_delete_normalizes_path(self, reconciler, store):
        version = store.get_version("1.20.1")
        assert reconciler.delete_file(version.id, "vanilla", "mods\\x.jar") is True
        assert store.get_file(version.id, "vanilla", "mods/x.jar") is None

    def test_delete_store_failure(self, reconciler, store, monkeypatch):
        version = store.get_version("1.20.1")

        def failing_delete(file_id):
            raise RuntimeError("locked")

        monkeypatch.setattr(store, "delete_file", failing_delete)
        assert reconciler.delete_file(version.id, "vanilla", "mods/x.jar") is False

    def test_delete_path_resolves_profile_version(self, reconciler, store):
        version = store.get_version("1.20.1")

        # Without a profile the directory name is the version, which is not cataloged
        assert reconciler.delete_path("vanilla", "mods/x.jar") is True
        assert store.get_file(version.id, "vanilla", "mods/x.jar") is not None

        store.add_profile("P", "1.20.1", "vanilla")
        assert reconciler.delete_path("vanilla", "mods/x.jar") is True
        assert store.get_file(version.id, "vanilla", "mods/x.jar") is None

    def test_delete_path_unknown_version(self, reconciler):
        assert reconciler.delete_path("unknown_dir", "client.jar") is True


class TestSyncStats:
    """Tests for get_sync_stats."""

    def test_unknown_version(self, tmp_path):
        with CatalogStore(CatalogConfig(db_path=tmp_path / "c.db", updates_root=tmp_path)) as store:
            with pytest.raises(VersionNotFoundError):
                CatalogReconciler(store).get_sync_stats("9.9")

    def test_stats_after_sync(self, tmp_path):
        updates = tmp_path / "updates"
        _write(updates / "v" / "client.jar", b"jar")
        config = CatalogConfig(db_path=tmp_path / "c.db", updates_root=updates)
        with CatalogStore(config) as store:
            reconciler = CatalogReconciler(store)
            reconciler.reconcile("v", "1.20.1")
            stats = reconciler.get_sync_stats("1.20.1")
            assert stats.total_files == 1
            assert stats.verified_files == 0
