"""Tests for the change watcher."""

import threading
import time
import pytest
from pathlib import Path

from src.catalog.config import CatalogConfig
from src.catalog.reconciler import CatalogReconciler
from src.catalog.store import CatalogStore
from src.watcher.change_watcher import ChangeWatcher
from src.watcher.config import WatcherConfig
from src.watcher.exceptions import (
    WatchRootNotFoundError,
    WatcherAlreadyRunningError,
    WatcherNotRunningError,
)
from src.watcher.models import ChangeKind, FileChange


class FakeReconciler:
    """Records reconciler calls made by the watcher."""

    def __init__(self):
        self.lock = threading.Lock()
        self.synced = []
        self.deleted = []

    def sync_directory(self, key):
        with self.lock:
            self.synced.append(key)

    def delete_path(self, key, file_path):
        with self.lock:
            self.deleted.append((key, file_path))
        return True

    def synced_keys(self):
        with self.lock:
            return list(self.synced)


def _write(path: Path, data: bytes = b"x") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


class TestChangeRouting:
    """Tests for event routing with the handlers called directly."""

    @pytest.fixture
    def reconciler(self):
        return FakeReconciler()

    @pytest.fixture
    def watcher(self, tmp_path, reconciler):
        config = WatcherConfig(updates_root=tmp_path, debounce_ms=50)
        watcher = ChangeWatcher(reconciler, config)
        watcher.start()
        yield watcher
        watcher.stop()

    def test_burst_reconciles_once(self, watcher, reconciler, tmp_path):
        for i in range(25):
            watcher.on_add(tmp_path / "forge_1_20_1" / "mods" / f"m{i}.jar")

        time.sleep(0.3)
        assert reconciler.synced_keys() == ["forge_1_20_1"]

    def test_change_schedules_key(self, watcher, reconciler, tmp_path):
        watcher.dispatch(FileChange(kind=ChangeKind.CHANGE, path=tmp_path / "vanilla" / "client.jar"))
        assert watcher.pending_keys() == ["vanilla"]
        time.sleep(0.3)
        assert reconciler.synced_keys() == ["vanilla"]

    def test_unlink_deletes_then_schedules(self, watcher, reconciler, tmp_path):
        watcher.dispatch(FileChange(kind=ChangeKind.UNLINK, path=tmp_path / "vanilla" / "mods" / "x.jar"))

        assert reconciler.deleted == [("vanilla", "mods/x.jar")]
        assert watcher.pending_keys() == ["vanilla"]
        time.sleep(0.3)
        assert reconciler.synced_keys() == ["vanilla"]

    def test_separate_keys(self, watcher, reconciler, tmp_path):
        watcher.on_add(tmp_path / "a" / "client.jar")
        watcher.on_add(tmp_path / "b" / "client.jar")
        time.sleep(0.3)
        assert sorted(reconciler.synced_keys()) == ["a", "b"]

    def test_reserved_and_dot_dirs_ignored(self, watcher, reconciler, tmp_path):
        watcher.on_add(tmp_path / "assets" / "objects" / "ab" / "abcd")
        watcher.on_add(tmp_path / ".temp-minecraft" / "1.20.1" / "x.jar")
        watcher.on_unlink(tmp_path / "assets" / "indexes" / "5.json")
        watcher.on_add(tmp_path / "root-level.txt")

        assert watcher.pending_keys() == []
        assert reconciler.deleted == []

    def test_outside_root_ignored(self, watcher, reconciler, tmp_path):
        watcher.on_add(tmp_path.parent / "elsewhere" / "client.jar")
        assert watcher.pending_keys() == []

    def test_too_deep_ignored(self, tmp_path, reconciler):
        config = WatcherConfig(updates_root=tmp_path, debounce_ms=50, max_depth=2)
        watcher = ChangeWatcher(reconciler, config)
        watcher.on_add(tmp_path / "a" / "b" / "c" / "file")
        assert watcher.pending_keys() == []


class TestLifecycle:
    """Tests for start/stop."""

    def test_missing_root(self, tmp_path):
        watcher = ChangeWatcher(FakeReconciler(), WatcherConfig(updates_root=tmp_path / "missing"))
        with pytest.raises(WatchRootNotFoundError):
            watcher.start()

    def test_stop_when_not_running(self, tmp_path):
        watcher = ChangeWatcher(FakeReconciler(), WatcherConfig(updates_root=tmp_path))
        with pytest.raises(WatcherNotRunningError):
            watcher.stop()

    def test_start_twice(self, tmp_path):
        watcher = ChangeWatcher(FakeReconciler(), WatcherConfig(updates_root=tmp_path))
        watcher.start()
        try:
            with pytest.raises(WatcherAlreadyRunningError):
                watcher.start()
        finally:
            watcher.stop()
        assert not watcher.is_running

    def test_start_seeds_marker_directories(self, tmp_path):
        _write(tmp_path / "vanilla" / "client.jar")
        _write(tmp_path / "forge" / "version.json")
        _write(tmp_path / "no_marker" / "readme.txt")
        _write(tmp_path / "assets" / "client.jar")
        _write(tmp_path / ".temp-minecraft" / "client.jar")

        reconciler = FakeReconciler()
        watcher = ChangeWatcher(reconciler, WatcherConfig(updates_root=tmp_path))
        try:
            seeded = watcher.start()
        finally:
            watcher.stop()

        assert seeded == ["forge", "vanilla"]
        assert reconciler.synced_keys() == ["forge", "vanilla"]

    def test_stop_cancels_pending(self, tmp_path):
        reconciler = FakeReconciler()
        watcher = ChangeWatcher(reconciler, WatcherConfig(updates_root=tmp_path, debounce_ms=200))
        watcher.start()
        watcher.on_add(tmp_path / "vanilla" / "client.jar")
        watcher.stop()

        time.sleep(0.4)
        assert reconciler.synced_keys() == []

    def test_dispatch_after_stop_ignored(self, tmp_path):
        reconciler = FakeReconciler()
        watcher = ChangeWatcher(reconciler, WatcherConfig(updates_root=tmp_path, debounce_ms=50))
        watcher.start()
        watcher.stop()

        watcher.dispatch(FileChange(kind=ChangeKind.ADD, path=tmp_path / "client" / "a.txt"))
        watcher.dispatch(FileChange(kind=ChangeKind.UNLINK, path=tmp_path / "client" / "b.txt"))

        assert watcher.pending_keys() == []
        assert reconciler.deleted == []
        time.sleep(0.2)
        assert reconciler.synced_keys() == []

    def test_stop_detaches_observer_before_cancelling(self, tmp_path):
        calls = []
        watcher = ChangeWatcher(FakeReconciler(), WatcherConfig(updates_root=tmp_path))
        watcher.start()
        stop_observer = watcher._observer.stop
        cancel_all = watcher._debouncer.cancel_all
        watcher._observer.stop = lambda: calls.append("observer") or stop_observer()
        watcher._debouncer.cancel_all = lambda: calls.append("cancel") or cancel_all()

        watcher.stop()

        assert calls == ["observer", "cancel"]


class TestEndToEnd:
    """Real observer driving a real reconciler."""

    @pytest.fixture
    def store(self, tmp_path):
        updates = tmp_path / "updates"
        updates.mkdir()
        config = CatalogConfig(db_path=tmp_path / "catalog.db", updates_root=updates)
        store = CatalogStore(config)
        yield store
        store.close()

    def _wait_for(self, predicate, timeout=5.0):
        deadline = time.time() + timeout
        while time.time() < deadline:
            if predicate():
                return True
            time.sleep(0.05)
        return False

    def test_new_and_removed_files_reach_catalog(self, store):
        updates = store.config.updates_root
        (updates / "1.20.1" / "mods").mkdir(parents=True)
        reconciler = CatalogReconciler(store)
        watcher = ChangeWatcher(reconciler, WatcherConfig(updates_root=updates, debounce_ms=100))
        watcher.start()
        try:
            time.sleep(0.2)
            _write(updates / "1.20.1" / "client.jar", b"jar")
            _write(updates / "1.20.1" / "mods" / "x.jar", b"mod")

            def cataloged():
                version = store.get_version("1.20.1")
                return version is not None and len(store.find_files(version.id)) == 2

            assert self._wait_for(cataloged)

            (updates / "1.20.1" / "mods" / "x.jar").unlink()

            def removed():
                version = store.get_version("1.20.1")
                return store.get_file(version.id, "1.20.1", "mods/x.jar") is None

            assert self._wait_for(removed)
        finally:
            watcher.stop()
