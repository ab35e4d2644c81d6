"""Tests for filesystem watcher module."""

import pytest
import time
import threading
from pathlib import Path

from watchdog.events import (
    DirCreatedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from src.watcher.config import WatcherConfig
from src.watcher.models import ChangeKind
from src.watcher.fs_watcher import FSEventHandler, RootObserver


class TestFSEventHandler:
    """Tests for FSEventHandler class."""

    @pytest.fixture
    def changes(self):
        return []

    @pytest.fixture
    def handler(self, changes):
        return FSEventHandler(changes.append, WatcherConfig())

    def test_created(self, handler, changes, tmp_path):
        handler.on_created(FileCreatedEvent(str(tmp_path / "a.jar")))
        assert len(changes) == 1
        assert changes[0].kind == ChangeKind.ADD
        assert changes[0].path == tmp_path / "a.jar"

    def test_modified(self, handler, changes, tmp_path):
        handler.on_modified(FileModifiedEvent(str(tmp_path / "a.jar")))
        assert [c.kind for c in changes] == [ChangeKind.CHANGE]

    def test_deleted(self, handler, changes, tmp_path):
        handler.on_deleted(FileDeletedEvent(str(tmp_path / "a.jar")))
        assert [c.kind for c in changes] == [ChangeKind.UNLINK]

    def test_moved_is_unlink_then_add(self, handler, changes, tmp_path):
        handler.on_moved(FileMovedEvent(str(tmp_path / "old.jar"), str(tmp_path / "new.jar")))
        assert [(c.kind, c.path.name) for c in changes] == [
            (ChangeKind.UNLINK, "old.jar"),
            (ChangeKind.ADD, "new.jar"),
        ]

    def test_directory_events_ignored(self, handler, changes, tmp_path):
        handler.on_created(DirCreatedEvent(str(tmp_path / "libraries")))
        assert changes == []

    def test_ignore_patterns(self, handler, changes, tmp_path):
        handler.on_created(FileCreatedEvent(str(tmp_path / "client.jar.part")))
        handler.on_created(FileCreatedEvent(str(tmp_path / "x.tmp")))
        assert changes == []

    def test_callback_error_is_contained(self, tmp_path):
        def broken(change):
            raise RuntimeError("boom")

        handler = FSEventHandler(broken, WatcherConfig())
        handler.on_created(FileCreatedEvent(str(tmp_path / "a.jar")))


class TestRootObserver:
    """Tests for RootObserver class."""

    def test_start_and_stop(self, tmp_path):
        observer = RootObserver(lambda change: None)

        assert observer.start(tmp_path) is True
        assert observer.is_running
        assert observer.start(tmp_path) is False

        assert observer.stop() is True
        assert not observer.is_running
        assert observer.stop() is False

    def test_detects_file_creation(self, tmp_path):
        changes = []
        lock = threading.Lock()

        def callback(change):
            with lock:
                changes.append(change)

        observer = RootObserver(callback)
        observer.start(tmp_path)

        # Give watcher time to start
        time.sleep(0.2)

        sub = tmp_path / "vanilla"
        sub.mkdir()
        (sub / "client.jar").write_bytes(b"jar")

        time.sleep(0.5)

        observer.stop()

        with lock:
            adds = [c for c in changes if c.kind == ChangeKind.ADD and c.path.name == "client.jar"]

        assert len(adds) >= 1

    def test_detects_file_deletion(self, tmp_path):
        target = tmp_path / "client.jar"
        target.write_bytes(b"jar")

        changes = []
        lock = threading.Lock()

        def callback(change):
            with lock:
                changes.append(change)

        observer = RootObserver(callback)
        observer.start(tmp_path)

        time.sleep(0.2)

        target.unlink()

        time.sleep(0.5)

        observer.stop()

        with lock:
            unlinks = [c for c in changes if c.kind == ChangeKind.UNLINK and c.path.name == "client.jar"]

        assert len(unlinks) >= 1
