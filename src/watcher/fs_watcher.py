"""File system observation using the watchdog library."""

import logging
import threading
from pathlib import Path
from typing import Callable, Optional

from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler

from .config import WatcherConfig
from .models import ChangeKind, FileChange

logger = logging.getLogger(__name__)


class FSEventHandler(FileSystemEventHandler):
    """Handler that converts watchdog file events to FileChange objects."""

    def __init__(self, callback: Callable[[FileChange], None], config: WatcherConfig):
        super().__init__()
        self.callback = callback
        self.config = config

    def _emit(self, kind: ChangeKind, path: str) -> None:
        file_path = Path(path)
        if self.config.should_ignore(file_path):
            return
        try:
            self.callback(FileChange(kind=kind, path=file_path.absolute()))
        except Exception as e:
            logger.error(f"Change callback failed for {path}: {e}")

    def on_created(self, event):
        if not event.is_directory:
            self._emit(ChangeKind.ADD, event.src_path)

    def on_modified(self, event):
        if not event.is_directory:
            self._emit(ChangeKind.CHANGE, event.src_path)

    def on_deleted(self, event):
        if not event.is_directory:
            self._emit(ChangeKind.UNLINK, event.src_path)

    def on_moved(self, event):
        if event.is_directory:
            return
        self._emit(ChangeKind.UNLINK, event.src_path)
        self._emit(ChangeKind.ADD, event.dest_path)


class RootObserver:
    """Owns the watchdog observer attached to the updates root."""

    def __init__(self, callback: Callable[[FileChange], None], config: Optional[WatcherConfig] = None):
        """
        Initialize the root observer.

        Args:
            callback: Receives every FileChange not filtered out by the handler
            config: Watcher configuration
        """
        self.config = config or WatcherConfig()
        self.handler = FSEventHandler(callback, self.config)
        self._observer: Optional[Observer] = None
        self._lock = threading.Lock()

    def start(self, root: Path) -> bool:
        """
        Attach an observer to a root directory.

        Returns:
            True if watching started, False if already watching
        """
        with self._lock:
            if self._observer is not None:
                return False

            observer = Observer()
            observer.schedule(self.handler, str(root), recursive=True)
            observer.start()
            self._observer = observer
            logger.info(f"Watching {root}")
            return True

    def stop(self) -> bool:
        """
        Detach the observer.

        Returns:
            True if watching stopped, False if not watching
        """
        with self._lock:
            if self._observer is None:
                return False
            observer = self._observer
            self._observer = None

        observer.stop()
        observer.join(timeout=5.0)
        return True

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._observer is not None
