"""Change watcher orchestrating debounced catalog reconciliation."""

import logging
import threading
from pathlib import Path
from typing import List, Optional, Tuple

from src.catalog.reconciler import CatalogReconciler
from .config import WatcherConfig
from .debouncer import KeyedDebouncer
from .exceptions import (
    WatchRootNotFoundError,
    WatcherAlreadyRunningError,
    WatcherNotRunningError,
)
from .fs_watcher import RootObserver
from .models import ChangeKind, FileChange

logger = logging.getLogger(__name__)


class ChangeWatcher:
    """
    Keeps the catalog in step with the updates root.

    Every top-level directory of the root is a client bundle identified by
    its name (the directory key). Added or changed files schedule a
    debounced reconciliation of their key; removed files delete their
    catalog row right away and then schedule the same reconciliation.

    Usage:
        watcher = ChangeWatcher(reconciler, WatcherConfig(updates_root=root))
        watcher.start()
        ...
        watcher.stop()
    """

    def __init__(self, reconciler: CatalogReconciler, config: Optional[WatcherConfig] = None):
        """
        Initialize the change watcher.

        Args:
            reconciler: Reconciler that owns catalog writes
            config: Watcher configuration
        """
        self.reconciler = reconciler
        self.config = config or WatcherConfig()
        self.root = Path(self.config.updates_root).absolute()

        self._debouncer = KeyedDebouncer(self._reconcile_key, self.config.debounce_seconds)
        self._observer = RootObserver(self.dispatch, self.config)
        self._running = False
        self._lock = threading.Lock()

    def start(self) -> List[str]:
        """
        Attach the observer, then seed the catalog from existing bundles.

        Returns:
            Directory keys reconciled during the initial pass

        Raises:
            WatchRootNotFoundError: If the updates root does not exist
            WatcherAlreadyRunningError: If already started
        """
        with self._lock:
            if self._running:
                raise WatcherAlreadyRunningError("Change watcher is already running")
            if not self.root.is_dir():
                raise WatchRootNotFoundError(f"Updates root does not exist: {self.root}")
            self._observer.start(self.root)
            self._running = True

        return self.on_ready()

    def stop(self) -> None:
        """Detach the observer, then cancel pending reconciliations."""
        with self._lock:
            if not self._running:
                raise WatcherNotRunningError("Change watcher is not running")
            self._running = False

        self._observer.stop()
        cancelled = self._debouncer.cancel_all()
        logger.info(f"Change watcher stopped ({cancelled} pending reconciliations cancelled)")

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    def _split(self, path: Path) -> Optional[Tuple[str, str]]:
        """Split an absolute path into (directory key, path inside the bundle)."""
        path = Path(path)
        try:
            relative = path.relative_to(self.root)
        except ValueError:
            try:
                relative = path.resolve().relative_to(self.root.resolve())
            except ValueError:
                return None

        key = self.config.directory_key(relative)
        if key is None:
            return None
        return key, Path(*relative.parts[1:]).as_posix()

    def dispatch(self, change: FileChange) -> None:
        """Route one observed change to its handler. Changes arriving while stopped are dropped."""
        if not self.is_running:
            return
        if change.kind == ChangeKind.UNLINK:
            self.on_unlink(change.path)
        elif change.kind == ChangeKind.CHANGE:
            self.on_change(change.path)
        else:
            self.on_add(change.path)

    def on_add(self, path: Path) -> None:
        split = self._split(path)
        if split is None:
            return
        self._debouncer.schedule(split[0])

    def on_change(self, path: Path) -> None:
        self.on_add(path)

    def on_unlink(self, path: Path) -> None:
        """Delete the catalog row of a removed file, then schedule a reconciliation."""
        split = self._split(path)
        if split is None:
            return
        key, file_path = split

        logger.info(f"File removed: {key}/{file_path}")
        self.reconciler.delete_path(key, file_path)
        self._debouncer.schedule(key)

    def on_ready(self) -> List[str]:
        """
        Reconcile every existing bundle directory once.

        A top-level directory counts as a bundle when it holds one of the
        configured marker files.
        """
        reconciled = []
        for directory in sorted(self.root.iterdir()):
            if not directory.is_dir():
                continue
            name = directory.name
            if name.startswith(".") or name in self.config.reserved_dirs:
                continue
            if not any((directory / marker).is_file() for marker in self.config.marker_files):
                continue

            try:
                self.reconciler.sync_directory(name)
                reconciled.append(name)
            except Exception as e:
                logger.error(f"Initial sync failed for {name}: {e}")

        logger.info(f"Initial sync complete: {len(reconciled)} client directories")
        return reconciled

    def _reconcile_key(self, key: str) -> None:
        logger.debug(f"Debounce expired for {key}, reconciling")
        self.reconciler.sync_directory(key)

    def pending_keys(self) -> List[str]:
        """Directory keys with a reconciliation scheduled."""
        return self._debouncer.pending_keys()
