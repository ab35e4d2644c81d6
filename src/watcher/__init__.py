"""
Change Watcher Package

Watches the distribution root and keeps the client catalog in step
with it.

Features:
- Recursive watchdog observation with bounded depth
- Per-directory debounced reconciliation
- Immediate row deletion for removed files
- Initial reconciliation of existing client bundles
"""

from .models import ChangeKind, FileChange

from .config import WatcherConfig

from .exceptions import (
    WatcherError,
    WatchRootNotFoundError,
    WatcherNotRunningError,
    WatcherAlreadyRunningError,
)

from .debouncer import KeyedDebouncer
from .fs_watcher import FSEventHandler, RootObserver
from .change_watcher import ChangeWatcher


__all__ = [
    # Models
    "ChangeKind",
    "FileChange",
    # Config
    "WatcherConfig",
    # Exceptions
    "WatcherError",
    "WatchRootNotFoundError",
    "WatcherNotRunningError",
    "WatcherAlreadyRunningError",
    # Components
    "KeyedDebouncer",
    "FSEventHandler",
    "RootObserver",
    "ChangeWatcher",
]

__version__ = "0.1.0"
