"""Custom exceptions for the change watcher package."""


class WatcherError(Exception):
    """Base exception for all watcher errors."""
    pass


class WatchRootNotFoundError(WatcherError):
    """Updates root to watch does not exist."""
    pass


class WatcherNotRunningError(WatcherError):
    """Change watcher is not running."""
    pass


class WatcherAlreadyRunningError(WatcherError):
    """Change watcher is already running."""
    pass
