"""Configuration for the change watcher package."""

import fnmatch
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


@dataclass
class WatcherConfig:
    """
    Configuration options for the change watcher.

    Attributes:
        updates_root: Distribution root whose top-level directories are client bundles
        debounce_ms: Quiet period before a directory is reconciled
        max_depth: Deepest directory level (below the root) that is watched
        reserved_dirs: Top-level directories that are never treated as bundles
        marker_files: Files marking a top-level directory as a client bundle
        ignore_patterns: Glob patterns for files to ignore
    """
    updates_root: Path = field(default_factory=lambda: Path("updates"))
    debounce_ms: int = 2000
    max_depth: int = 10
    reserved_dirs: List[str] = field(default_factory=lambda: ["assets"])
    marker_files: List[str] = field(default_factory=lambda: ["client.jar", "version.json"])
    ignore_patterns: List[str] = field(default_factory=lambda: [
        "*.tmp",
        "*.part",
        "*.swp",
        "*~",
        ".DS_Store",
        "Thumbs.db",
    ])

    def __post_init__(self):
        if isinstance(self.updates_root, str):
            self.updates_root = Path(self.updates_root)

    @classmethod
    def from_env(cls) -> "WatcherConfig":
        """Build a config from UPDATES_ROOT / SYNC_DEBOUNCE_MS environment variables."""
        config = cls()
        if os.environ.get("UPDATES_ROOT"):
            config.updates_root = Path(os.environ["UPDATES_ROOT"])
        if os.environ.get("SYNC_DEBOUNCE_MS"):
            config.debounce_ms = int(os.environ["SYNC_DEBOUNCE_MS"])
        return config

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000.0

    def should_ignore(self, path: Path) -> bool:
        """
        Check if a file name matches one of the ignore patterns.

        Args:
            path: Path to check

        Returns:
            True if the path should be ignored
        """
        name = path.name
        return any(fnmatch.fnmatch(name, pattern) for pattern in self.ignore_patterns)

    def directory_key(self, relative: Path) -> Optional[str]:
        """
        Directory key of a path relative to the updates root.

        Returns:
            The first path segment, or None when the path is a root-level
            file, sits under a reserved or dot directory, or is too deep
        """
        parts = relative.parts
        if len(parts) < 2:
            return None
        key = parts[0]
        if key.startswith(".") or key in self.reserved_dirs:
            return None
        # parts minus the file name are directory levels below the root
        if len(parts) - 1 > self.max_depth:
            return None
        return key
