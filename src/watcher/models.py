"""Data models for the change watcher package."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
import time


class ChangeKind(Enum):
    """Kinds of file changes the watcher reacts to."""
    ADD = "add"
    CHANGE = "change"
    UNLINK = "unlink"


@dataclass(frozen=True)
class FileChange:
    """
    A single file change under the updates root.

    Attributes:
        kind: ADD, CHANGE or UNLINK
        path: Absolute path of the affected file
        timestamp: Unix timestamp when the change was observed
    """
    kind: ChangeKind
    path: Path
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self):
        if not self.path.is_absolute():
            raise ValueError(f"path must be absolute: {self.path}")
