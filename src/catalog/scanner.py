"""
Directory scanning for the catalog package.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional

from .config import CatalogConfig
from .models import FileType, ScannedFile, compute_file_hash, normalize_relative_path

logger = logging.getLogger(__name__)

CLIENT_JAR = "client.jar"
NATIVE_EXTENSIONS = (".so", ".dll", ".dylib", ".jnilib")


def classify_file_type(relative_path: str) -> FileType:
    """
    Classify a file by its path relative to the client directory.

    Args:
        relative_path: POSIX relative path

    Returns:
        FileType for the path
    """
    path = normalize_relative_path(relative_path)
    if path == CLIENT_JAR:
        return FileType.JAR

    segments = path.split("/")[:-1]
    lower = path.lower()
    is_native = lower.endswith(NATIVE_EXTENSIONS)

    if "libraries" in segments:
        return FileType.NATIVE if is_native else FileType.LIBRARY
    if "natives" in segments and is_native:
        return FileType.NATIVE
    if "assets" in segments:
        return FileType.ASSET
    if lower.endswith(".jar"):
        return FileType.JAR
    return FileType.OTHER


class DirectoryScanner:
    """Walks a client directory and hashes every file in it."""

    def __init__(self, config: Optional[CatalogConfig] = None):
        self.config = config or CatalogConfig()

    def _skip_dir(self, name: str) -> bool:
        return name.startswith(".") or name in self.config.skip_dirs

    def scan(self, root: Path) -> List[ScannedFile]:
        """
        Scan a directory tree.

        Dotfiles, dot-directories and housekeeping directories are skipped.
        A file that cannot be read is logged and left out; the scan goes on.

        Args:
            root: Directory to scan

        Returns:
            Scanned files sorted by relative path; empty if root is missing
        """
        root = Path(root)
        if not root.is_dir():
            logger.debug(f"Scan root does not exist: {root}")
            return []

        results: List[ScannedFile] = []
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = [d for d in dirnames if not self._skip_dir(d)]

            for name in filenames:
                if name.startswith("."):
                    continue
                full_path = Path(dirpath) / name
                relative = normalize_relative_path(full_path.relative_to(root).as_posix())
                try:
                    if not full_path.is_file():
                        continue
                    size = full_path.stat().st_size
                    file_hash = compute_file_hash(full_path, self.config.hash_algorithm)
                except OSError as e:
                    logger.warning(f"Skipping unreadable file {full_path}: {e}")
                    continue

                results.append(ScannedFile(
                    relative_path=relative,
                    size=size,
                    hash=file_hash,
                    file_type=classify_file_type(relative),
                ))

        results.sort(key=lambda f: f.relative_path)
        logger.debug(f"Scanned {len(results)} files under {root}")
        return results
