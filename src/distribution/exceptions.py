"""
Custom exceptions for the distribution package.
"""

from pathlib import Path
from typing import List, Optional


class DistributionError(Exception):
    """Base exception for download and install errors."""
    pass


class ManifestError(DistributionError):
    """Version manifest or descriptor could not be resolved."""
    pass


class DownloadError(DistributionError):
    """HTTP transfer failed."""
    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class IntegrityError(DistributionError):
    """Downloaded content does not match its expected hash."""
    def __init__(self, dest: Path, expected: str, actual: str):
        super().__init__(f"Hash mismatch for {Path(dest).name}. Expected: {expected}, Got: {actual}")
        self.dest = dest
        self.expected = expected
        self.actual = actual


class LoaderNotFoundError(DistributionError):
    """No loader release is available for the requested game version."""
    pass


class ClientDirectoryExistsError(DistributionError):
    """Target client directory already exists."""
    pass


class InstallerError(DistributionError):
    """Base exception for loader installer failures."""
    def __init__(self, message: str, stdout: str = "", stderr: str = ""):
        super().__init__(message)
        self.stdout = stdout
        self.stderr = stderr


class InstallerNotFoundError(InstallerError):
    """Installer JAR does not exist."""
    pass


class InstallerTimeoutError(InstallerError):
    """Installer subprocess exceeded its timeout."""
    pass


class InstallerOutputNotFoundError(InstallerError):
    """Installer finished but its output version directory never appeared."""
    def __init__(self, message: str, found: List[str], stdout: str = "", stderr: str = ""):
        super().__init__(message, stdout, stderr)
        self.found = found
