"""
Data models for the catalog package.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional
import hashlib


class FileType(Enum):
    """Classification of a file inside a client directory."""
    JAR = "jar"
    LIBRARY = "library"
    NATIVE = "native"
    ASSET = "asset"
    OTHER = "other"


class SyncAction(Enum):
    """Actions reported to the event sink."""
    FILE_ADDED = "file_added"
    FILE_UPDATED = "file_updated"
    FILE_DELETED = "file_deleted"
    SYNC = "sync"
    INTEGRITY_CHECK = "integrity_check"


# Event name used for every catalog notification
CLIENT_FILES_UPDATED = "client:files-updated"


def compute_file_hash(path: Path, algorithm: str = "sha256") -> str:
    """
    Compute hash of file contents.

    Args:
        path: Path to the file
        algorithm: Hash algorithm to use (default: sha256)

    Returns:
        Lowercase hex digest

    Raises:
        OSError: If the file cannot be read
    """
    hasher = hashlib.new(algorithm)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def normalize_relative_path(path: str) -> str:
    """Normalize a catalog path: POSIX separators, no leading slash."""
    return path.replace("\\", "/").lstrip("/")


def _parse_timestamp(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


@dataclass
class ClientVersion:
    """A cataloged client version."""
    id: int
    version: str
    title: str
    main_class: str
    jvm_version: str
    client_jar_hash: str = ""
    client_jar_size: int = 0
    enabled: bool = True

    @classmethod
    def from_row(cls, row) -> "ClientVersion":
        return cls(
            id=row["id"],
            version=row["version"],
            title=row["title"],
            main_class=row["main_class"],
            jvm_version=row["jvm_version"],
            client_jar_hash=row["client_jar_hash"],
            client_jar_size=int(row["client_jar_size"]),
            enabled=bool(row["enabled"]),
        )


@dataclass
class ClientFile:
    """A tracked file belonging to a client version and directory."""
    id: int
    version_id: int
    client_directory: str
    file_path: str
    file_hash: str
    file_size: int
    file_type: FileType
    verified: bool = False
    integrity_check_failed: bool = False
    last_verified: Optional[datetime] = None

    def __post_init__(self):
        if isinstance(self.file_type, str):
            self.file_type = FileType(self.file_type)
        self.last_verified = _parse_timestamp(self.last_verified)

    @classmethod
    def from_row(cls, row) -> "ClientFile":
        return cls(
            id=row["id"],
            version_id=row["version_id"],
            client_directory=row["client_directory"],
            file_path=row["file_path"],
            file_hash=row["file_hash"],
            file_size=int(row["file_size"]),
            file_type=row["file_type"],
            verified=bool(row["verified"]),
            integrity_check_failed=bool(row["integrity_check_failed"]),
            last_verified=row["last_verified"],
        )

    def to_payload(self) -> Dict[str, Any]:
        """Serialize for the event sink. Sizes travel as decimal strings."""
        return {
            "filePath": self.file_path,
            "fileHash": self.file_hash,
            "fileSize": str(self.file_size),
            "fileType": self.file_type.value,
            "verified": self.verified,
            "integrityCheckFailed": self.integrity_check_failed,
        }


@dataclass
class ClientProfile:
    """A launch configuration mapping a client directory to a version."""
    id: int
    title: str
    version: str
    client_directory: str
    main_class: str = "net.minecraft.client.main.Main"
    jvm_version: str = "8"
    asset_index: Optional[str] = None
    loader: str = "vanilla"
    enabled: bool = True

    @classmethod
    def from_row(cls, row) -> "ClientProfile":
        return cls(
            id=row["id"],
            title=row["title"],
            version=row["version"],
            client_directory=row["client_directory"],
            main_class=row["main_class"],
            jvm_version=row["jvm_version"],
            asset_index=row["asset_index"],
            loader=row["loader"],
            enabled=bool(row["enabled"]),
        )


@dataclass(frozen=True)
class ScannedFile:
    """
    Result of scanning one file on disk.

    Attributes:
        relative_path: POSIX path relative to the scanned root
        size: File size in bytes
        hash: Hex digest of the file contents
        file_type: Classification derived from the path
    """
    relative_path: str
    size: int
    hash: str
    file_type: FileType


@dataclass
class SyncResult:
    """Counters returned by a reconciliation pass."""
    added: int = 0
    updated: int = 0
    errors: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"added": self.added, "updated": self.updated, "errors": self.errors}


@dataclass
class VerifyResult:
    """Counters returned by a version-wide integrity check."""
    total: int = 0
    valid: int = 0
    invalid: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"total": self.total, "valid": self.valid, "invalid": self.invalid}


@dataclass
class SyncStats:
    """Verification state of a version's catalog rows."""
    total_files: int = 0
    verified_files: int = 0
    failed_files: int = 0
    last_sync: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalFiles": self.total_files,
            "verifiedFiles": self.verified_files,
            "failedFiles": self.failed_files,
            "lastSync": self.last_sync.isoformat() if self.last_sync else None,
        }


@dataclass
class CatalogEvent:
    """A notification sent to the event sink."""
    version: str
    version_id: int
    action: SyncAction
    files: List[Dict[str, Any]] = field(default_factory=list)
    stats: Optional[Dict[str, Any]] = None

    def to_payload(self) -> Dict[str, Any]:
        payload = {
            "version": self.version,
            "versionId": self.version_id,
            "action": self.action.value,
            "files": self.files,
        }
        if self.stats is not None:
            payload["stats"] = self.stats
        return payload
