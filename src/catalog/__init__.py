"""
Catalog Package

Keeps a relational catalog of client bundle files and reconciles it
against the distribution directory on disk.

Features:
- Recursive scanning with sha256 content hashes
- Idempotent add/update reconciliation that never deletes rows
- Explicit, best-effort row deletion
- Integrity verification against disk
- Fire-and-forget change notifications
"""

from .models import (
    FileType,
    SyncAction,
    CLIENT_FILES_UPDATED,
    ClientVersion,
    ClientFile,
    ClientProfile,
    ScannedFile,
    SyncResult,
    VerifyResult,
    SyncStats,
    CatalogEvent,
    compute_file_hash,
    normalize_relative_path,
)

from .config import CatalogConfig

from .exceptions import (
    CatalogError,
    StoreError,
    VersionNotFoundError,
)

from .store import CatalogStore
from .events import (
    EventSink,
    NullEventSink,
    CallbackEventSink,
    RecordingEventSink,
    ActivityEventSink,
    DatabaseLogHandler,
    publish,
)
from .scanner import DirectoryScanner, classify_file_type
from .reconciler import CatalogReconciler
from .verifier import IntegrityVerifier


__all__ = [
    # Models
    "FileType",
    "SyncAction",
    "CLIENT_FILES_UPDATED",
    "ClientVersion",
    "ClientFile",
    "ClientProfile",
    "ScannedFile",
    "SyncResult",
    "VerifyResult",
    "SyncStats",
    "CatalogEvent",
    "compute_file_hash",
    "normalize_relative_path",
    # Config
    "CatalogConfig",
    # Exceptions
    "CatalogError",
    "StoreError",
    "VersionNotFoundError",
    # Components
    "CatalogStore",
    "EventSink",
    "NullEventSink",
    "CallbackEventSink",
    "RecordingEventSink",
    "ActivityEventSink",
    "DatabaseLogHandler",
    "publish",
    "DirectoryScanner",
    "classify_file_type",
    "CatalogReconciler",
    "IntegrityVerifier",
]

__version__ = "0.1.0"
