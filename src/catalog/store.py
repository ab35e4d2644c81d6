"""
Catalog store for the catalog package.
"""

import logging
import sqlite3
import threading
from datetime import datetime
from typing import List, Optional, Tuple

from .config import CatalogConfig
from .exceptions import StoreError
from .models import (
    ClientFile,
    ClientProfile,
    ClientVersion,
    ScannedFile,
    SyncAction,
    SyncStats,
)

logger = logging.getLogger(__name__)


class CatalogStore:
    """SQLite-based catalog of client versions, profiles and files."""

    def __init__(self, config: Optional[CatalogConfig] = None):
        """
        Initialize catalog store.

        Args:
            config: Catalog configuration
        """
        self.config = config or CatalogConfig()
        self._lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None
        self._closed = False

        self._init_db()

    def _init_db(self) -> None:
        """Initialize database schema."""
        self._conn = sqlite3.connect(
            str(self.config.db_path),
            check_same_thread=False,
            isolation_level=None,
        )
        self._conn.row_factory = sqlite3.Row

        # Enable WAL mode for better concurrency
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        # Enable foreign keys for CASCADE deletes
        self._conn.execute("PRAGMA foreign_keys=ON")

        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS client_versions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                version TEXT NOT NULL UNIQUE,
                title TEXT NOT NULL,
                main_class TEXT NOT NULL,
                jvm_version TEXT NOT NULL,
                client_jar_hash TEXT NOT NULL DEFAULT '',
                client_jar_size INTEGER NOT NULL DEFAULT 0,
                enabled INTEGER NOT NULL DEFAULT 1,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP
            );

            CREATE TABLE IF NOT EXISTS client_profiles (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                version TEXT NOT NULL,
                client_directory TEXT NOT NULL UNIQUE,
                main_class TEXT NOT NULL,
                jvm_version TEXT NOT NULL,
                asset_index TEXT,
                loader TEXT NOT NULL DEFAULT 'vanilla',
                enabled INTEGER NOT NULL DEFAULT 1,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP
            );

            CREATE TABLE IF NOT EXISTS client_files (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                version_id INTEGER NOT NULL,
                client_directory TEXT NOT NULL,
                file_path TEXT NOT NULL,
                file_hash TEXT NOT NULL,
                file_size INTEGER NOT NULL,
                file_type TEXT NOT NULL,
                verified INTEGER NOT NULL DEFAULT 0,
                integrity_check_failed INTEGER NOT NULL DEFAULT 0,
                last_verified TEXT,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
                UNIQUE (version_id, client_directory, file_path),
                FOREIGN KEY (version_id) REFERENCES client_versions(id) ON DELETE CASCADE
            );

            CREATE INDEX IF NOT EXISTS idx_client_files_version ON client_files(version_id);
            CREATE INDEX IF NOT EXISTS idx_client_files_directory ON client_files(client_directory);
            CREATE INDEX IF NOT EXISTS idx_client_profiles_version ON client_profiles(version);
        """)

    def _check_closed(self) -> None:
        """Check if store is closed."""
        if self._closed:
            raise StoreError("Store is closed")

    # Version operations

    def get_or_create_version(
        self,
        version: str,
        title: str,
        main_class: str,
        jvm_version: str,
    ) -> Tuple[ClientVersion, bool]:
        """
        Atomically create a version row if it does not exist yet.

        Concurrent callers for the same version string all receive the same
        row; exactly one of them sees ``created=True``.

        Returns:
            (version row, created)
        """
        self._check_closed()

        with self._lock:
            cursor = self._conn.execute("""
                INSERT OR IGNORE INTO client_versions (version, title, main_class, jvm_version)
                VALUES (?, ?, ?, ?)
            """, (version, title, main_class, jvm_version))
            created = cursor.rowcount > 0

            row = self._conn.execute(
                "SELECT * FROM client_versions WHERE version = ?", (version,)
            ).fetchone()

        if created:
            logger.info(f"Created new version in catalog: {version}")
        return ClientVersion.from_row(row), created

    def get_version(self, version: str) -> Optional[ClientVersion]:
        """Get a version row by version string."""
        self._check_closed()

        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM client_versions WHERE version = ?", (version,)
            ).fetchone()
        return ClientVersion.from_row(row) if row else None

    def get_version_by_id(self, version_id: int) -> Optional[ClientVersion]:
        """Get a version row by id."""
        self._check_closed()

        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM client_versions WHERE id = ?", (version_id,)
            ).fetchone()
        return ClientVersion.from_row(row) if row else None

    def list_versions(self) -> List[ClientVersion]:
        """Get all cataloged versions."""
        self._check_closed()

        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM client_versions ORDER BY version"
            ).fetchall()
        return [ClientVersion.from_row(row) for row in rows]

    def update_client_jar(self, version_id: int, jar_hash: str, jar_size: int) -> None:
        """Refresh the root client binary hash and size of a version."""
        self._check_closed()

        with self._lock:
            self._conn.execute("""
                UPDATE client_versions SET client_jar_hash = ?, client_jar_size = ?
                WHERE id = ?
            """, (jar_hash, jar_size, version_id))

    # File operations

    def get_file(
        self,
        version_id: int,
        client_directory: str,
        file_path: str,
    ) -> Optional[ClientFile]:
        """Get a file row by its composite key."""
        self._check_closed()

        with self._lock:
            row = self._conn.execute("""
                SELECT * FROM client_files
                WHERE version_id = ? AND client_directory = ? AND file_path = ?
            """, (version_id, client_directory, file_path)).fetchone()
        return ClientFile.from_row(row) if row else None

    def find_file(self, version_id: int, file_path: str) -> Optional[ClientFile]:
        """Get the first file row for a version and path, across directories."""
        self._check_closed()

        with self._lock:
            row = self._conn.execute("""
                SELECT * FROM client_files
                WHERE version_id = ? AND file_path = ?
                ORDER BY id LIMIT 1
            """, (version_id, file_path)).fetchone()
        return ClientFile.from_row(row) if row else None

    def find_files(
        self,
        version_id: int,
        client_directory: Optional[str] = None,
    ) -> List[ClientFile]:
        """
        Get all file rows of a version.

        Args:
            version_id: Owning version
            client_directory: Optional directory filter
        """
        self._check_closed()

        with self._lock:
            if client_directory is None:
                rows = self._conn.execute(
                    "SELECT * FROM client_files WHERE version_id = ? ORDER BY file_path",
                    (version_id,),
                ).fetchall()
            else:
                rows = self._conn.execute("""
                    SELECT * FROM client_files
                    WHERE version_id = ? AND client_directory = ?
                    ORDER BY file_path
                """, (version_id, client_directory)).fetchall()
        return [ClientFile.from_row(row) for row in rows]

    def upsert_file(
        self,
        version_id: int,
        client_directory: str,
        scanned: ScannedFile,
    ) -> Tuple[ClientFile, Optional[SyncAction]]:
        """
        Idempotently record a scanned file.

        - absent: insert, returns FILE_ADDED
        - hash or size differs: update and reset verification, returns FILE_UPDATED
        - unchanged: no write, returns None

        Returns:
            (current row, action taken)
        """
        self._check_closed()

        with self._lock:
            row = self._conn.execute("""
                SELECT * FROM client_files
                WHERE version_id = ? AND client_directory = ? AND file_path = ?
            """, (version_id, client_directory, scanned.relative_path)).fetchone()

            if row is None:
                cursor = self._conn.execute("""
                    INSERT INTO client_files
                    (version_id, client_directory, file_path, file_hash, file_size, file_type)
                    VALUES (?, ?, ?, ?, ?, ?)
                """, (
                    version_id,
                    client_directory,
                    scanned.relative_path,
                    scanned.hash,
                    scanned.size,
                    scanned.file_type.value,
                ))
                action = SyncAction.FILE_ADDED
                file_id = cursor.lastrowid
            elif row["file_hash"] != scanned.hash or int(row["file_size"]) != scanned.size:
                self._conn.execute("""
                    UPDATE client_files
                    SET file_hash = ?, file_size = ?, file_type = ?,
                        verified = 0, integrity_check_failed = 0, last_verified = NULL,
                        updated_at = ?
                    WHERE id = ?
                """, (
                    scanned.hash,
                    scanned.size,
                    scanned.file_type.value,
                    datetime.now().isoformat(),
                    row["id"],
                ))
                action = SyncAction.FILE_UPDATED
                file_id = row["id"]
            else:
                return ClientFile.from_row(row), None

            current = self._conn.execute(
                "SELECT * FROM client_files WHERE id = ?", (file_id,)
            ).fetchone()
        return ClientFile.from_row(current), action

    def delete_file(self, file_id: int) -> bool:
        """
        Delete a file row.

        Returns:
            True if a row was removed, False if it was already gone
        """
        self._check_closed()

        with self._lock:
            cursor = self._conn.execute("DELETE FROM client_files WHERE id = ?", (file_id,))
            return cursor.rowcount > 0

    def set_verification(
        self,
        file_id: int,
        verified: bool,
        integrity_check_failed: bool,
        checked_at: Optional[datetime] = None,
    ) -> None:
        """Record the outcome of an integrity check."""
        self._check_closed()

        checked_at = checked_at or datetime.now()
        with self._lock:
            self._conn.execute("""
                UPDATE client_files
                SET verified = ?, integrity_check_failed = ?, last_verified = ?
                WHERE id = ?
            """, (int(verified), int(integrity_check_failed), checked_at.isoformat(), file_id))

    def get_stats(self, version_id: int) -> SyncStats:
        """Aggregate verification state of a version's rows."""
        self._check_closed()

        with self._lock:
            row = self._conn.execute("""
                SELECT
                    COUNT(*) AS total,
                    COALESCE(SUM(CASE WHEN verified = 1 AND integrity_check_failed = 0 THEN 1 ELSE 0 END), 0) AS verified,
                    COALESCE(SUM(CASE WHEN integrity_check_failed = 1 THEN 1 ELSE 0 END), 0) AS failed,
                    MAX(last_verified) AS last_sync
                FROM client_files WHERE version_id = ?
            """, (version_id,)).fetchone()

        return SyncStats(
            total_files=row["total"],
            verified_files=row["verified"],
            failed_files=row["failed"],
            last_sync=datetime.fromisoformat(row["last_sync"]) if row["last_sync"] else None,
        )

    # Profile operations

    def add_profile(
        self,
        title: str,
        version: str,
        client_directory: str,
        main_class: str = "net.minecraft.client.main.Main",
        jvm_version: str = "8",
        asset_index: Optional[str] = None,
        loader: str = "vanilla",
    ) -> ClientProfile:
        """Create a profile for a client directory."""
        self._check_closed()

        with self._lock:
            try:
                cursor = self._conn.execute("""
                    INSERT INTO client_profiles
                    (title, version, client_directory, main_class, jvm_version, asset_index, loader)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                """, (title, version, client_directory, main_class, jvm_version, asset_index, loader))
            except sqlite3.IntegrityError as e:
                raise StoreError(f"Profile for directory '{client_directory}' already exists") from e

            row = self._conn.execute(
                "SELECT * FROM client_profiles WHERE id = ?", (cursor.lastrowid,)
            ).fetchone()
        return ClientProfile.from_row(row)

    def find_by_directory(self, client_directory: str) -> Optional[ClientProfile]:
        """Find the profile that owns a client directory."""
        self._check_closed()

        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM client_profiles WHERE client_directory = ?",
                (client_directory,),
            ).fetchone()
        return ClientProfile.from_row(row) if row else None

    def find_profile_for_version(self, version: str) -> Optional[ClientProfile]:
        """Find the first profile configured for a version string."""
        self._check_closed()

        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM client_profiles WHERE version = ? ORDER BY id LIMIT 1",
                (version,),
            ).fetchone()
        return ClientProfile.from_row(row) if row else None

    def list_profiles(self) -> List[ClientProfile]:
        """Get all profiles."""
        self._check_closed()

        with self._lock:
            rows = self._conn.execute("SELECT * FROM client_profiles ORDER BY id").fetchall()
        return [ClientProfile.from_row(row) for row in rows]

    def close(self) -> None:
        """Close the store."""
        with self._lock:
            if self._conn and not self._closed:
                self._conn.close()
            self._closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
