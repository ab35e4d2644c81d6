"""
Catalog reconciliation for the catalog package.

Brings catalog rows for a client directory in line with what is on disk.
A reconciliation pass only ever adds or updates rows; removal goes through
``CatalogReconciler.delete_file`` alone.
"""

import logging
import threading
from typing import Dict, Optional

from .config import CatalogConfig
from .events import EventSink, publish
from .exceptions import VersionNotFoundError
from .models import (
    CatalogEvent,
    ClientProfile,
    ClientVersion,
    SyncAction,
    SyncResult,
    SyncStats,
    normalize_relative_path,
)
from .scanner import CLIENT_JAR, DirectoryScanner
from .store import CatalogStore

logger = logging.getLogger(__name__)


class CatalogReconciler:
    """
    Reconciles scanned client directories into the catalog store.

    Usage:
        reconciler = CatalogReconciler(store, config, sink=ActivityEventSink(db))
        result = reconciler.sync_directory("forge_1_20_1")
    """

    def __init__(
        self,
        store: CatalogStore,
        config: Optional[CatalogConfig] = None,
        scanner: Optional[DirectoryScanner] = None,
        sink: Optional[EventSink] = None,
    ):
        self.store = store
        self.config = config or store.config
        self.scanner = scanner or DirectoryScanner(self.config)
        self.sink = sink
        self._dir_locks: Dict[str, threading.Lock] = {}
        self._dir_locks_guard = threading.Lock()

    def _directory_lock(self, client_directory: str) -> threading.Lock:
        with self._dir_locks_guard:
            lock = self._dir_locks.get(client_directory)
            if lock is None:
                lock = threading.Lock()
                self._dir_locks[client_directory] = lock
            return lock

    def _ensure_version(self, version: str, profile: Optional[ClientProfile]) -> ClientVersion:
        if profile is not None:
            title = profile.title
            main_class = profile.main_class
            jvm_version = profile.jvm_version
        else:
            title = self.config.default_title_template.format(version=version)
            main_class = self.config.default_main_class
            jvm_version = self.config.default_jvm_version

        row, _ = self.store.get_or_create_version(version, title, main_class, jvm_version)
        return row

    def sync_directory(self, client_directory: str) -> SyncResult:
        """
        Reconcile a top-level directory of the updates root.

        The owning profile decides the version; without one the directory
        name is used as the version string.
        """
        profile = self.store.find_by_directory(client_directory)
        version = profile.version if profile else client_directory
        return self.reconcile(client_directory, version, profile)

    def reconcile(
        self,
        client_directory: str,
        version: str,
        profile: Optional[ClientProfile] = None,
    ) -> SyncResult:
        """
        Scan a client directory and upsert every file into the catalog.

        Args:
            client_directory: Directory name under the updates root
            version: Version string the files belong to
            profile: Profile supplying defaults for a new version row

        Returns:
            SyncResult with added/updated/errors counters
        """
        root = self.config.client_dir(client_directory)
        result = SyncResult()

        if not root.is_dir():
            logger.debug(f"Client directory does not exist: {root}")
            return result

        with self._directory_lock(client_directory):
            scanned = self.scanner.scan(root)
            if not scanned:
                logger.debug(f"No files found in {root}")
                return result

            version_row = self._ensure_version(version, profile)
            scanned_paths = set()

            for item in scanned:
                scanned_paths.add(item.relative_path)
                try:
                    row, action = self.store.upsert_file(version_row.id, client_directory, item)
                    if item.relative_path == CLIENT_JAR:
                        self.store.update_client_jar(version_row.id, item.hash, item.size)
                except Exception as e:
                    result.errors += 1
                    logger.error(f"Failed to sync {client_directory}/{item.relative_path}: {e}")
                    continue

                if action is None:
                    continue
                if action == SyncAction.FILE_ADDED:
                    result.added += 1
                else:
                    result.updated += 1
                publish(self.sink, CatalogEvent(
                    version=version_row.version,
                    version_id=version_row.id,
                    action=action,
                    files=[row.to_payload()],
                ))

            for row in self.store.find_files(version_row.id, client_directory):
                if row.file_path not in scanned_paths:
                    logger.warning(
                        f"Cataloged file missing from disk, keeping row: "
                        f"{client_directory}/{row.file_path}"
                    )

            stats = self.store.get_stats(version_row.id)
            files = [row.to_payload() for row in self.store.find_files(version_row.id)]

        summary = result.to_dict()
        summary.update({
            "totalFiles": stats.total_files,
            "verifiedFiles": stats.verified_files,
            "failedFiles": stats.failed_files,
        })
        publish(self.sink, CatalogEvent(
            version=version_row.version,
            version_id=version_row.id,
            action=SyncAction.SYNC,
            files=files,
            stats=summary,
        ))

        logger.info(
            f"Synced {client_directory} ({version}): "
            f"{result.added} added, {result.updated} updated, {result.errors} errors"
        )
        return result

    def delete_file(self, version_id: int, client_directory: str, file_path: str) -> bool:
        """
        Remove one catalog row.

        A row that is already gone counts as success.

        Returns:
            True on success, False if the store rejected the delete
        """
        file_path = normalize_relative_path(file_path)
        try:
            row = self.store.get_file(version_id, client_directory, file_path)
            if row is None:
                logger.debug(f"Already deleted: {client_directory}/{file_path}")
                return True
            self.store.delete_file(row.id)
        except Exception as e:
            logger.error(f"Failed to delete {client_directory}/{file_path}: {e}")
            return False

        version_row = self.store.get_version_by_id(version_id)
        publish(self.sink, CatalogEvent(
            version=version_row.version if version_row else "",
            version_id=version_id,
            action=SyncAction.FILE_DELETED,
            files=[row.to_payload()],
        ))
        logger.info(f"Deleted catalog row {client_directory}/{file_path}")
        return True

    def delete_path(self, client_directory: str, file_path: str) -> bool:
        """
        Remove the row for a path that disappeared from a client directory.

        Resolves the version through the directory's profile, falling back
        to the directory name. Unknown versions have nothing to delete.
        """
        profile = self.store.find_by_directory(client_directory)
        version = profile.version if profile else client_directory
        version_row = self.store.get_version(version)
        if version_row is None:
            logger.debug(f"No cataloged version for {client_directory}, nothing to delete")
            return True
        return self.delete_file(version_row.id, client_directory, file_path)

    def get_sync_stats(self, version: str) -> SyncStats:
        """
        Verification state of a version.

        Raises:
            VersionNotFoundError: If the version is not cataloged
        """
        version_row = self.store.get_version(version)
        if version_row is None:
            raise VersionNotFoundError(version)
        return self.store.get_stats(version_row.id)
