"""
Integrity verification for the catalog package.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Optional

from .config import CatalogConfig
from .events import EventSink, publish
from .exceptions import VersionNotFoundError
from .models import CatalogEvent, ClientFile, SyncAction, VerifyResult, compute_file_hash
from .store import CatalogStore

logger = logging.getLogger(__name__)


class IntegrityVerifier:
    """Re-hashes cataloged files and records whether they still match."""

    def __init__(
        self,
        store: CatalogStore,
        config: Optional[CatalogConfig] = None,
        sink: Optional[EventSink] = None,
    ):
        self.store = store
        self.config = config or store.config
        self.sink = sink

    def _resolve_path(self, row: ClientFile, version: str) -> Path:
        client_directory = row.client_directory
        # NOT NULL still admits ''; such rows live under the profile's directory
        if not client_directory:
            profile = self.store.find_profile_for_version(version)
            client_directory = profile.client_directory if profile else version
        return self.config.client_dir(client_directory) / row.file_path

    def _check(self, row: ClientFile, path: Path) -> bool:
        try:
            if not path.is_file():
                logger.warning(f"Integrity check: missing file {path}")
                return False
            size = path.stat().st_size
            file_hash = compute_file_hash(path, self.config.hash_algorithm)
        except OSError as e:
            logger.warning(f"Integrity check: cannot read {path}: {e}")
            return False

        if file_hash != row.file_hash or size != row.file_size:
            logger.warning(f"Integrity check: mismatch for {path}")
            return False
        return True

    def verify_file(
        self,
        version_id: int,
        file_path: str,
        client_directory: Optional[str] = None,
    ) -> bool:
        """
        Verify one cataloged file against disk.

        Args:
            version_id: Owning version
            file_path: Catalog-relative path
            client_directory: Directory to pick when the path exists under several

        Returns:
            True if hash and size match; False otherwise or if the row is unknown
        """
        if client_directory is not None:
            row = self.store.get_file(version_id, client_directory, file_path)
        else:
            row = self.store.find_file(version_id, file_path)
        version_row = self.store.get_version_by_id(version_id)
        if row is None or version_row is None:
            logger.debug(f"Integrity check: no catalog row for {file_path}")
            return False

        return self._verify_row(row, version_row.version)

    def _verify_row(self, row: ClientFile, version: str) -> bool:
        valid = self._check(row, self._resolve_path(row, version))
        checked_at = datetime.now()
        self.store.set_verification(row.id, valid, not valid, checked_at)

        row.verified = valid
        row.integrity_check_failed = not valid
        row.last_verified = checked_at
        publish(self.sink, CatalogEvent(
            version=version,
            version_id=row.version_id,
            action=SyncAction.INTEGRITY_CHECK,
            files=[row.to_payload()],
        ))
        return valid

    def verify_version(self, version: str, max_workers: Optional[int] = None) -> VerifyResult:
        """
        Verify every cataloged file of a version.

        Args:
            version: Version string
            max_workers: Check files on a thread pool of this size when > 1

        Returns:
            VerifyResult with total/valid/invalid counts

        Raises:
            VersionNotFoundError: If the version is not cataloged
        """
        version_row = self.store.get_version(version)
        if version_row is None:
            raise VersionNotFoundError(version)

        rows = self.store.find_files(version_row.id)
        if max_workers and max_workers > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                outcomes = list(pool.map(lambda r: self._verify_row(r, version), rows))
        else:
            outcomes = [self._verify_row(row, version) for row in rows]

        valid = sum(1 for ok in outcomes if ok)
        result = VerifyResult(total=len(rows), valid=valid, invalid=len(rows) - valid)
        logger.info(
            f"Verified {version}: {result.valid}/{result.total} valid, {result.invalid} invalid"
        )
        return result
