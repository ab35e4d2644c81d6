"""
Bounded worker pool for asset object downloads.
"""

import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional

from .config import DistributionConfig
from .fetcher import Fetcher
from .models import AssetObject, AssetReport, ProgressCallback

logger = logging.getLogger(__name__)


def parse_asset_index(index: Dict) -> List[AssetObject]:
    """Turn an asset index document into AssetObject entries, in index order."""
    return [
        AssetObject(name=name, hash=entry["hash"].lower(), size=int(entry.get("size", 0)))
        for name, entry in (index.get("objects") or {}).items()
    ]


class AssetPool:
    """
    Downloads asset objects with a fixed number of worker threads.

    Workers claim the next entry from a shared cursor until the list is
    exhausted. Entries that share a hash map to the same object file; a
    per-hash lock makes the later claim find the finished file and count
    it as skipped.
    """

    def __init__(self, fetcher: Fetcher, config: Optional[DistributionConfig] = None):
        self.fetcher = fetcher
        self.config = config or fetcher.config

        self._lock = threading.Lock()
        self._hash_locks: Dict[str, threading.Lock] = {}

    def _hash_lock(self, object_hash: str) -> threading.Lock:
        with self._lock:
            lock = self._hash_locks.get(object_hash)
            if lock is None:
                lock = threading.Lock()
                self._hash_locks[object_hash] = lock
            return lock

    def download(
        self,
        objects: List[AssetObject],
        objects_dir: Path,
        progress: Optional[ProgressCallback] = None,
    ) -> AssetReport:
        """
        Download every object into ``objects_dir/{hash[:2]}/{hash}``.

        Args:
            objects: Entries to fetch
            objects_dir: Destination objects directory
            progress: Called every ``progress_every`` completions and at the end

        Returns:
            AssetReport with downloaded/skipped/errors counters
        """
        report = AssetReport()
        total = len(objects)
        if total == 0:
            return report

        state = {"cursor": 0, "completed": 0}
        every = max(1, self.config.progress_every)
        base_url = self.config.resources_base_url.rstrip("/")

        def worker():
            while True:
                with self._lock:
                    if state["cursor"] >= total:
                        return
                    obj = objects[state["cursor"]]
                    state["cursor"] += 1

                outcome = "errors"
                with self._hash_lock(obj.hash):
                    try:
                        fetched = self.fetcher.fetch_with_verification(
                            f"{base_url}/{obj.object_path}",
                            objects_dir / obj.object_path,
                            obj.hash,
                            "sha1",
                        )
                        outcome = "downloaded" if fetched else "skipped"
                    except Exception as e:
                        logger.warning(f"Failed to download asset {obj.name}: {e}")

                with self._lock:
                    setattr(report, outcome, getattr(report, outcome) + 1)
                    state["completed"] += 1
                    completed = state["completed"]
                    # Reported under the lock so callbacks arrive in order
                    if progress and (completed % every == 0 or completed == total):
                        try:
                            progress(
                                "assets",
                                completed * 100 // total,
                                f"Processed {completed}/{total} assets",
                            )
                        except Exception as e:
                            logger.debug(f"Progress callback failed: {e}")

        workers = max(1, min(self.config.asset_concurrency, total))
        threads = [
            threading.Thread(target=worker, name=f"asset-worker-{i}", daemon=True)
            for i in range(workers)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        logger.info(
            f"Assets: {report.downloaded} downloaded, {report.skipped} skipped, "
            f"{report.errors} errors ({workers} workers)"
        )
        return report
