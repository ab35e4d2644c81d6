"""Per-key debouncing with one pending timer per key."""

import logging
import threading
from typing import Callable, Dict, List, Tuple

logger = logging.getLogger(__name__)


class KeyedDebouncer:
    """
    Coalesces bursts of triggers into one callback per key.

    Each key owns at most one pending timer. Scheduling a key that already
    has a timer cancels it and starts a new one, so a burst of N triggers
    inside the delay window results in exactly one callback. Keys are
    independent; callbacks for different keys may run concurrently.
    """

    def __init__(self, callback: Callable[[str], None], delay: float):
        """
        Initialize the debouncer.

        Args:
            callback: Called with the key once its timer expires
            delay: Quiet period in seconds
        """
        self.callback = callback
        self.delay = delay
        self._timers: Dict[str, Tuple[int, threading.Timer]] = {}
        self._generation = 0
        self._lock = threading.Lock()

    def schedule(self, key: str) -> None:
        """Start, or restart, the timer for a key."""
        with self._lock:
            pending = self._timers.pop(key, None)
            if pending is not None:
                pending[1].cancel()

            self._generation += 1
            generation = self._generation
            timer = threading.Timer(self.delay, self._fire, args=(key, generation))
            timer.daemon = True
            self._timers[key] = (generation, timer)
            timer.start()

    def _fire(self, key: str, generation: int) -> None:
        with self._lock:
            pending = self._timers.get(key)
            # A restart between expiry and this point supersedes us
            if pending is None or pending[0] != generation:
                return
            del self._timers[key]

        try:
            self.callback(key)
        except Exception as e:
            logger.error(f"Debounced callback failed for {key}: {e}")

    def cancel(self, key: str) -> bool:
        """
        Cancel the pending timer of a key.

        Returns:
            True if a timer was pending
        """
        with self._lock:
            pending = self._timers.pop(key, None)
        if pending is None:
            return False
        pending[1].cancel()
        return True

    def cancel_all(self) -> int:
        """
        Cancel every pending timer.

        Returns:
            Number of timers cancelled
        """
        with self._lock:
            pending = list(self._timers.values())
            self._timers.clear()
        for _, timer in pending:
            timer.cancel()
        return len(pending)

    def pending_keys(self) -> List[str]:
        """Keys that currently have a timer running."""
        with self._lock:
            return list(self._timers.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._timers)
