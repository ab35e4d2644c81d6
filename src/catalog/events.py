"""
Event sinks for the catalog package.

Catalog changes are published as fire-and-forget notifications. The
activity sink persists them to an SQLite ``activity_log`` table, which
``DatabaseLogHandler`` can also feed from the logging module.
"""

import json
import logging
import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from .models import CLIENT_FILES_UPDATED, CatalogEvent

logger = logging.getLogger(__name__)


class EventSink(ABC):
    """Receiver of catalog notifications."""

    @abstractmethod
    def notify(self, event: str, payload: Dict[str, Any]) -> None:
        """
        Deliver one notification.

        Args:
            event: Event name (e.g. 'client:files-updated')
            payload: JSON-serializable body
        """
        pass


class NullEventSink(EventSink):
    """Sink that drops every notification."""

    def notify(self, event: str, payload: Dict[str, Any]) -> None:
        pass


class CallbackEventSink(EventSink):
    """Sink that forwards notifications to a callable."""

    def __init__(self, callback: Callable[[str, Dict[str, Any]], None]):
        self.callback = callback

    def notify(self, event: str, payload: Dict[str, Any]) -> None:
        self.callback(event, payload)


class RecordingEventSink(EventSink):
    """Sink that keeps notifications in memory, in arrival order."""

    def __init__(self):
        self._lock = threading.Lock()
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def notify(self, event: str, payload: Dict[str, Any]) -> None:
        with self._lock:
            self.events.append((event, payload))

    def actions(self) -> List[str]:
        """Action names of the recorded payloads."""
        with self._lock:
            return [payload.get("action") for _, payload in self.events]


class ActivityEventSink(EventSink):
    """Persists notifications to the activity_log table of an SQLite database."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._ensure_table()

    def _ensure_table(self) -> None:
        """Create activity_log table if it doesn't exist."""
        conn = sqlite3.connect(str(self.db_path))
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS activity_log (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    type TEXT NOT NULL,
                    message TEXT NOT NULL,
                    path TEXT,
                    created_at REAL DEFAULT (strftime('%s', 'now'))
                )
            """)
            conn.commit()
        finally:
            conn.close()

    def log(self, activity_type: str, message: str, path: Optional[str] = None) -> None:
        """
        Append one row to the activity_log table.

        Args:
            activity_type: Category of activity (e.g. 'file_added', 'warning')
            message: Human-readable description or JSON body
            path: Optional version or file path related to the activity
        """
        conn = sqlite3.connect(str(self.db_path))
        try:
            conn.execute(
                "INSERT INTO activity_log (type, message, path, created_at) VALUES (?, ?, ?, ?)",
                (activity_type, message, path, time.time()),
            )
            conn.commit()
        finally:
            conn.close()

    def notify(self, event: str, payload: Dict[str, Any]) -> None:
        activity_type = payload.get("action", event)
        self.log(activity_type, json.dumps(payload), payload.get("version"))

    def recent(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Most recent activity rows, newest first."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            rows = conn.execute(
                "SELECT * FROM activity_log ORDER BY id DESC LIMIT ?", (limit,)
            ).fetchall()
        finally:
            conn.close()
        return [dict(row) for row in rows]


def publish(sink: Optional[EventSink], event: CatalogEvent) -> None:
    """
    Send a catalog event to a sink without letting sink failures propagate.
    """
    if sink is None:
        return
    try:
        sink.notify(CLIENT_FILES_UPDATED, event.to_payload())
    except Exception as e:
        logger.warning(f"Event sink failed for {event.action.value} on {event.version}: {e}")


class DatabaseLogHandler(logging.Handler):
    """Logging handler that writes log records to the activity_log table."""

    def __init__(self, db_path: Path):
        super().__init__()
        self._activity = ActivityEventSink(db_path)

    def emit(self, record: logging.LogRecord) -> None:
        """Write log record to database."""
        level_map = {
            logging.DEBUG: 'debug',
            logging.INFO: 'info',
            logging.WARNING: 'warning',
            logging.ERROR: 'error',
            logging.CRITICAL: 'critical',
        }
        activity_type = level_map.get(record.levelno, 'info')
        message = self.format(record)
        path = getattr(record, 'path', None)

        try:
            self._activity.log(activity_type, message, path)
        except Exception:
            self.handleError(record)
