from __future__ import annotations

import logging
import os
import threading
from collections import deque
from datetime import datetime, timezone
from typing import Deque, Dict, List, Optional

try:
    LOG_BUFFER_SIZE = int(os.getenv("LOG_BUFFER_SIZE", "500"))
except Exception:
    LOG_BUFFER_SIZE = 500


class RecentLogHandler(logging.Handler):
    """Keeps the latest records in memory so the UI log viewer can poll them."""

    def __init__(self, capacity: int = LOG_BUFFER_SIZE, level: int = logging.INFO) -> None:
        super().__init__(level=level)
        self._entries: Deque[Dict[str, str]] = deque(maxlen=max(1, capacity))
        self._entries_lock = threading.Lock()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry = {
                "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
            }
        except Exception:
            self.handleError(record)
            return
        with self._entries_lock:
            self._entries.append(entry)

    def entries(self, limit: Optional[int] = None) -> List[Dict[str, str]]:
        with self._entries_lock:
            items = list(self._entries)
        if limit is not None and limit >= 0:
            items = items[-limit:] if limit else []
        return items

    def clear(self) -> None:
        with self._entries_lock:
            self._entries.clear()


_handler: Optional[RecentLogHandler] = None


def install(logger_name: str = "glimpse") -> RecentLogHandler:
    """Attach the shared buffer to the package logger once and return it."""
    global _handler
    if _handler is None:
        _handler = RecentLogHandler()
        logger = logging.getLogger(logger_name)
        logger.addHandler(_handler)
        if logger.level == logging.NOTSET:
            logger.setLevel(min(logging.INFO, logging.getLogger().getEffectiveLevel()))
    return _handler
