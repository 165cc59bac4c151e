"""
Operation Log
=============

Bounded, newest-first, in-memory log of ingestion events for live
observability. Not persisted; contents reset with the process.
"""

import threading
from collections import deque
from typing import Any, Deque, Dict, List, Optional

from ..database.models import LogEntry


DEFAULT_CAPACITY = 200


class OperationLog:
    """Fixed-capacity ring buffer of LogEntry records.

    Owned by the process entry point and handed to collaborators. Every
    operation takes the instance lock, so appends from concurrent requests
    keep the capacity bound and the newest-first order.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._entries: Deque[LogEntry] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def append(self, type: str, action: str, details: Optional[Dict[str, Any]] = None) -> LogEntry:
        """Record an event, evicting the oldest entry when full."""
        entry = LogEntry(type=type, action=action, details=dict(details or {}))
        with self._lock:
            # appendleft on a bounded deque drops from the right (oldest) end
            self._entries.appendleft(entry)
        return entry

    def entries(self) -> List[LogEntry]:
        """Snapshot of the buffer, newest first."""
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __repr__(self) -> str:
        return f"OperationLog({len(self)}/{self.capacity})"
