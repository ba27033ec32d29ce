from __future__ import annotations

from threading import Lock
from typing import List, Optional

from models.records import Reading
from settings import get_settings


class RecencyBuffer:
    """Fixed-size window over the most recently received readings."""

    def __init__(self, capacity: int = 10) -> None:
        if capacity < 1:
            raise ValueError("Buffer capacity must be at least 1.")
        self.capacity = capacity
        self._items: List[Reading] = []
        self._lock = Lock()

    def append(self, reading: Reading) -> None:
        with self._lock:
            if len(self._items) == self.capacity:
                self._items.pop(0)
            self._items.append(reading)

    def snapshot(self) -> Optional[Reading]:
        """Return the newest reading, or ``None`` while nothing has arrived."""

        with self._lock:
            if not self._items:
                return None
            return self._items[-1]

    def readings(self) -> List[Reading]:
        """Return the buffered readings oldest first."""

        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


def build_default_buffer(capacity: Optional[int] = None) -> RecencyBuffer:
    settings = get_settings()
    size = settings.buffer_capacity if capacity is None else capacity
    return RecencyBuffer(capacity=size)
