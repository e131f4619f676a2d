"""
PulseMesh Bridge – shared mutable state

SyncState    last emitted half-second bucket of the media position signal
ErrorCounter consecutive transport failures since the last good send

Each object carries its own lock; the sync tick path and the error path
never contend with each other.
"""

import math
import threading
from typing import Optional


def half_second_bucket(seconds: float) -> int:
    return math.floor(seconds * 2.0)


class SyncState:
    """Check-and-set guard for media position ticks."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last_bucket: Optional[int] = None

    @property
    def last_bucket(self) -> Optional[int]:
        with self._lock:
            return self._last_bucket

    def should_emit(self, seconds: float) -> bool:
        """
        Record the bucket for `seconds` and return True if it differs from
        the previously recorded one. Two callers with the same bucket can
        never both get True.
        """
        bucket = half_second_bucket(seconds)
        with self._lock:
            if bucket == self._last_bucket:
                return False
            self._last_bucket = bucket
            return True


class ErrorCounter:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._count = 0

    @property
    def count(self) -> int:
        with self._lock:
            return self._count

    def record_failure(self) -> int:
        """Increment and return the new consecutive failure count."""
        with self._lock:
            self._count += 1
            return self._count

    def reset(self) -> None:
        with self._lock:
            self._count = 0
