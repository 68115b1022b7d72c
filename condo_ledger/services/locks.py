"""Per-apartment serialization of allocation writes.

Two payments against the same apartment must never walk its charges at the
same time. Within one process this registry hands out one lock per
apartment; across processes the allocation service also selects the
apartment row FOR UPDATE.
"""

import threading
from collections import defaultdict
from contextlib import contextmanager
from typing import Iterator


class ApartmentLocks:
    """Registry of re-entrant locks keyed by apartment id."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[int, threading.RLock] = defaultdict(threading.RLock)

    def _lock_for(self, apartment_id: int) -> threading.RLock:
        with self._guard:
            return self._locks[apartment_id]

    @contextmanager
    def hold(self, apartment_id: int) -> Iterator[None]:
        """Hold the apartment's lock for the duration of the block."""
        lock = self._lock_for(apartment_id)
        with lock:
            yield


# Process-wide registry shared by every service instance
apartment_locks = ApartmentLocks()


__all__ = ["ApartmentLocks", "apartment_locks"]
