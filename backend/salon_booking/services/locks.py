"""
In-process keyed locks.

The booking core serializes writers per (specialist, date) slice and per
reservation. Locks are created on demand and dropped once nobody holds or
waits for them, so the registry does not grow with the calendar.
"""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Iterable, Iterator

logger = logging.getLogger(__name__)


class LockTimeout(Exception):
    """A keyed lock could not be acquired within the bound."""


def day_key(specialist_id: int, work_date) -> str:
    return f"day:{specialist_id}:{work_date.isoformat()}"


def reservation_key(reservation_id: int) -> str:
    return f"reservation:{reservation_id}"


class KeyedLockRegistry:
    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, list] = {}  # key -> [Lock, users]

    def _checkout(self, key: str) -> threading.Lock:
        with self._guard:
            slot = self._locks.get(key)
            if slot is None:
                slot = self._locks[key] = [threading.Lock(), 0]
            slot[1] += 1
            return slot[0]

    def _checkin(self, key: str) -> None:
        with self._guard:
            slot = self._locks[key]
            slot[1] -= 1
            if slot[1] == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, keys: Iterable[str], timeout: float) -> Iterator[None]:
        """
        Hold every key for the duration of the block.

        Keys are taken in sorted order so two callers sharing keys cannot
        deadlock. Raises LockTimeout if the total wait exceeds timeout.
        """
        ordered = sorted(set(keys))
        deadline = time.monotonic() + timeout
        held: list[tuple[str, threading.Lock]] = []
        try:
            for key in ordered:
                lock = self._checkout(key)
                remaining = deadline - time.monotonic()
                if remaining <= 0 or not lock.acquire(timeout=remaining):
                    self._checkin(key)
                    logger.warning(f"Lock wait exceeded {timeout}s for {key}")
                    raise LockTimeout(key)
                held.append((key, lock))
            yield
        finally:
            for key, lock in reversed(held):
                lock.release()
                self._checkin(key)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


# Shared by every BookingManager in this process
claim_locks = KeyedLockRegistry()
