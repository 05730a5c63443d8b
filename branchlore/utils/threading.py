"""Threading utilities for serializing work per key."""

from contextlib import contextmanager
from threading import Lock
from typing import Dict, Iterator


class KeyedLock:
    """A family of locks, one per key, created on first use.

    Holding the lock for one key never blocks work on another key.
    """

    def __init__(self):
        self._locks: Dict[str, Lock] = {}
        self._guard = Lock()  # Protects the lock table itself

    def _lock_for(self, key: str) -> Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        lock = self._lock_for(key)
        with lock:
            yield

    def is_held(self, key: str) -> bool:
        with self._guard:
            lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
