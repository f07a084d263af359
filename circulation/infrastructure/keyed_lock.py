from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Generic, Hashable, Iterator, TypeVar

K = TypeVar("K", bound=Hashable)


class KeyedLock(Generic[K]):
    """Lazily created re-entrant locks, one per key.

    - Operations on different keys never contend with each other.
    - The registry itself is guarded by a short-lived lock only while a key's
      lock is looked up or created.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[K, threading.RLock] = {}

    def _lock_for(self, key: K) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: K) -> Iterator[None]:
        lock = self._lock_for(key)
        with lock:
            yield

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
