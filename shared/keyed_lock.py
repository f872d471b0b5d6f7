"""
Per-key mutual exclusion.

Handlers for different volumes run in parallel; handlers for the same key
(volume ID or volume name) run one at a time.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List


class KeyedLock:
    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._waiters: Dict[str, int] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            self._waiters[key] = self._waiters.get(key, 0) + 1

        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._waiters[key] -= 1
                if self._waiters[key] == 0:
                    del self._waiters[key]
                    del self._locks[key]

    def active_keys(self) -> List[str]:
        with self._guard:
            return sorted(self._locks)
