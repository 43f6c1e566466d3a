import threading
from contextlib import contextmanager
from typing import Dict, Hashable


class KeyedLocks:
    """One lock per key, created on first use.

    Entries are never evicted; the key space is the set of books, users
    and settings rows, which stays small for a single service process.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.Lock] = {}

    def lock_for(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, key: Hashable):
        lock = self.lock_for(key)
        with lock:
            yield
