from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class KeyedLockRegistry:
    """One mutex per key, created on first use and kept for the process lifetime.

    Entries are never evicted, so memory grows with the number of distinct keys
    ever seen. Keys are ``entity_type:entity_id:action`` triples, which stay
    bounded by the set of live entities.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self.lock_for(key):
            yield


workflow_locks = KeyedLockRegistry()
