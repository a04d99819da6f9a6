"""Per-key mutual exclusion.

Used to serialize the check-then-create section of folder resolution for one
(parent_id, name) pair while unrelated pairs proceed in parallel.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator, List


class KeyedLocks:
    """A registry of locks, one per key, created on demand.

    Entries are reference counted and dropped when the last holder or waiter
    releases, so the registry only ever holds keys that are in use.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.Lock] = {}
        self._users: Dict[Hashable, int] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        """Hold the lock for ``key`` for the duration of the with-block."""
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            self._users[key] = self._users.get(key, 0) + 1

        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._users[key] -= 1
                if self._users[key] == 0:
                    del self._users[key]
                    del self._locks[key]

    def active_keys(self) -> List[Hashable]:
        """Keys currently held or waited on."""
        with self._guard:
            return list(self._locks)
