"""Per-target command locks.

Two restarts of the same site would otherwise interleave their Stop/Start
calls. Commands take a lock keyed by ``(action, target)`` and a concurrent
duplicate is rejected instead of queued.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Tuple

from iis_manager.core.exceptions import ResourceConflictError


class TargetLockRegistry:
    """In-process map of (action, lowercased target) -> lock."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Tuple[str, str], threading.Lock] = {}
        self._holders: Dict[Tuple[str, str], int] = {}

    @contextmanager
    def hold(self, action: str, target: str) -> Iterator[None]:
        """Hold the lock for one command, or raise ResourceConflictError if busy."""
        key = (action, target.lower())
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._holders[key] = self._holders.get(key, 0) + 1

        acquired = lock.acquire(blocking=False)
        try:
            if not acquired:
                raise ResourceConflictError(
                    f"{action} is already in progress for '{target}'."
                )
            yield
        finally:
            if acquired:
                lock.release()
            with self._guard:
                self._holders[key] -= 1
                if self._holders[key] == 0:
                    del self._holders[key]
                    del self._locks[key]

    def is_held(self, action: str, target: str) -> bool:
        key = (action, target.lower())
        with self._guard:
            lock = self._locks.get(key)
            return lock is not None and lock.locked()


command_locks = TargetLockRegistry()
