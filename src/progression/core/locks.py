"""Per-key mutual exclusion for level ledger writes."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Generator, Hashable

import structlog

from progression.core.errors import ConflictError

logger = structlog.get_logger(__name__)


@dataclass
class _Entry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0  # holders plus waiters


class KeyedLockRegistry:
    """One lock per key, created on first use and dropped when unused.

    Keys are (student_id, level_id) pairs; a single writer per pair at
    a time.
    """

    def __init__(self):
        self._entries: dict[Hashable, _Entry] = {}
        self._guard = threading.Lock()

    def __len__(self) -> int:
        """Number of keys currently held or waited on."""
        with self._guard:
            return len(self._entries)

    def _checkout(self, key: Hashable) -> _Entry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.users += 1
            return entry

    def _checkin(self, key: Hashable, entry: _Entry) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0:
                del self._entries[key]

    def is_locked(self, key: Hashable) -> bool:
        """Whether some writer currently holds key."""
        with self._guard:
            entry = self._entries.get(key)
        return entry is not None and entry.lock.locked()

    @contextmanager
    def hold(self, key: Hashable, timeout: float) -> Generator[None, None, None]:
        """Hold the lock for key.

        Args:
            key: Lock key
            timeout: Seconds to wait; 0 or less means do not wait

        Raises:
            ConflictError: If the lock could not be acquired in time
        """
        entry = self._checkout(key)
        try:
            if timeout > 0:
                acquired = entry.lock.acquire(timeout=timeout)
            else:
                acquired = entry.lock.acquire(blocking=False)

            if not acquired:
                logger.warning("ledger.lock_timeout", key=key, timeout=timeout)
                raise ConflictError(f"Level ledger entry {key} is locked by another writer")

            try:
                yield
            finally:
                entry.lock.release()
        finally:
            self._checkin(key, entry)
