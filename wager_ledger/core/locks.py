"""
Process-wide keyed locks for wager-affecting operations.

Operations name the entities they touch (``balance:42``, ``table:table_ab12``,
``parlay:parlay_cd34``) and hold all of them for the whole unit of work.
Keys are always acquired in sorted order and the locks are re-entrant, so an
operation that nests another (join_table -> debit) never deadlocks. Entries
are reference counted and dropped once nobody holds or waits on them.

On PostgreSQL the services additionally take ``SELECT ... FOR UPDATE`` row
locks, which extend the same guarantee across processes.
"""
import threading
from contextlib import contextmanager
from typing import Dict, Iterator


def balance_key(user_id: int) -> str:
    return f"balance:{user_id}"


def table_key(table_id: str) -> str:
    return f"table:{table_id}"


def hand_key(hand_id: str) -> str:
    return f"hand:{hand_id}"


def event_key(event_id: str) -> str:
    return f"event:{event_id}"


def parlay_key(parlay_id: str) -> str:
    return f"parlay:{parlay_id}"


class _Entry:
    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.holders = 0


class KeyedLocks:
    """Registry of re-entrant locks for the entity keys currently in use."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: Dict[str, _Entry] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    def _checkout(self, key: str) -> _Entry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.holders += 1
            return entry

    def _checkin(self, key: str, entry: _Entry) -> None:
        with self._guard:
            entry.holders -= 1
            if entry.holders == 0:
                del self._entries[key]

    @contextmanager
    def hold(self, *keys: str) -> Iterator[None]:
        """Hold every lock in ``keys`` for the duration of the block."""
        acquired = []
        try:
            for key in sorted(set(keys)):
                entry = self._checkout(key)
                try:
                    entry.lock.acquire()
                except BaseException:
                    self._checkin(key, entry)
                    raise
                acquired.append((key, entry))
            yield
        finally:
            for key, entry in reversed(acquired):
                entry.lock.release()
                self._checkin(key, entry)
