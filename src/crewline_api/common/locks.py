"""Per-key mutual exclusion for in-process mutations."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field


@dataclass(slots=True)
class _Entry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    holders: int = 0


class KeyedLock:
    """Mutex table keyed by arbitrary strings.

    Locks are created on first use and dropped once no thread holds or waits
    for them. :meth:`hold` acquires several keys in sorted order, so callers
    that always go through it cannot deadlock on each other.
    """

    def __init__(self) -> None:
        self._entries: dict[str, _Entry] = {}
        self._guard = threading.Lock()

    def _checkout(self, key: str) -> _Entry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = _Entry()
                self._entries[key] = entry
            entry.holders += 1
            return entry

    def _release(self, key: str, entry: _Entry) -> None:
        entry.lock.release()
        with self._guard:
            entry.holders -= 1
            if entry.holders == 0:
                self._entries.pop(key, None)

    @contextmanager
    def hold(self, *keys: str) -> Iterator[None]:
        ordered = sorted(set(keys))
        acquired: list[tuple[str, _Entry]] = []
        try:
            for key in ordered:
                entry = self._checkout(key)
                try:
                    entry.lock.acquire()
                except BaseException:
                    with self._guard:
                        entry.holders -= 1
                        if entry.holders == 0:
                            self._entries.pop(key, None)
                    raise
                acquired.append((key, entry))
            yield
        finally:
            for key, entry in reversed(acquired):
                self._release(key, entry)

    def active_keys(self) -> int:
        with self._guard:
            return len(self._entries)


def role_key(role_id: object) -> str:
    return f"role:{role_id}"


def role_name_key(name: str) -> str:
    return f"role-name:{name}"


def user_key(user_id: object) -> str:
    return f"user:{user_id}"


def user_email_key(email: str) -> str:
    return f"user-email:{email.strip().lower()}"


__all__ = ["KeyedLock", "role_key", "role_name_key", "user_email_key", "user_key"]
