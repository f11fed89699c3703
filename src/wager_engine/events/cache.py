"""In-process TTL cache for provider event lookups."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol


class TTLCache(Protocol):
    """Key/value cache whose entries expire after ``ttl_s`` seconds."""

    ttl_s: float

    def get(self, key: str) -> Any | None:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError


@dataclass
class _Entry:
    value: Any
    stored_at: float


class InMemoryTTLCache:
    """Process-local cache; not shared between workers."""

    def __init__(self, ttl_s: float = 15.0, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_s = ttl_s
        self._clock = clock
        self._entries: dict[str, _Entry] = {}

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.stored_at >= self.ttl_s:
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: Any) -> None:
        now = self._clock()
        self._prune(now)
        self._entries[key] = _Entry(value=value, stored_at=now)

    def _prune(self, now: float) -> None:
        expired = [
            key for key, entry in self._entries.items() if now - entry.stored_at >= self.ttl_s
        ]
        for key in expired:
            del self._entries[key]

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
