"""In-process counter store for local runs and tests."""
from __future__ import annotations

import time
from fnmatch import fnmatchcase
from typing import Callable, Sequence

from src.sms.domain.protocols.counter_store import CounterStore


class InMemoryCounterStore(CounterStore):
    """
    Dict-backed counters with expiry, single process only.

    ``clock`` returns monotonic seconds and can be replaced to simulate the
    passage of time.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._counters: dict[str, tuple[int, float]] = {}

    def _live(self, key: str) -> tuple[int, float] | None:
        entry = self._counters.get(key)
        if entry is None:
            return None
        if entry[1] <= self._clock():
            del self._counters[key]
            return None
        return entry

    async def get(self, key: str) -> int:
        entry = self._live(key)
        return entry[0] if entry else 0

    async def increment_and_expire(self, entries: Sequence[tuple[str, int]]) -> list[int]:
        values = []
        for key, ttl in entries:
            entry = self._live(key)
            if entry is None:
                entry = (0, self._clock() + ttl)
            value = entry[0] + 1
            self._counters[key] = (value, entry[1])
            values.append(value)
        return values

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._live(key) is not None:
                removed += 1
            self._counters.pop(key, None)
        return removed

    async def keys(self, pattern: str) -> list[str]:
        return [key for key in list(self._counters) if self._live(key) and fnmatchcase(key, pattern)]
