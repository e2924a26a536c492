"""
Counter store protocol.
Abstracts the shared key/value store that holds rate limit counters.
"""
from abc import ABC, abstractmethod
from typing import Sequence


class CounterStore(ABC):
    """
    Atomic counters with expiry.

    Implementations raise ``StoreUnavailableError`` when the store cannot be
    reached; callers decide whether to fail open.
    """

    @abstractmethod
    async def get(self, key: str) -> int:
        """Current value of a counter (0 when absent or expired)."""

    @abstractmethod
    async def increment_and_expire(self, entries: Sequence[tuple[str, int]]) -> list[int]:
        """
        Increment every ``(key, ttl_seconds)`` counter as one batch.

        The TTL is applied only when the counter is created by this increment.
        Returns the new values in input order.
        """

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        """Remove counters; returns the number removed."""

    @abstractmethod
    async def keys(self, pattern: str) -> list[str]:
        """Counter keys matching a glob pattern."""
