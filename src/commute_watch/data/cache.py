"""Simple TTL-based cache for upstream lookups."""

import asyncio
import time
from typing import Generic, TypeVar

T = TypeVar("T")


class KeyedCache(Generic[T]):
    """TTL cache holding one value per string key.

    Each entry expires independently. Every key has its own async lock so
    callers can double-check the cache around an upstream fetch without
    waiting on lookups for other keys.
    """

    def __init__(self, ttl: float = 1800.0):
        """Initialize the cache.

        Args:
            ttl: Time-to-live in seconds for cached values.
        """
        self._ttl = ttl
        self._entries: dict[str, tuple[T, float]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def get(self, key: str) -> T | None:
        """Get the cached value for a key if it hasn't expired.

        Returns:
            The cached value if valid, None if expired or not set.
        """
        entry = self._entries.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if time.monotonic() < expires_at:
            return value

        # drop the stale entry so the map doesn't grow without bound
        del self._entries[key]
        return None

    def set(self, key: str, value: T) -> None:
        """Set a value for a key with TTL."""
        self._entries[key] = (value, time.monotonic() + self._ttl)

    def clear(self) -> None:
        """Clear all cached values."""
        self._entries.clear()
        self._locks.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def lock_for(self, key: str) -> asyncio.Lock:
        """Get the async lock coordinating fetches for one key."""
        return self._locks.setdefault(key, asyncio.Lock())
