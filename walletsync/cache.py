import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


class TTLCache:
    """In-memory TTL cache with LRU eviction, keyed by string."""

    def __init__(
        self,
        default_ttl: int = 60,
        max_size: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self.max_size = max_size
        self._clock = clock
        self._cache: Dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            return self._get_locked(key, self._clock())

    async def get_many(self, keys: Iterable[str]) -> Dict[str, Any]:
        """Return the live entries among ``keys``; expired or missing keys are omitted."""
        async with self._lock:
            now = self._clock()
            found: Dict[str, Any] = {}
            for key in keys:
                value = self._get_locked(key, now)
                if value is not None:
                    found[key] = value
            return found

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        async with self._lock:
            self._set_locked(key, value, ttl)

    async def set_many(self, items: Dict[str, Any], ttl: Optional[int] = None) -> None:
        async with self._lock:
            for key, value in items.items():
                self._set_locked(key, value, ttl)

    async def clear(self) -> None:
        async with self._lock:
            self._cache.clear()

    def size(self) -> int:
        return len(self._cache)

    def _get_locked(self, key: str, now: float) -> Optional[Any]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        if now > entry.expires_at:
            del self._cache[key]
            return None
        # dicts keep insertion order; re-inserting marks the key most recently used
        self._cache[key] = self._cache.pop(key)
        return entry.value

    def _set_locked(self, key: str, value: Any, ttl: Optional[int]) -> None:
        expires_at = self._clock() + (ttl or self.default_ttl)
        self._cache.pop(key, None)
        self._cache[key] = CacheEntry(value=value, expires_at=expires_at)
        while len(self._cache) > self.max_size:
            oldest_key = next(iter(self._cache))
            del self._cache[oldest_key]
