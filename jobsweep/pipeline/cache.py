"""TTL response cache with in-flight de-duplication.

Sits in front of AI-backed calls: a repeated identical query within the TTL is
answered from memory, and concurrent identical queries share one outbound call.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


class ResponseCache:
    """Process-local cache keyed by caller-chosen strings.

    Failed fetches are not cached; waiters sharing an in-flight fetch see the
    same exception. Expired entries are swept on every write, and once
    ``max_entries`` is reached the oldest entries make room for new ones.
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = 1024,
    ) -> None:
        self._ttl = ttl_seconds
        self._max_entries = max(1, max_entries)
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}
        self._pending: dict[str, asyncio.Future[Any]] = {}
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Any | None:
        """Return a fresh cached value, or None."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._clock() - stored_at >= self._ttl:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        self.purge_expired()
        self._entries.pop(key, None)
        overflow = len(self._entries) - self._max_entries + 1
        if overflow > 0:
            # insertion order: oldest writes first
            for stale in list(self._entries)[:overflow]:
                del self._entries[stale]
            logger.debug("Cache full: evicted %d oldest entries", overflow)
        self._entries[key] = (self._clock(), value)

    def purge_expired(self) -> int:
        """Drop every expired entry. Returns how many were removed."""
        now = self._clock()
        stale = [key for key, (stored_at, _) in self._entries.items() if now - stored_at >= self._ttl]
        for key in stale:
            del self._entries[key]
        return len(stale)

    async def get_or_fetch(self, key: str, fetcher: Callable[[], Awaitable[Any]]) -> Any:
        """Return the cached value for ``key`` or run ``fetcher`` once to fill it."""
        cached = self.get(key)
        if cached is not None:
            self._hits += 1
            logger.debug("Cache hit: %s", key)
            return cached

        pending = self._pending.get(key)
        if pending is not None:
            self._hits += 1
            logger.debug("Cache joined in-flight fetch: %s", key)
            return await asyncio.shield(pending)

        self._misses += 1
        logger.debug("Cache miss: %s", key)
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[key] = future
        try:
            value = await fetcher()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            future.exception()  # mark retrieved; there may be no waiters
            raise
        else:
            self.set(key, value)
            future.set_result(value)
            return value
        finally:
            self._pending.pop(key, None)

    def invalidate(self, key: str | None = None) -> None:
        """Drop one key, or everything when ``key`` is None."""
        if key is None:
            self._entries.clear()
            logger.debug("Cache cleared")
        else:
            self._entries.pop(key, None)

    def stats(self) -> dict[str, int]:
        return {
            "size": len(self._entries),
            "pending": len(self._pending),
            "hits": self._hits,
            "misses": self._misses,
        }
