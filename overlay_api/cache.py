"""In-process TTL cache for account-store reads.

Uses cachetools.TTLCache; one cache instance per lookup, no cross-process
sharing.  When the database errors, reads fall back to the last value seen
for the key (even if its TTL lapsed) so signed-in users keep working
through short outages.
"""

import asyncio
import functools
import logging
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from cachetools import TTLCache  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

# Distinguishes "not cached" from a cached None
MISSING = object()

T = TypeVar("T")


class AsyncTTLCache:
    """Fresh ``TTLCache`` tier backed by a bounded LRU of last-known values."""

    def __init__(self, maxsize: int = 256, ttl: float = 60.0):
        self._maxsize = maxsize
        self._fresh: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)
        self._last_known: OrderedDict[str, Any] = OrderedDict()
        self._locks: dict[str, asyncio.Lock] = {}

    def lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            if len(self._locks) >= self._maxsize * 2:
                # Drop locks nobody holds
                for k in [k for k, v in self._locks.items() if not v.locked()]:
                    del self._locks[k]
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def get(self, key: str) -> Any:
        """Return the fresh value or ``MISSING``."""
        return self._fresh.get(key, MISSING)

    def set(self, key: str, value: Any) -> None:
        self._fresh[key] = value
        self._last_known[key] = value
        self._last_known.move_to_end(key)
        while len(self._last_known) > self._maxsize:
            self._last_known.popitem(last=False)

    def invalidate(self, key: str) -> None:
        """Drop the key from both tiers.

        Account rows change when tokens rotate; a stale row would hand out a
        revoked token, so invalidation is total.
        """
        self._fresh.pop(key, None)
        self._last_known.pop(key, None)

    def clear(self) -> None:
        self._fresh.clear()
        self._last_known.clear()

    def get_stale(self, key: str) -> Any:
        """Return the last-known value or ``MISSING``."""
        value = self._last_known.get(key, MISSING)
        if value is not MISSING:
            self._last_known.move_to_end(key)
        return value


def cached(
    cache: AsyncTTLCache,
    key_func: Callable[..., str],
    *,
    retry: int = 2,
    retry_delay: float = 0.5,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Cache an async loader's result, retrying and falling back on failure.

    ``key_func`` receives the loader's arguments and returns the cache key.
    The loader is attempted *retry* times; if every attempt raises, the
    last-known value for the key is returned with a warning, otherwise the
    final exception propagates.
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            key = key_func(*args, **kwargs)

            hit = cache.get(key)
            if hit is not MISSING:
                return hit

            async with cache.lock_for(key):
                hit = cache.get(key)
                if hit is not MISSING:
                    return hit

                last_exc: Exception | None = None
                for attempt in range(1, retry + 1):
                    try:
                        result = await func(*args, **kwargs)
                    except asyncio.CancelledError:
                        raise
                    except Exception as exc:
                        last_exc = exc
                        if attempt < retry:
                            logger.warning(
                                f"Load {attempt}/{retry} failed for {key}: "
                                f"{type(exc).__name__}, retrying"
                            )
                            await asyncio.sleep(retry_delay * attempt)
                        continue
                    cache.set(key, result)
                    return result

                stale = cache.get_stale(key)
                if stale is not MISSING:
                    logger.warning(f"Serving last-known value for {key} ({type(last_exc).__name__})")
                    return stale

                assert last_exc is not None
                raise last_exc

        wrapper.cache = cache  # type: ignore[attr-defined]
        return wrapper

    return decorator
