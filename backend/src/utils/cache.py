"""Caching utilities for the ParkCheck API."""

import hashlib
import json
from functools import wraps
from typing import Callable

from cachetools import TTLCache

# Global caches - persist across Lambda invocations (warm starts)
CACHE_TTL_SHORT_SECONDS = 30  # conditions change with every accepted report
CACHE_TTL_SECONDS = 300  # 5 minutes for weather-driven data
CACHE_TTL_VERY_LONG_SECONDS = 86400  # 24 hours for the static park registry
_parks_cache: TTLCache = TTLCache(maxsize=10, ttl=CACHE_TTL_VERY_LONG_SECONDS)
_conditions_cache: TTLCache = TTLCache(maxsize=500, ttl=CACHE_TTL_SHORT_SECONDS)
# Dry estimates are recomputed by the weather cycle, at most every few minutes
_estimates_cache: TTLCache = TTLCache(maxsize=1, ttl=CACHE_TTL_SECONDS)
_leaderboard_cache: TTLCache = TTLCache(maxsize=10, ttl=CACHE_TTL_SECONDS)


def get_cache_key(*args, **kwargs) -> str:
    """Generate a cache key from function arguments."""
    key_data = json.dumps({"args": args, "kwargs": kwargs}, sort_keys=True, default=str)
    # MD5 is used here only for cache key generation, not for security purposes
    return hashlib.md5(key_data.encode(), usedforsecurity=False).hexdigest()


def _cached_in(cache: TTLCache) -> Callable[[Callable], Callable]:
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            cache_key = get_cache_key(func.__name__, *args, **kwargs)
            if cache_key in cache:
                return cache[cache_key]
            result = func(*args, **kwargs)
            cache[cache_key] = result
            return result

        return wrapper

    return decorator


cached_parks = _cached_in(_parks_cache)
cached_conditions = _cached_in(_conditions_cache)
cached_estimates = _cached_in(_estimates_cache)
cached_leaderboard = _cached_in(_leaderboard_cache)


def invalidate_conditions() -> None:
    """Drop cached conditions after a write through the API."""
    _conditions_cache.clear()
    _leaderboard_cache.clear()


def clear_all_caches() -> None:
    """Clear all caches. Useful for testing."""
    _parks_cache.clear()
    _conditions_cache.clear()
    _estimates_cache.clear()
    _leaderboard_cache.clear()


# Cache-Control header values
CACHE_CONTROL_PUBLIC = "public, max-age=60"
CACHE_CONTROL_PUBLIC_LONG = "public, max-age=3600"  # static park registry
CACHE_CONTROL_PRIVATE = "private, no-cache"
