"""
Cache utilities for the pick pool
Response caching for read-heavy endpoints and explicit invalidation
"""

import functools

from flask import current_app, request

from pickpool import cache


def make_cache_key(key_prefix):
    """Generate a cache key from the request path and sorted query string"""
    args = "&".join(f"{k}={v}" for k, v in sorted(request.args.items(multi=True)))
    return f"{key_prefix}:{request.path}?{args}"


def cached_route(timeout=None, key_prefix="view"):
    """
    Decorator for caching route responses

    Only successful responses are cached. The default timeout comes from
    LEADERBOARD_CACHE_TIMEOUT.

    Args:
        timeout: Cache timeout in seconds
        key_prefix: Prefix for cache key
    """

    def decorator(f):
        @functools.wraps(f)
        def wrapped(*args, **kwargs):
            cache_key = make_cache_key(key_prefix)

            result = cache.get(cache_key)
            if result is not None:
                current_app.logger.debug(f"Cache hit for key: {cache_key}")
                return result

            result = f(*args, **kwargs)
            ttl = timeout or current_app.config.get("LEADERBOARD_CACHE_TIMEOUT", 120)
            if isinstance(result, dict):
                cache.set(cache_key, result, timeout=ttl)
                current_app.logger.debug(f"Cache set for key: {cache_key}")

            return result

        return wrapped

    return decorator


def invalidate_model_cache(model_name):
    """
    Invalidate all cached views derived from a model

    SimpleCache and Redis offer no portable pattern delete, so this clears
    the whole (prefixed) cache.

    Args:
        model_name: Name of the model whose data changed
    """
    try:
        cache.clear()
        current_app.logger.debug(f"Cache cleared after {model_name} change")
    except Exception as e:
        # A cache outage must not fail the write that triggered it
        current_app.logger.error(f"Failed to clear cache: {e}")
