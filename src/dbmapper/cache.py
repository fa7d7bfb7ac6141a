"""
Caching for table metadata.

Primary-key lookups are a round trip per table; results are kept in
cachetools TTL caches keyed by (database identity, table name) and can be
invalidated per table or wholesale.
"""
import functools
import logging
import threading

import cachetools

logger = logging.getLogger(__name__)


class Cache:
    """Cache manager for the package.

    Thread-safe singleton that manages all TTL caches.
    """

    _instance = None
    _caches: dict[str, cachetools.TTLCache] = {}
    _lock = threading.RLock()

    @classmethod
    def get_instance(cls) -> 'Cache':
        """Get singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def get_cache(self, name: str, maxsize: int = 100, ttl: int = 300) -> cachetools.TTLCache:
        """Get or create a TTL cache with the given name.

        Args:
            name: Name of the cache
            maxsize: Maximum cache size
            ttl: Time-to-live in seconds

        Returns
            TTLCache instance
        """
        if name not in self._caches:
            with self._lock:
                if name not in self._caches:
                    self._caches[name] = cachetools.TTLCache(maxsize=maxsize, ttl=ttl)
        return self._caches[name]

    def clear_all(self) -> None:
        """Clear all managed caches."""
        with self._lock:
            for cache in self._caches.values():
                cache.clear()

    def clear_cache(self, name: str) -> None:
        """Clear a specific cache by name."""
        with self._lock:
            if name in self._caches:
                self._caches[name].clear()

    def clear_for_table(self, table_name: str, namespace: str | None = None) -> None:
        """Clear all cache entries for a specific table.

        Args:
            table_name: Name of the table to clear cache entries for
            namespace: Limit clearing to one database identity, by default all
        """
        table_lower = table_name.lower()
        with self._lock:
            for cache in self._caches.values():
                keys_to_clear = [
                    key for key in list(cache.keys())
                    if key[1] == table_lower and (namespace is None or key[0] == namespace)
                ]
                for key in keys_to_clear:
                    cache.pop(key, None)
                    logger.debug(f'Cleared cache entry {key} for table {table_name}')

    def clear_namespace(self, namespace: str) -> None:
        """Clear all cache entries belonging to one database identity."""
        with self._lock:
            for cache in self._caches.values():
                for key in [k for k in list(cache.keys()) if k[0] == namespace]:
                    cache.pop(key, None)


def _create_cache_key(cn, table: str) -> tuple[str, str]:
    """Create the cache key for a table on a connection.

    Connections expose `cache_namespace`, a string identifying the database
    they point to; anything else shares a global namespace.
    """
    namespace = getattr(cn, 'cache_namespace', None) or 'global'
    return namespace, table.lower()


def cacheable_strategy(cache_name: str, ttl: int = 300, maxsize: int = 50):
    """Decorator for caching strategy method results.

    Caches results keyed by database identity and table name.
    Respects bypass_cache parameter to skip cache lookup.

    Args:
        cache_name: Base name for the cache
        ttl: Time-to-live in seconds
        maxsize: Maximum cache size
    """
    def decorator(method):
        @functools.wraps(method)
        def wrapper(self, cn, table, *args, bypass_cache=False, **kwargs):
            if bypass_cache:
                logger.debug(f'Bypassing cache for {method.__name__}({table})')
                return method(self, cn, table, *args, **kwargs)

            cache = Cache.get_instance().get_cache(cache_name, ttl=ttl, maxsize=maxsize)
            cache_key = _create_cache_key(cn, table)

            if cache_key in cache:
                logger.debug(f'Cache hit for {method.__name__}({table})')
                return list(cache[cache_key])

            logger.debug(f'Cache miss for {method.__name__}({table})')
            result = method(self, cn, table, *args, **kwargs)
            cache[cache_key] = tuple(result)
            return result

        return wrapper
    return decorator
