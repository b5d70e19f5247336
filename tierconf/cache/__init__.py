"""Cache layer: TTL-bounded caches for raw and resolved configuration."""

from tierconf.cache.backend import CacheBackend
from tierconf.cache.memory import MemoryCache
from tierconf.cache.redis_client import RedisCache

__all__ = ["CacheBackend", "MemoryCache", "RedisCache"]
