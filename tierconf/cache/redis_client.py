"""Redis cache backend.

Shares one Redis database across processes of a deployment. Values are
stored as JSON with SETEX so Redis enforces the TTL. Capacity reclamation is
delegated to the server's ``maxmemory-policy`` (use an LRU policy).
"""

import json
import logging
from typing import Any, Dict, Optional

import redis
from redis.exceptions import RedisError

from tierconf.cache.backend import CacheBackend, check_ttl
from tierconf.cache.keys import DEFAULT_NAMESPACE
from tierconf.errors import StoreUnavailableError

logger = logging.getLogger(__name__)

_GLOB_SPECIAL = "\\*?[]"


def escape_glob(text: str) -> str:
    """Escape Redis MATCH glob metacharacters so ``text`` matches literally."""
    return "".join("\\" + c if c in _GLOB_SPECIAL else c for c in text)


class RedisCache(CacheBackend):
    """Redis-backed cache with JSON serialization."""

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        namespace: str = DEFAULT_NAMESPACE,
        client: Optional["redis.Redis"] = None,
        socket_timeout: float = 2.0,
        scan_batch: int = 500,
    ):
        self.url = url
        self.namespace = namespace
        self.socket_timeout = socket_timeout
        self.scan_batch = scan_batch
        self._client = client
        self._hits = 0
        self._misses = 0

    # --- Connection Management ---

    def get_client(self) -> "redis.Redis":
        """Get or create the Redis client."""
        if self._client is None:
            try:
                client = redis.from_url(
                    self.url,
                    decode_responses=True,
                    socket_timeout=self.socket_timeout,
                    socket_connect_timeout=self.socket_timeout,
                )
                client.ping()
            except RedisError as exc:
                logger.warning("Redis connection failed: %s", exc)
                raise StoreUnavailableError("redis cache unreachable", {"backend": "redis"}) from exc
            self._client = client
        return self._client

    # --- CacheBackend contract ---

    def get(self, key: str) -> Optional[Any]:
        client = self.get_client()
        try:
            data = client.get(key)
        except RedisError as exc:
            raise self._unavailable("get", key, exc) from exc
        if data is None:
            self._misses += 1
            return None
        self._hits += 1
        try:
            return json.loads(data)
        except ValueError:
            logger.warning("Dropping undecodable cache record %s", key)
            self._safe_delete(client, key)
            return None

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        check_ttl(ttl_seconds)
        client = self.get_client()
        try:
            client.setex(key, ttl_seconds, json.dumps(value, default=str))
        except RedisError as exc:
            raise self._unavailable("set", key, exc) from exc

    def delete(self, key: str) -> bool:
        client = self.get_client()
        try:
            return bool(client.delete(key))
        except RedisError as exc:
            raise self._unavailable("delete", key, exc) from exc

    def delete_pattern(self, prefix: str) -> int:
        """Delete all keys starting with ``prefix``. Returns count deleted."""
        client = self.get_client()
        pattern = escape_glob(prefix) + "*"
        count = 0
        batch = []
        try:
            for key in client.scan_iter(match=pattern, count=self.scan_batch):
                batch.append(key)
                if len(batch) >= self.scan_batch:
                    count += client.delete(*batch)
                    batch = []
            if batch:
                count += client.delete(*batch)
        except RedisError as exc:
            raise self._unavailable("delete_pattern", prefix, exc) from exc
        return count

    def clear(self) -> None:
        """Evict every key in this cache's namespace."""
        self.delete_pattern(f"{self.namespace}:")

    def stats(self) -> Dict[str, Any]:
        total = self._hits + self._misses
        return {
            "backend": "redis",
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total, 4) if total else 0.0,
        }

    def close(self) -> None:
        """Close the connection pool."""
        if self._client is not None:
            self._client.close()
            self._client = None

    # --- Helpers ---

    @staticmethod
    def _unavailable(action: str, key: str, exc: Exception) -> StoreUnavailableError:
        logger.warning("Redis %s failed for %s: %s", action, key, exc)
        return StoreUnavailableError(
            f"redis cache {action} failed", {"backend": "redis", "cache_key": key}
        )

    @staticmethod
    def _safe_delete(client: "redis.Redis", key: str) -> None:
        try:
            client.delete(key)
        except RedisError as exc:
            logger.warning("Redis cleanup of %s failed: %s", key, exc)
