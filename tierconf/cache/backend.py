"""Cache backend contract shared by the in-process and Redis caches."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class CacheBackend(ABC):
    """TTL-bounded key/value cache keyed by opaque strings.

    Backends own storage and expiry only; they know nothing about what a
    key means. Values must be JSON-serializable.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None when absent or expired."""

    @abstractmethod
    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Store ``value`` for ``ttl_seconds`` (must be positive)."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Evict one key. Returns True if it was present."""

    @abstractmethod
    def delete_pattern(self, prefix: str) -> int:
        """Evict every key starting with ``prefix``. Returns count evicted."""

    @abstractmethod
    def clear(self) -> None:
        """Evict everything."""

    def stats(self) -> Dict[str, Any]:
        return {}

    def close(self) -> None:
        """Release connections."""


def check_ttl(ttl_seconds: int) -> None:
    if ttl_seconds <= 0:
        raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
