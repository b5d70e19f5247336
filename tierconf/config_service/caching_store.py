"""Read-through raw cache around a ConfigStore.

CachingStore exposes the ConfigStore interface and adds the "raw" cache
family: one record per (scope, scope_id, key), holding either the entry as
persisted (still encrypted) or a negative marker for "not defined here".
Negative markers live under the same keys as positive ones, so every
eviction that reaches a key also clears a cached absence.
"""

import logging
from typing import List, Optional

from tierconf.cache import keys
from tierconf.cache.backend import CacheBackend

from .config import Scope
from .config_store import ConfigEntry, ConfigStore
from .values import ConfigValue

logger = logging.getLogger(__name__)

_ABSENT = {"absent": True}


class CachingStore(ConfigStore):
    """ConfigStore decorator caching raw entries in a CacheBackend."""

    def __init__(
        self,
        store: ConfigStore,
        cache: CacheBackend,
        ttl_seconds: int = 300,
        namespace: str = keys.DEFAULT_NAMESPACE,
        negative_cache: bool = True,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.store = store
        self.cache = cache
        self.ttl_seconds = ttl_seconds
        self.namespace = namespace
        self.negative_cache = negative_cache

    def cache_key(self, scope: Scope, scope_id: Optional[str], key: str) -> str:
        return keys.raw_key(scope.value, scope_id, key, ns=self.namespace)

    def read(self, scope: Scope, scope_id: Optional[str], key: str) -> Optional[ConfigEntry]:
        ck = self.cache_key(scope, scope_id, key)
        cached = self.cache.get(ck)
        if cached is not None:
            logger.debug("Raw cache hit", extra={"cache_key": ck})
            if cached.get("absent"):
                return None
            return ConfigEntry.from_dict(cached["entry"])

        logger.debug("Raw cache miss", extra={"cache_key": ck})
        entry = self.store.read(scope, scope_id, key)
        if entry is not None:
            self.cache.set(ck, {"entry": entry.to_dict()}, self.ttl_seconds)
        elif self.negative_cache:
            self.cache.set(ck, dict(_ABSENT), self.ttl_seconds)
        return entry

    def write(
        self,
        scope: Scope,
        scope_id: Optional[str],
        key: str,
        value: ConfigValue,
        is_encrypted: bool = False,
    ) -> ConfigEntry:
        entry = self.store.write(scope, scope_id, key, value, is_encrypted)
        self.evict(scope, scope_id, key)
        return entry

    def delete(self, scope: Scope, scope_id: Optional[str], key: str) -> bool:
        deleted = self.store.delete(scope, scope_id, key)
        # Evict even when nothing was deleted; a stale record may outlive its row
        self.evict(scope, scope_id, key)
        return deleted

    def list_entries(self, scope: Scope, scope_id: Optional[str]) -> List[ConfigEntry]:
        return self.store.list_entries(scope, scope_id)

    def evict(self, scope: Scope, scope_id: Optional[str], key: str) -> bool:
        return self.cache.delete(self.cache_key(scope, scope_id, key))

    def evict_scope(self, scope: Scope, scope_id: Optional[str]) -> int:
        """Evict every raw record (positive or negative) of one tier instance."""
        return self.cache.delete_pattern(
            keys.raw_scope_prefix(scope.value, scope_id, ns=self.namespace)
        )

    def close(self) -> None:
        self.store.close()
