"""Public façade for tiered configuration.

ConfigService orchestrates the resolved-value cache, the ScopeResolver, the
CryptoBox and the raw-caching store, and owns the invalidation contract:
every ``set``/``delete`` evicts the raw record of the written tier and every
resolved record of the key before returning, so a ``get`` issued after the
write returns observes it.
"""

import contextvars
import logging
import threading
import time
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor, wait
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, TypeVar, Union

from tierconf.cache import keys as cache_keys
from tierconf.cache.backend import CacheBackend
from tierconf.errors import (
    ConfigServiceError,
    InvalidTierContextError,
    NotFoundError,
    StoreUnavailableError,
)
from tierconf.logging_config.context import ResolutionContext
from tierconf.logging_config.performance import PerformanceTimer

from .caching_store import CachingStore
from .config import Scope, ServiceConfig, TierContext, validate_scope_id
from .config_store import ConfigEntry, ConfigStore
from .crypto import CryptoBox
from .registry import KeyDefinition, KeyRegistry
from .resolver import ScopeResolver
from .retry import RetryPolicy, call_with_retry
from .system import SystemTier
from .values import ConfigValue

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING = object()


@dataclass(frozen=True)
class ResolvedValue:
    """Decrypted winning value for a key, with the tier it came from."""

    key: str
    value: ConfigValue
    scope: Scope
    scope_id: Optional[str]
    from_cache: bool = False


@dataclass
class ConfigChange:
    """Audit record of a configuration write. Values are never recorded."""

    key: str
    scope: Scope
    scope_id: Optional[str]
    action: str
    changed_by: str = "system"
    was_encrypted: bool = False
    changed_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class ConfigService:
    """Tiered configuration service.

    Args:
        store: Persistence backend. Wrapped in a CachingStore unless it
            already is one.
        cache: Explicitly constructed cache shared by the raw and resolved
            families. The owning process controls its lifecycle.
        crypto: CryptoBox for sensitive values.
        system: Process-start SYSTEM tier.
        registry: Per-key policy; unregistered keys are unconstrained.
        config: Service tuning (TTL, retries, timeouts, pools).
        namespace: Cache key namespace.
        sleep: Backoff sleep function; injectable for tests.
    """

    def __init__(
        self,
        store: ConfigStore,
        cache: CacheBackend,
        crypto: Optional[CryptoBox] = None,
        system: Optional[SystemTier] = None,
        registry: Optional[KeyRegistry] = None,
        config: Optional[ServiceConfig] = None,
        namespace: str = cache_keys.DEFAULT_NAMESPACE,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._config = config or ServiceConfig()
        self.cache = cache
        self.namespace = namespace
        if isinstance(store, CachingStore):
            self.store = store
        else:
            self.store = CachingStore(
                store,
                cache,
                ttl_seconds=self._config.cache_ttl_seconds,
                namespace=namespace,
                negative_cache=self._config.negative_cache_enabled,
            )
        self.crypto = crypto or CryptoBox()
        self.system = system if system is not None else SystemTier()
        self.registry = registry if registry is not None else KeyRegistry()
        self.resolver = ScopeResolver(self.store, self.system)
        self._retry_policy = RetryPolicy(
            max_attempts=self._config.read_retry_attempts,
            base_delay=self._config.read_retry_backoff_seconds,
            max_delay=self._config.read_retry_max_backoff_seconds,
        )
        self._sleep = sleep

        self._history: Deque[ConfigChange] = deque(maxlen=self._config.change_history_limit)
        self._lock = threading.RLock()
        self._resolved_hits = 0
        self._resolved_misses = 0
        self._call_pool: Optional[ThreadPoolExecutor] = None
        self._batch_pool: Optional[ThreadPoolExecutor] = None
        self._closed = False

    # --- Reads ---

    def get(
        self,
        key: str,
        context: Optional[TierContext] = None,
        default: Any = _MISSING,
        fail_on_not_found: bool = True,
        timeout: Optional[float] = None,
    ) -> Any:
        """Resolve ``key`` and return its plain value.

        Raises NotFoundError when no tier defines the key, no ``default``
        was given and ``fail_on_not_found`` is true. Otherwise returns the
        default (or None).
        """
        resolved = self.resolve(key, context, timeout=timeout)
        if resolved is not None:
            return resolved.value.to_python()
        if default is not _MISSING:
            return default
        if fail_on_not_found:
            context = context or TierContext()
            raise NotFoundError(
                f"configuration key '{key}' is not defined at any tier",
                {
                    "key": key,
                    "organization_id": context.organization_id,
                    "project_id": context.project_id,
                },
            )
        return None

    def resolve(
        self,
        key: str,
        context: Optional[TierContext] = None,
        timeout: Optional[float] = None,
    ) -> Optional[ResolvedValue]:
        """Resolve ``key`` to its tagged value and winning tier, or None."""
        context = context or TierContext()
        definition = self.registry.get(key)
        with ResolutionContext(
            config_key=key,
            organization_id=context.organization_id,
            project_id=context.project_id,
        ):
            try:
                if definition is not None:
                    definition.check_context(context)
                return call_with_retry(
                    lambda: self._resolve_once(key, context, definition, timeout),
                    self._retry_policy,
                    describe=f"resolve {key}",
                    sleep=self._sleep,
                )
            except ConfigServiceError as exc:
                exc.with_context(
                    key=key,
                    organization_id=context.organization_id,
                    project_id=context.project_id,
                )
                raise

    def get_multiple(
        self,
        keys: Iterable[str],
        context: Optional[TierContext] = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Resolve several keys in parallel.

        Keys that resolve to absent are omitted from the result. Any other
        failure propagates and fails the batch.
        """
        unique = list(dict.fromkeys(keys))
        if not unique:
            return {}
        context = context or TierContext()

        if len(unique) == 1:
            resolved = {unique[0]: self.resolve(unique[0], context, timeout=timeout)}
        else:
            pool = self._get_batch_pool()
            # Each task gets its own context copy; a Context cannot be entered twice at once
            futures = {
                key: pool.submit(
                    contextvars.copy_context().run, self.resolve, key, context, timeout
                )
                for key in unique
            }
            try:
                resolved = {key: future.result() for key, future in futures.items()}
            except BaseException:
                self._abandon_batch(futures)
                raise

        return {
            key: item.value.to_python()
            for key, item in resolved.items()
            if item is not None
        }

    # --- Writes ---

    def set(
        self,
        key: str,
        scope: Union[Scope, str],
        scope_id: Optional[str],
        value: Any,
        encrypt: bool = False,
        changed_by: str = "system",
        timeout: Optional[float] = None,
    ) -> ConfigEntry:
        """Write ``value`` at (scope, scope_id) and invalidate derived cache records.

        Values are encrypted when ``encrypt`` is true or the key is
        registered as sensitive. Returns the entry as persisted (ciphertext
        when encrypted). Never retried.
        """
        scope, scope_id = self._check_write_target(scope, scope_id)
        tagged = ConfigValue.of(value)
        definition = self.registry.get(key)
        if definition is not None:
            definition.check_write(scope, tagged)
        should_encrypt = encrypt or self.registry.is_sensitive(key)

        try:
            stored = tagged
            if should_encrypt:
                stored = ConfigValue.of(
                    self._call(lambda: self.crypto.encrypt(tagged), timeout, "encrypt")
                )
            try:
                entry = self._call(
                    lambda: self.store.write(scope, scope_id, key, stored, should_encrypt),
                    timeout,
                    "write",
                )
            except StoreUnavailableError:
                # The write may still land after a timeout; drop what it could stale
                self._evict_after_failed_write(key, scope, scope_id)
                raise
            self._invalidate_key(key)
        except ConfigServiceError as exc:
            exc.with_context(key=key, scope=scope.value, scope_id=scope_id)
            raise

        self._record_change(key, scope, scope_id, "set", changed_by, should_encrypt)
        logger.info(
            "Config set: %s at %s/%s (by %s)%s",
            key, scope.value, scope_id or "-", changed_by,
            " [encrypted]" if should_encrypt else "",
        )
        return entry

    def delete(
        self,
        key: str,
        scope: Union[Scope, str],
        scope_id: Optional[str],
        fail_on_not_found: bool = False,
        changed_by: str = "system",
        timeout: Optional[float] = None,
    ) -> bool:
        """Delete the entry at (scope, scope_id) and invalidate derived cache records.

        Returns True if an entry was deleted. With ``fail_on_not_found``,
        a missing entry raises NotFoundError instead of returning False.
        """
        scope, scope_id = self._check_write_target(scope, scope_id)
        try:
            deleted = self._call(
                lambda: self.store.delete(scope, scope_id, key), timeout, "delete"
            )
            self._invalidate_key(key)
        except ConfigServiceError as exc:
            exc.with_context(key=key, scope=scope.value, scope_id=scope_id)
            raise

        if not deleted:
            if fail_on_not_found:
                raise NotFoundError(
                    f"configuration key '{key}' is not defined at {scope.value} scope",
                    {"key": key, "scope": scope.value, "scope_id": scope_id},
                )
            return False

        self._record_change(key, scope, scope_id, "delete", changed_by)
        logger.info("Config deleted: %s at %s/%s (by %s)",
                    key, scope.value, scope_id or "-", changed_by)
        return True

    def delete_scope(
        self,
        scope: Union[Scope, str],
        scope_id: Optional[str],
        changed_by: str = "system",
    ) -> int:
        """Delete every entry of one tier instance, e.g. when a project is removed.

        Returns the number of entries deleted.
        """
        scope, scope_id = self._check_write_target(scope, scope_id)
        with PerformanceTimer(f"delete_scope {scope.value}/{scope_id or '-'}"):
            try:
                entries = self.store.list_entries(scope, scope_id)
                deleted = 0
                for entry in entries:
                    if self.store.delete(scope, scope_id, entry.key):
                        deleted += 1
                # Clears negative records too, for keys that never had a row here
                self.store.evict_scope(scope, scope_id)
                for key in {e.key for e in entries}:
                    self._invalidate_key(key)
            except ConfigServiceError as exc:
                exc.with_context(scope=scope.value, scope_id=scope_id)
                raise

        for entry in entries:
            self._record_change(
                entry.key, scope, scope_id, "delete_scope", changed_by, entry.is_encrypted
            )
        logger.info("Config scope deleted: %s/%s, %d entries (by %s)",
                    scope.value, scope_id or "-", deleted, changed_by)
        return deleted

    # --- Cache control ---

    def invalidate(self, key: str) -> int:
        """Evict every resolved record of ``key``. Returns count evicted."""
        return self._invalidate_key(key)

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("Config cache cleared")

    def cache_stats(self) -> Dict[str, Any]:
        with self._lock:
            total = self._resolved_hits + self._resolved_misses
            stats = {
                "resolved_hits": self._resolved_hits,
                "resolved_misses": self._resolved_misses,
                "resolved_hit_rate": round(self._resolved_hits / total, 4) if total else 0.0,
            }
        stats["backend"] = self.cache.stats()
        return stats

    # --- Audit ---

    def get_history(self, key: Optional[str] = None, limit: int = 50) -> List[ConfigChange]:
        """Most recent changes first, optionally filtered by key."""
        with self._lock:
            history = list(self._history)
        if key:
            history = [h for h in history if h.key == key]
        return list(reversed(history[-limit:]))

    # --- Lifecycle ---

    def close(self) -> None:
        """Shut down worker pools and release the cache and store."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        for pool in (self._batch_pool, self._call_pool):
            if pool is not None:
                pool.shutdown(wait=True)
        self.cache.close()
        self.store.close()
        logger.info("Config service closed")

    def __enter__(self) -> "ConfigService":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # --- Internals ---

    def _resolve_once(
        self,
        key: str,
        context: TierContext,
        definition: Optional[KeyDefinition],
        timeout: Optional[float],
    ) -> Optional[ResolvedValue]:
        ck = cache_keys.resolved_key(key, context.organization_id, context.project_id, ns=self.namespace)
        cached = self.cache.get(ck)
        if cached is not None:
            with self._lock:
                self._resolved_hits += 1
            logger.debug("Resolved cache hit", extra={"cache_key": ck})
            return ResolvedValue(
                key=key,
                value=ConfigValue.from_dict(cached["value"]),
                scope=Scope(cached["scope"]),
                scope_id=cached.get("scope_id"),
                from_cache=True,
            )

        with self._lock:
            self._resolved_misses += 1
        logger.debug("Resolved cache miss", extra={"cache_key": ck})

        winner = self._call(
            lambda: self.resolver.resolve(key, context, definition), timeout, "resolve"
        )
        if winner is None:
            return None

        value = winner.value
        if winner.is_encrypted:
            # Decrypt once per population; cached hits are already plaintext
            value = self._call(lambda: self.crypto.decrypt(winner.value.data), timeout, "decrypt")

        self.cache.set(
            ck,
            {"value": value.to_dict(), "scope": winner.scope.value, "scope_id": winner.scope_id},
            self._config.cache_ttl_seconds,
        )
        return ResolvedValue(key=key, value=value, scope=winner.scope, scope_id=winner.scope_id)

    def _call(self, operation: Callable[[], T], timeout: Optional[float], action: str) -> T:
        """Run a store or crypto call within the timeout budget, if any."""
        budget = timeout if timeout is not None else self._config.call_timeout_seconds
        if budget is None:
            return operation()
        future = self._get_call_pool().submit(contextvars.copy_context().run, operation)
        try:
            return future.result(timeout=budget)
        except FuturesTimeoutError as exc:
            future.cancel()
            logger.warning("Config %s timed out after %.3fs", action, budget)
            raise StoreUnavailableError(
                f"config {action} timed out after {budget}s",
                {"action": action, "timeout_seconds": budget},
            ) from exc

    def _check_write_target(self, scope: Union[Scope, str], scope_id: Optional[str]):
        try:
            scope = Scope(scope)
        except ValueError as exc:
            raise InvalidTierContextError(f"unknown scope: {scope!r}") from exc
        if not scope.is_persisted:
            raise InvalidTierContextError(
                "system tier is loaded at process start and cannot be written",
                {"scope": scope.value},
            )
        return scope, validate_scope_id(scope, scope_id)

    def _invalidate_key(self, key: str) -> int:
        evicted = self.cache.delete_pattern(cache_keys.resolved_prefix(key, ns=self.namespace))
        logger.debug("Invalidated %d resolved records for %s", evicted, key)
        return evicted

    def _evict_after_failed_write(self, key: str, scope: Scope, scope_id: Optional[str]) -> None:
        try:
            self.store.evict(scope, scope_id, key)
            self._invalidate_key(key)
        except StoreUnavailableError as exc:
            logger.warning("Cache eviction after failed write of %s also failed: %s", key, exc)

    def _record_change(
        self,
        key: str,
        scope: Scope,
        scope_id: Optional[str],
        action: str,
        changed_by: str,
        was_encrypted: bool = False,
    ) -> None:
        with self._lock:
            self._history.append(ConfigChange(
                key=key,
                scope=scope,
                scope_id=scope_id,
                action=action,
                changed_by=changed_by,
                was_encrypted=was_encrypted,
            ))

    def _abandon_batch(self, futures: Dict[str, Future]) -> None:
        """Cancel queued lookups of a failed batch and collect the in-flight ones."""
        for future in futures.values():
            future.cancel()
        wait(futures.values())
        for key, future in futures.items():
            if future.cancelled():
                continue
            exc = future.exception()
            if exc is not None:
                logger.warning("Batch lookup of %s also failed: %s", key, exc)

    def _ensure_open(self) -> None:
        if self._closed:
            raise ConfigServiceError("config service is closed")

    def _get_call_pool(self) -> ThreadPoolExecutor:
        with self._lock:
            self._ensure_open()
            if self._call_pool is None:
                self._call_pool = ThreadPoolExecutor(
                    max_workers=max(4, self._config.batch_max_workers),
                    thread_name_prefix="tierconf-call",
                )
            return self._call_pool

    def _get_batch_pool(self) -> ThreadPoolExecutor:
        with self._lock:
            self._ensure_open()
            if self._batch_pool is None:
                self._batch_pool = ThreadPoolExecutor(
                    max_workers=self._config.batch_max_workers,
                    thread_name_prefix="tierconf-batch",
                )
            return self._batch_pool
