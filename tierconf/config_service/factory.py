"""Builds a wired ConfigService from Settings."""

import logging
from typing import Any, Mapping, Optional

from tierconf.cache import CacheBackend, MemoryCache, RedisCache
from tierconf.db.engine import build_engine, init_schema
from tierconf.logging_config import LoggingConfig, configure_logging
from tierconf.settings import Settings, get_settings

from .config import ServiceConfig
from .config_store import ConfigStore, InMemoryConfigStore
from .crypto import CryptoBox
from .registry import KeyRegistry
from .service import ConfigService
from .sql_store import SqlConfigStore
from .system import SystemTier

logger = logging.getLogger(__name__)


def service_config_from_settings(settings: Settings) -> ServiceConfig:
    return ServiceConfig(
        cache_ttl_seconds=settings.cache_ttl_seconds,
        negative_cache_enabled=settings.negative_cache_enabled,
        read_retry_attempts=settings.read_retry_attempts,
        read_retry_backoff_seconds=settings.read_retry_backoff_seconds,
        read_retry_max_backoff_seconds=settings.read_retry_max_backoff_seconds,
        call_timeout_seconds=settings.call_timeout_seconds,
        batch_max_workers=settings.batch_max_workers,
        change_history_limit=settings.change_history_limit,
    )


def logging_config_from_settings(settings: Settings) -> LoggingConfig:
    return LoggingConfig.from_names(settings.log_level, settings.log_format)


def build_cache(settings: Settings) -> CacheBackend:
    backend = settings.cache_backend.lower()
    if backend == "memory":
        return MemoryCache(max_entries=settings.cache_max_entries)
    if backend == "redis":
        return RedisCache(url=settings.redis_url, namespace=settings.cache_namespace)
    raise ValueError(f"unknown cache backend: {settings.cache_backend!r}")


def build_store(settings: Settings, create_schema: bool = False) -> ConfigStore:
    backend = settings.store_backend.lower()
    if backend == "memory":
        return InMemoryConfigStore()
    if backend == "sql":
        engine = build_engine(settings.database_url)
        if create_schema:
            init_schema(engine)
        return SqlConfigStore(engine)
    raise ValueError(f"unknown store backend: {settings.store_backend!r}")


def build_config_service(
    settings: Optional[Settings] = None,
    registry: Optional[KeyRegistry] = None,
    system_defaults: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
    create_schema: bool = False,
    configure_logs: bool = True,
) -> ConfigService:
    """Assemble store, cache, crypto and SYSTEM tier per ``settings``.

    Call once at process start; the returned service owns the cache and
    store and should be closed on shutdown. Logging is configured from
    ``settings.log_level`` and ``settings.log_format`` unless
    ``configure_logs`` is false, e.g. when the host process owns logging.
    """
    settings = settings or get_settings()
    if configure_logs:
        configure_logging(logging_config_from_settings(settings))
    service = ConfigService(
        store=build_store(settings, create_schema=create_schema),
        cache=build_cache(settings),
        crypto=CryptoBox(settings.encryption_key, settings.encryption_iv),
        system=SystemTier.from_environ(
            prefix=settings.system_env_prefix,
            environ=environ,
            defaults=system_defaults,
        ),
        registry=registry,
        config=service_config_from_settings(settings),
        namespace=settings.cache_namespace,
    )
    logger.info(
        "Config service ready (store=%s, cache=%s)",
        settings.store_backend, settings.cache_backend,
    )
    return service
