"""Tests for settings loading and service assembly."""

import logging

import pytest

from tierconf.cache import MemoryCache, RedisCache
from tierconf.config_service.config import Scope, TierContext
from tierconf.config_service.config_store import InMemoryConfigStore
from tierconf.config_service.factory import (
    build_cache,
    build_config_service,
    build_store,
    logging_config_from_settings,
    service_config_from_settings,
)
from tierconf.config_service.registry import KeyDefinition, KeyRegistry
from tierconf.config_service.sql_store import SqlConfigStore
from tierconf.logging_config import LogFormat, LogLevel
from tierconf.logging_config.setup import ConsoleFormatter, StructuredFormatter
from tierconf.settings import Settings, get_settings


@pytest.fixture(autouse=True)
def restore_root_logging():
    root = logging.getLogger()
    level = root.level
    yield
    for handler in [h for h in root.handlers if h.get_name() == "tierconf"]:
        root.removeHandler(handler)
    root.setLevel(level)


class TestSettings:

    def test_defaults(self):
        settings = Settings()
        assert settings.store_backend == "memory"
        assert settings.cache_backend == "memory"
        assert settings.cache_ttl_seconds == 300
        assert settings.system_env_prefix == "TIERCONF_SYS_"

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("TIERCONF_CACHE_TTL_SECONDS", "30")
        monkeypatch.setenv("TIERCONF_CACHE_BACKEND", "redis")
        monkeypatch.setenv("TIERCONF_CALL_TIMEOUT_SECONDS", "0.5")
        settings = get_settings()
        assert settings.cache_ttl_seconds == 30
        assert settings.cache_backend == "redis"
        assert settings.call_timeout_seconds == 0.5

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_service_config_mapping(self):
        config = service_config_from_settings(Settings(cache_ttl_seconds=12, read_retry_attempts=5))
        assert config.cache_ttl_seconds == 12
        assert config.read_retry_attempts == 5


class TestBuilders:

    def test_memory_cache(self):
        cache = build_cache(Settings(cache_max_entries=10))
        assert isinstance(cache, MemoryCache)
        assert cache.max_entries == 10

    def test_redis_cache_is_lazy(self):
        cache = build_cache(Settings(cache_backend="redis", cache_namespace="app"))
        assert isinstance(cache, RedisCache)
        assert cache._client is None
        assert cache.namespace == "app"

    def test_unknown_backends(self):
        with pytest.raises(ValueError):
            build_cache(Settings(cache_backend="memcached"))
        with pytest.raises(ValueError):
            build_store(Settings(store_backend="mongo"))

    def test_memory_store(self):
        assert isinstance(build_store(Settings()), InMemoryConfigStore)

    def test_sql_store_with_schema(self):
        store = build_store(Settings(store_backend="sql", database_url="sqlite://"), create_schema=True)
        assert isinstance(store, SqlConfigStore)
        assert store.list_entries(Scope.COMMON, None) == []
        store.close()


class TestBuildConfigService:

    def test_end_to_end_over_sql(self):
        settings = Settings(
            store_backend="sql",
            database_url="sqlite://",
            encryption_key="factory-test-key",
            cache_namespace="factory",
        )
        registry = KeyRegistry([KeyDefinition("apiKey", sensitive=True)])
        with build_config_service(
            settings,
            registry=registry,
            system_defaults={"timeout": 30},
            environ={"TIERCONF_SYS_REGION": "eu-west-1"},
            create_schema=True,
        ) as service:
            ctx = TierContext("org-1", "proj-1")
            service.set("apiKey", Scope.ORGANIZATION, "org-1", "sk-123")
            service.set("maxUsers", Scope.SERVICE, None, 5)
            service.set("maxUsers", Scope.PROJECT, "proj-1", 50)
            assert service.get("apiKey", ctx) == "sk-123"
            assert service.get("maxUsers", ctx) == 50
            assert service.get("region", ctx) == "eu-west-1"
            assert service.get("timeout", ctx) == 30
            assert service.namespace == "factory"
            raw = service.store.store.read(Scope.ORGANIZATION, "org-1", "apiKey")
            assert raw.is_encrypted is True
            assert raw.value.data != "sk-123"

    def test_uses_global_settings_by_default(self, monkeypatch):
        monkeypatch.setenv("TIERCONF_CACHE_TTL_SECONDS", "42")
        service = build_config_service(environ={})
        try:
            assert service.store.ttl_seconds == 42
            assert len(service.system) == 0
        finally:
            service.close()


class TestFactoryLogging:

    def _own_handler(self):
        return [h for h in logging.getLogger().handlers if h.get_name() == "tierconf"]

    def test_logging_config_from_settings(self):
        config = logging_config_from_settings(Settings(log_level="warning", log_format="console"))
        assert config.level is LogLevel.WARNING
        assert config.format is LogFormat.CONSOLE

    def test_invalid_log_level_rejected(self):
        with pytest.raises(ValueError):
            logging_config_from_settings(Settings(log_level="loud"))

    def test_settings_take_effect(self):
        service = build_config_service(Settings(log_level="debug", log_format="console"), environ={})
        try:
            handlers = self._own_handler()
            assert len(handlers) == 1
            assert isinstance(handlers[0].formatter, ConsoleFormatter)
            assert logging.getLogger().level == logging.DEBUG
        finally:
            service.close()

    def test_env_settings_take_effect(self, monkeypatch):
        monkeypatch.setenv("TIERCONF_LOG_LEVEL", "ERROR")
        monkeypatch.setenv("TIERCONF_LOG_FORMAT", "json")
        service = build_config_service(environ={})
        try:
            assert isinstance(self._own_handler()[0].formatter, StructuredFormatter)
            assert logging.getLogger().level == logging.ERROR
        finally:
            service.close()

    def test_logging_left_alone_when_disabled(self):
        service = build_config_service(Settings(), environ={}, configure_logs=False)
        try:
            assert self._own_handler() == []
        finally:
            service.close()
