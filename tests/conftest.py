"""Pytest configuration and shared fixtures."""

import pytest

from tierconf.cache.memory import MemoryCache
from tierconf.config_service.config import ServiceConfig, TierContext
from tierconf.config_service.config_store import InMemoryConfigStore
from tierconf.config_service.crypto import CryptoBox
from tierconf.config_service.registry import KeyRegistry
from tierconf.config_service.service import ConfigService
from tierconf.config_service.system import SystemTier
from tierconf.settings import get_settings


class FakeClock:
    """Manually advanced monotonic clock for simulated cache time."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def reset_settings():
    """Drop cached settings so env changes in one test do not leak."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return MemoryCache(max_entries=1000, clock=clock)


@pytest.fixture
def store():
    return InMemoryConfigStore()


@pytest.fixture
def crypto():
    return CryptoBox("unit-test-key-material")


@pytest.fixture
def system():
    return SystemTier(values={"region": "us-east-1", "max_users": 1})


@pytest.fixture
def registry():
    return KeyRegistry()


@pytest.fixture
def service(store, cache, crypto, system, registry):
    svc = ConfigService(
        store=store,
        cache=cache,
        crypto=crypto,
        system=system,
        registry=registry,
        config=ServiceConfig(cache_ttl_seconds=60),
        sleep=lambda seconds: None,
    )
    yield svc
    svc.close()


@pytest.fixture
def project_ctx():
    return TierContext(organization_id="org-1", project_id="proj-1")


@pytest.fixture
def org_ctx():
    return TierContext(organization_id="org-1")
