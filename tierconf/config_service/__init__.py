"""Tiered configuration resolution.

Resolves keys through PROJECT > ORGANIZATION > SERVICE > COMMON > SYSTEM,
encrypts sensitive values at rest, and caches raw and resolved values with
invalidation on write.
"""

from .caching_store import CachingStore
from .config import Scope, ServiceConfig, TierContext
from .config_store import ConfigEntry, ConfigStore, InMemoryConfigStore
from .crypto import CryptoBox
from .factory import build_config_service
from .registry import KeyDefinition, KeyRegistry
from .resolver import ResolvedEntry, ScopeResolver
from .retry import RetryPolicy
from .service import ConfigChange, ConfigService, ResolvedValue
from .sql_store import SqlConfigStore
from .system import SystemTier
from .values import ConfigValue, ValueKind

__all__ = [
    "CachingStore",
    "ConfigChange",
    "ConfigEntry",
    "ConfigService",
    "ConfigStore",
    "ConfigValue",
    "CryptoBox",
    "InMemoryConfigStore",
    "KeyDefinition",
    "KeyRegistry",
    "ResolvedEntry",
    "ResolvedValue",
    "RetryPolicy",
    "Scope",
    "ScopeResolver",
    "ServiceConfig",
    "SqlConfigStore",
    "SystemTier",
    "TierContext",
    "ValueKind",
    "build_config_service",
]
