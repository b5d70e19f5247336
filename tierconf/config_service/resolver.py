"""Tier-chain resolution.

Walks PROJECT -> ORGANIZATION -> SERVICE -> COMMON -> SYSTEM and stops at
the first tier that defines the key. The order is fixed and total; there is
no specificity scoring.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from tierconf.logging_config.performance import log_performance

from .config import Scope, TierContext
from .config_store import ConfigStore
from .registry import KeyDefinition
from .system import SystemTier
from .values import ConfigValue

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedEntry:
    """Winning tier for a key. ``value`` is still ciphertext when encrypted."""

    key: str
    scope: Scope
    scope_id: Optional[str]
    value: ConfigValue
    is_encrypted: bool = False


class ScopeResolver:
    """Resolves keys through the tier chain.

    Args:
        store: Store consulted for persisted tiers, normally a CachingStore
            so each tier read goes through the raw cache.
        system: Process-start SYSTEM tier.
    """

    def __init__(self, store: ConfigStore, system: Optional[SystemTier] = None):
        self.store = store
        self.system = system if system is not None else SystemTier()

    @log_performance(threshold_ms=100)
    def resolve(
        self,
        key: str,
        context: TierContext,
        definition: Optional[KeyDefinition] = None,
    ) -> Optional[ResolvedEntry]:
        """Return the highest-precedence definition of ``key``, or None.

        Tiers whose identifier is absent from ``context`` are skipped, as are
        tiers the key's definition does not allow. Store errors propagate.
        """
        if definition is not None:
            definition.check_context(context)

        for scope, scope_id in context.tiers():
            if definition is not None and not definition.allows(scope):
                continue

            if scope is Scope.SYSTEM:
                value = self.system.get(key)
                if value is not None:
                    logger.debug("Resolved at system tier", extra={"scope": scope.value})
                    return ResolvedEntry(key=key, scope=scope, scope_id=None, value=value)
                continue

            entry = self.store.read(scope, scope_id, key)
            if entry is not None:
                logger.debug(
                    "Resolved at %s tier", scope.value,
                    extra={"scope": scope.value, "scope_id": scope_id},
                )
                return ResolvedEntry(
                    key=key,
                    scope=scope,
                    scope_id=scope_id,
                    value=entry.value,
                    is_encrypted=entry.is_encrypted,
                )

        return None
