"""Scope types, tier context and service config for tiered configuration."""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from tierconf.errors import InvalidTierContextError


class Scope(str, Enum):
    """Configuration tiers, declared lowest to highest precedence."""

    SYSTEM = "system"
    COMMON = "common"
    SERVICE = "service"
    ORGANIZATION = "organization"
    PROJECT = "project"

    @property
    def precedence(self) -> int:
        return _PRECEDENCE[self]

    @property
    def requires_id(self) -> bool:
        """ORGANIZATION and PROJECT tiers are instantiated per identifier."""
        return self in (Scope.ORGANIZATION, Scope.PROJECT)

    @property
    def is_persisted(self) -> bool:
        """SYSTEM values come from process configuration, not the store."""
        return self is not Scope.SYSTEM

    @classmethod
    def resolution_order(cls) -> List["Scope"]:
        """Tiers from highest to lowest precedence."""
        return sorted(cls, key=lambda s: s.precedence, reverse=True)


_PRECEDENCE = {scope: rank for rank, scope in enumerate(Scope)}


def validate_scope_id(scope: Scope, scope_id: Optional[str]) -> Optional[str]:
    """Check that ``scope_id`` is present exactly when the tier needs one."""
    if scope.requires_id:
        if not scope_id or not str(scope_id).strip():
            raise InvalidTierContextError(
                f"{scope.value} scope requires an identifier",
                {"scope": scope.value},
            )
        return str(scope_id)
    if scope_id:
        raise InvalidTierContextError(
            f"{scope.value} scope is a singleton and takes no identifier",
            {"scope": scope.value, "scope_id": scope_id},
        )
    return None


@dataclass(frozen=True)
class TierContext:
    """Concrete identifiers instantiating the ORGANIZATION/PROJECT tiers.

    An empty context resolves against SERVICE, COMMON and SYSTEM only.
    """

    organization_id: Optional[str] = None
    project_id: Optional[str] = None

    def __post_init__(self):
        if self.project_id and not self.organization_id:
            raise InvalidTierContextError(
                "project context requires its organization_id",
                {"project_id": self.project_id},
            )

    def scope_id_for(self, scope: Scope) -> Optional[str]:
        if scope is Scope.PROJECT:
            return self.project_id
        if scope is Scope.ORGANIZATION:
            return self.organization_id
        return None

    def tiers(self) -> List[Tuple[Scope, Optional[str]]]:
        """(scope, scope_id) pairs to walk, highest precedence first.

        Tiers whose identifier is absent from this context are skipped.
        """
        pairs = []
        for scope in Scope.resolution_order():
            scope_id = self.scope_id_for(scope)
            if scope.requires_id and not scope_id:
                continue
            pairs.append((scope, scope_id))
        return pairs


@dataclass
class ServiceConfig:
    """Configuration for the config service itself."""

    cache_ttl_seconds: int = 300
    negative_cache_enabled: bool = True
    read_retry_attempts: int = 3
    read_retry_backoff_seconds: float = 0.05
    read_retry_max_backoff_seconds: float = 1.0
    call_timeout_seconds: Optional[float] = None
    batch_max_workers: int = 8
    change_history_limit: int = 100

    def __post_init__(self):
        if self.cache_ttl_seconds <= 0:
            raise ValueError("cache_ttl_seconds must be positive")
        if self.read_retry_attempts < 1:
            raise ValueError("read_retry_attempts must be at least 1")
        if self.batch_max_workers < 1:
            raise ValueError("batch_max_workers must be at least 1")
