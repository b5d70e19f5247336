"""Tier-scoped configuration persistence.

ConfigStore is the leaf persistence contract: no caching, no encryption.
Entries are unique per (scope, scope_id, key); a write to an existing key
updates it in place.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from .config import Scope
from .values import ConfigValue

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ConfigEntry:
    """A single persisted configuration entry.

    When ``is_encrypted`` is true, ``value`` is a string ConfigValue holding
    ciphertext and must go through CryptoBox before reaching a caller.
    """

    key: str
    scope: Scope
    scope_id: Optional[str]
    value: ConfigValue
    is_encrypted: bool = False
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @property
    def display_value(self) -> str:
        """Return masked value for encrypted entries."""
        if self.is_encrypted:
            return "***ENCRYPTED***"
        return str(self.value.data)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "scope": self.scope.value,
            "scope_id": self.scope_id,
            "value": self.value.to_dict(),
            "is_encrypted": self.is_encrypted,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ConfigEntry":
        return cls(
            key=raw["key"],
            scope=Scope(raw["scope"]),
            scope_id=raw.get("scope_id"),
            value=ConfigValue.from_dict(raw["value"]),
            is_encrypted=bool(raw.get("is_encrypted", False)),
            created_at=datetime.fromisoformat(raw["created_at"]),
            updated_at=datetime.fromisoformat(raw["updated_at"]),
        )


class ConfigStore(ABC):
    """Persistence contract for tier-scoped configuration entries."""

    @abstractmethod
    def read(self, scope: Scope, scope_id: Optional[str], key: str) -> Optional[ConfigEntry]:
        """Return the entry for (scope, scope_id, key), or None."""

    @abstractmethod
    def write(
        self,
        scope: Scope,
        scope_id: Optional[str],
        key: str,
        value: ConfigValue,
        is_encrypted: bool = False,
    ) -> ConfigEntry:
        """Create or update the entry and return it as persisted."""

    @abstractmethod
    def delete(self, scope: Scope, scope_id: Optional[str], key: str) -> bool:
        """Delete the entry. Returns True if something was deleted."""

    @abstractmethod
    def list_entries(self, scope: Scope, scope_id: Optional[str]) -> List[ConfigEntry]:
        """All entries defined on one tier instance, sorted by key."""

    def close(self) -> None:
        """Release backend resources."""


class InMemoryConfigStore(ConfigStore):
    """Thread-safe in-process configuration store."""

    def __init__(self):
        self._entries: Dict[Tuple[Scope, Optional[str], str], ConfigEntry] = {}
        self._lock = threading.RLock()

    def read(self, scope: Scope, scope_id: Optional[str], key: str) -> Optional[ConfigEntry]:
        with self._lock:
            entry = self._entries.get((scope, scope_id, key))
            # Hand out copies so callers never mutate stored state
            return replace(entry) if entry is not None else None

    def write(
        self,
        scope: Scope,
        scope_id: Optional[str],
        key: str,
        value: ConfigValue,
        is_encrypted: bool = False,
    ) -> ConfigEntry:
        composite = (scope, scope_id, key)
        now = _utcnow()
        with self._lock:
            existing = self._entries.get(composite)
            entry = ConfigEntry(
                key=key,
                scope=scope,
                scope_id=scope_id,
                value=value,
                is_encrypted=is_encrypted,
                created_at=existing.created_at if existing else now,
                updated_at=now,
            )
            self._entries[composite] = entry
            logger.debug(
                "Config %s: %s/%s/%s",
                "updated" if existing else "created", scope.value, scope_id or "-", key,
            )
            return replace(entry)

    def delete(self, scope: Scope, scope_id: Optional[str], key: str) -> bool:
        with self._lock:
            return self._entries.pop((scope, scope_id, key), None) is not None

    def list_entries(self, scope: Scope, scope_id: Optional[str]) -> List[ConfigEntry]:
        with self._lock:
            return sorted(
                (replace(e) for (s, sid, _), e in self._entries.items()
                 if s is scope and sid == scope_id),
                key=lambda e: e.key,
            )

    def count(self) -> int:
        """Return total number of entries across all tiers."""
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
