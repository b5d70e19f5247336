"""Per-key policy for the configuration engine.

Domain behavior (which keys are sensitive, which tiers may define them,
what kind of value they hold) is supplied as data to a single generic
engine rather than through subclasses.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional

from tierconf.errors import ConfigValidationError, InvalidTierContextError

from .config import Scope, TierContext
from .values import ConfigValue, ValueKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeyDefinition:
    """Policy for one configuration key.

    Attributes:
        key: Configuration key name.
        sensitive: Always encrypt at rest, even if the writer did not ask.
        scopes: Tiers allowed to define the key. Empty means all tiers.
        required_scope: ORGANIZATION or PROJECT when the key only makes
            sense inside that tier; lookups without the identifier fail.
        value_kind: Expected kind of value, if constrained.
    """

    key: str
    sensitive: bool = False
    scopes: FrozenSet[Scope] = field(default_factory=frozenset)
    required_scope: Optional[Scope] = None
    value_kind: Optional[ValueKind] = None
    description: str = ""

    def __post_init__(self):
        if self.required_scope is not None and not self.required_scope.requires_id:
            raise ValueError("required_scope must be ORGANIZATION or PROJECT")
        if self.scopes and self.required_scope and self.required_scope not in self.scopes:
            raise ValueError("required_scope must be one of the allowed scopes")

    def allows(self, scope: Scope) -> bool:
        return not self.scopes or scope in self.scopes

    def check_write(self, scope: Scope, value: ConfigValue) -> None:
        if not self.allows(scope):
            raise ConfigValidationError(
                f"key '{self.key}' may not be defined at {scope.value} scope",
                {"key": self.key, "scope": scope.value},
            )
        if self.value_kind is not None and value.kind is not self.value_kind:
            raise ConfigValidationError(
                f"key '{self.key}' expects a {self.value_kind.value}, got {value.kind.value}",
                {"key": self.key, "expected": self.value_kind.value, "actual": value.kind.value},
            )

    def check_context(self, context: TierContext) -> None:
        if self.required_scope is not None and not context.scope_id_for(self.required_scope):
            raise InvalidTierContextError(
                f"key '{self.key}' is {self.required_scope.value}-scoped "
                f"but no {self.required_scope.value} identifier was given",
                {"key": self.key, "required_scope": self.required_scope.value},
            )


class KeyRegistry:
    """Thread-safe registry of key definitions. Unregistered keys are unconstrained."""

    def __init__(self, definitions: Optional[Iterable[KeyDefinition]] = None):
        self._definitions: Dict[str, KeyDefinition] = {}
        self._lock = threading.RLock()
        for definition in definitions or ():
            self.register(definition)

    def register(self, definition: KeyDefinition) -> None:
        with self._lock:
            self._definitions[definition.key] = definition
        logger.debug("Key registered: %s", definition.key)

    def get(self, key: str) -> Optional[KeyDefinition]:
        with self._lock:
            return self._definitions.get(key)

    def is_sensitive(self, key: str) -> bool:
        definition = self.get(key)
        return definition is not None and definition.sensitive

    def sensitive_keys(self) -> List[str]:
        with self._lock:
            return sorted(k for k, d in self._definitions.items() if d.sensitive)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._definitions

    def __len__(self) -> int:
        with self._lock:
            return len(self._definitions)
