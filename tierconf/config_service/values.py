"""Tagged configuration values.

A ConfigValue is one of string, number, boolean or structured map. The kind
travels with the payload through the store, the caches and encryption, so
callers can assert on shape instead of guessing at an untyped blob.
"""

import copy
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict

from tierconf.errors import ConfigValidationError


class ValueKind(str, Enum):
    """Supported configuration value kinds."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    MAP = "map"


@dataclass(frozen=True)
class ConfigValue:
    """A configuration payload tagged with its kind."""

    kind: ValueKind
    data: Any

    def __post_init__(self):
        if not _matches(self.kind, self.data):
            raise ConfigValidationError(
                f"payload of type {type(self.data).__name__} is not a {self.kind.value}",
                {"kind": self.kind.value},
            )

    @classmethod
    def of(cls, obj: Any) -> "ConfigValue":
        """Wrap a plain Python value, inferring its kind."""
        if isinstance(obj, ConfigValue):
            return obj
        # bool is a subclass of int, so it must be checked first
        if isinstance(obj, bool):
            return cls(ValueKind.BOOLEAN, obj)
        if isinstance(obj, (int, float)):
            return cls(ValueKind.NUMBER, obj)
        if isinstance(obj, str):
            return cls(ValueKind.STRING, obj)
        if isinstance(obj, dict):
            _ensure_json_safe(obj)
            return cls(ValueKind.MAP, copy.deepcopy(obj))
        raise ConfigValidationError(
            f"unsupported configuration value type: {type(obj).__name__}",
            {"type": type(obj).__name__},
        )

    def to_python(self) -> Any:
        """Return the bare payload. Maps are copied so callers cannot mutate cached state."""
        if self.kind is ValueKind.MAP:
            return copy.deepcopy(self.data)
        return self.data

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "data": self.to_python()}

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ConfigValue":
        try:
            kind = ValueKind(raw["kind"])
            data = raw["data"]
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigValidationError(f"malformed tagged value: {raw!r}") from exc
        if kind is ValueKind.MAP and isinstance(data, dict):
            data = copy.deepcopy(data)
        return cls(kind, data)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))

    @classmethod
    def from_json(cls, text: str) -> "ConfigValue":
        try:
            raw = json.loads(text)
        except (TypeError, ValueError) as exc:
            raise ConfigValidationError("tagged value is not valid JSON") from exc
        return cls.from_dict(raw)

    def __repr__(self) -> str:
        return f"ConfigValue({self.kind.value}, {self.data!r})"


def _matches(kind: ValueKind, data: Any) -> bool:
    if kind is ValueKind.BOOLEAN:
        return isinstance(data, bool)
    if kind is ValueKind.NUMBER:
        return isinstance(data, (int, float)) and not isinstance(data, bool)
    if kind is ValueKind.STRING:
        return isinstance(data, str)
    return isinstance(data, dict)


def _ensure_json_safe(obj: Dict[str, Any]) -> None:
    try:
        json.dumps(obj)
    except (TypeError, ValueError) as exc:
        raise ConfigValidationError("structured map values must be JSON-serializable") from exc
