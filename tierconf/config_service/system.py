"""SYSTEM tier: process-start configuration.

Values come from environment variables (or any flat key/value mapping
supplied at startup) plus defaults registered by the process. The set is
parsed once and frozen; it is never re-read at runtime.
"""

import json
import logging
import os
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from .values import ConfigValue

logger = logging.getLogger(__name__)

_TRUE = ("true", "yes", "on")
_FALSE = ("false", "no", "off")


def coerce_env_value(raw: str) -> ConfigValue:
    """Type a raw environment string: boolean, number, JSON map, else string."""
    text = raw.strip()
    lowered = text.lower()
    if lowered in _TRUE:
        return ConfigValue.of(True)
    if lowered in _FALSE:
        return ConfigValue.of(False)
    try:
        return ConfigValue.of(int(text))
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        pass
    else:
        # "nan"/"inf" are kept as strings
        if number == number and number not in (float("inf"), float("-inf")):
            return ConfigValue.of(number)
    if text.startswith("{"):
        try:
            parsed = json.loads(text)
        except ValueError:
            pass
        else:
            if isinstance(parsed, dict):
                return ConfigValue.of(parsed)
    return ConfigValue.of(raw)


class SystemTier:
    """Immutable SYSTEM-tier values materialized at process start.

    Environment values override registered defaults for the same key.
    """

    def __init__(
        self,
        values: Optional[Mapping[str, Any]] = None,
        defaults: Optional[Mapping[str, Any]] = None,
    ):
        merged: Dict[str, ConfigValue] = {}
        for key, value in (defaults or {}).items():
            merged[key] = ConfigValue.of(value)
        for key, value in (values or {}).items():
            merged[key] = value if isinstance(value, ConfigValue) else ConfigValue.of(value)
        self._values: Mapping[str, ConfigValue] = MappingProxyType(merged)

    @classmethod
    def from_environ(
        cls,
        prefix: str = "TIERCONF_SYS_",
        environ: Optional[Mapping[str, str]] = None,
        defaults: Optional[Mapping[str, Any]] = None,
    ) -> "SystemTier":
        """Build from variables named ``<prefix><KEY>``; the key is lowercased.

        ``TIERCONF_SYS_REGION=us-east-1`` yields ``region = "us-east-1"``.
        """
        environ = os.environ if environ is None else environ
        values = {
            name[len(prefix):].lower(): coerce_env_value(raw)
            for name, raw in environ.items()
            if name.startswith(prefix) and len(name) > len(prefix)
        }
        tier = cls(values=values, defaults=defaults)
        logger.info("SYSTEM tier loaded: %d keys (%d from environment)", len(tier), len(values))
        return tier

    def get(self, key: str) -> Optional[ConfigValue]:
        return self._values.get(key)

    def has(self, key: str) -> bool:
        return key in self._values

    def keys(self):
        return sorted(self._values)

    def as_dict(self) -> Dict[str, Any]:
        return {k: v.to_python() for k, v in self._values.items()}

    def __len__(self) -> int:
        return len(self._values)
