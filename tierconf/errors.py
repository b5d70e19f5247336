"""Exception hierarchy for configuration resolution.

All engine errors inherit from ConfigServiceError so callers can catch the
whole family, or branch on the concrete type.
"""

from typing import Any, Dict, Optional


class ConfigServiceError(Exception):
    """Base exception for all configuration engine errors."""

    code = "config_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})

    def with_context(self, **context: Any) -> "ConfigServiceError":
        """Attach resolution context without changing the error kind.

        Existing detail values win, so the innermost context is preserved.
        """
        for name, value in context.items():
            if value is not None:
                self.details.setdefault(name, value)
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": dict(self.details)}

    def __str__(self) -> str:
        if not self.details:
            return self.message
        ctx = ", ".join(f"{k}={v}" for k, v in sorted(self.details.items()))
        return f"{self.message} ({ctx})"


class NotFoundError(ConfigServiceError):
    """Raised when no tier defines a key and the caller required a value."""

    code = "not_found"


class EncryptionError(ConfigServiceError):
    """Raised when a sensitive value cannot be encrypted or decrypted."""

    code = "encryption_error"


class StoreUnavailableError(ConfigServiceError):
    """Raised when the store or cache backend is unreachable or timed out."""

    code = "store_unavailable"


class InvalidTierContextError(ConfigServiceError):
    """Raised when a tier identifier is missing, superfluous, or inconsistent."""

    code = "invalid_tier_context"


class ConfigValidationError(ConfigServiceError):
    """Raised when a value or scope violates the key registry."""

    code = "validation_error"
