"""Resolution Context Management.

Context-local binding of the configuration key and tier identifiers
being resolved, so every log line emitted during a resolution carries them.
"""

import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


_trace_id_var: ContextVar[str] = ContextVar("trace_id", default="")
_config_key_var: ContextVar[str] = ContextVar("config_key", default="")
_organization_id_var: ContextVar[str] = ContextVar("organization_id", default="")
_project_id_var: ContextVar[str] = ContextVar("project_id", default="")
_extra_context_var: ContextVar[dict] = ContextVar("extra_context", default={})


def generate_trace_id() -> str:
    """Generate a short unique trace ID."""
    return uuid.uuid4().hex[:16]


def get_trace_id() -> str:
    """Get the current trace ID from context."""
    return _trace_id_var.get()


def get_config_key() -> str:
    """Get the configuration key currently being resolved."""
    return _config_key_var.get()


def get_context_dict() -> Dict[str, Any]:
    """Get all context variables as a dictionary for log binding."""
    ctx = {}
    trace_id = _trace_id_var.get()
    if trace_id:
        ctx["trace_id"] = trace_id
    key = _config_key_var.get()
    if key:
        ctx["config_key"] = key
    org = _organization_id_var.get()
    if org:
        ctx["organization_id"] = org
    project = _project_id_var.get()
    if project:
        ctx["project_id"] = project
    extra = _extra_context_var.get()
    if extra:
        ctx.update(extra)
    return ctx


@dataclass
class ResolutionContext:
    """Context manager binding resolution details to log entries.

    Nested contexts restore the enclosing values on exit, so a
    ``get_multiple`` batch can bind each key in turn.
    """

    config_key: str = ""
    organization_id: Optional[str] = None
    project_id: Optional[str] = None
    trace_id: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    _tokens: List[Any] = field(default_factory=list, repr=False)

    def __post_init__(self):
        if not self.trace_id:
            self.trace_id = _trace_id_var.get() or generate_trace_id()

    def __enter__(self) -> "ResolutionContext":
        self._tokens = [
            (_trace_id_var, _trace_id_var.set(self.trace_id)),
            (_config_key_var, _config_key_var.set(self.config_key)),
            (_organization_id_var, _organization_id_var.set(self.organization_id or "")),
            (_project_id_var, _project_id_var.set(self.project_id or "")),
            (_extra_context_var, _extra_context_var.set(self.extra.copy())),
        ]
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()

    @property
    def elapsed_ms(self) -> float:
        """Milliseconds since context was created."""
        delta = datetime.now(timezone.utc) - self.started_at
        return delta.total_seconds() * 1000

    def bind(self, **kwargs: Any) -> None:
        """Add extra key-value pairs to the context."""
        current = _extra_context_var.get()
        _extra_context_var.set({**current, **kwargs})
        self.extra.update(kwargs)
