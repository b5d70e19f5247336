"""Cache key naming conventions.

All keys are namespaced (default 'tierconf:'). Two disjoint families exist:

- raw: one per persisted (scope, scope_id, key). Scope comes first so a
  whole tier instance can be evicted by prefix.
- resolved: one per lookup key and tier context. The config key comes
  first so every resolution of a key can be evicted by prefix.

Every variable part is percent-encoded, so ``:`` inside a key or an
identifier can never be mistaken for a separator. An absent identifier is
the empty part, which encoding never produces for a real one.
"""

from typing import Optional
from urllib.parse import quote

DEFAULT_NAMESPACE = "tierconf"

# Raw persisted entries (TTL: cache_ttl_seconds)
RAW = "{ns}:raw:{scope}:{scope_id}:{key}"

# Fully resolved, decrypted values (TTL: cache_ttl_seconds)
RESOLVED = "{ns}:resolved:{key}:{organization_id}:{project_id}"

# Absent identifiers
NO_ID = ""


def encode_part(part: Optional[str]) -> str:
    """Percent-encode one key component; None and "" become NO_ID."""
    if not part:
        return NO_ID
    return quote(str(part), safe="")


def raw_key(scope: str, scope_id: Optional[str], key: str, ns: str = DEFAULT_NAMESPACE) -> str:
    return RAW.format(
        ns=ns,
        scope=encode_part(scope),
        scope_id=encode_part(scope_id),
        key=encode_part(key),
    )


def raw_scope_prefix(scope: str, scope_id: Optional[str], ns: str = DEFAULT_NAMESPACE) -> str:
    """Prefix covering every raw entry of one tier instance."""
    return f"{ns}:raw:{encode_part(scope)}:{encode_part(scope_id)}:"


def resolved_key(
    key: str,
    organization_id: Optional[str],
    project_id: Optional[str],
    ns: str = DEFAULT_NAMESPACE,
) -> str:
    return RESOLVED.format(
        ns=ns,
        key=encode_part(key),
        organization_id=encode_part(organization_id),
        project_id=encode_part(project_id),
    )


def resolved_prefix(key: str, ns: str = DEFAULT_NAMESPACE) -> str:
    """Prefix covering the resolved entries of ``key`` under every tier context."""
    return f"{ns}:resolved:{encode_part(key)}:"
