"""tierconf - tiered configuration resolution and caching engine.

Resolves configuration keys through an ordered chain of scopes
(PROJECT > ORGANIZATION > SERVICE > COMMON > SYSTEM), encrypts values
flagged as sensitive, and keeps a TTL-bounded cache consistent with writes.
"""

__version__ = "0.1.0"
