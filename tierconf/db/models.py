"""SQLAlchemy ORM models for the tierconf engine.

Tables:
- config_entries: tier-scoped configuration values, unique per (scope, scope_id, key)
"""

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text, UniqueConstraint

from tierconf.db.base import Base

# Singleton tiers (COMMON, SERVICE) carry no identifier; storing "" instead of
# NULL keeps the composite unique constraint effective on every backend.
SINGLETON_SCOPE_ID = ""


class ConfigEntryRecord(Base):
    """Persisted configuration entry for one tier instance."""

    __tablename__ = "config_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    scope = Column(String(32), nullable=False)
    scope_id = Column(String(128), nullable=False, default=SINGLETON_SCOPE_ID)
    key = Column(String(256), nullable=False)
    value = Column(Text, nullable=False)  # JSON-encoded tagged value
    value_kind = Column(String(16), nullable=False)
    is_encrypted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("scope", "scope_id", "key", name="uq_config_entries_scope_key"),
        Index("ix_config_entries_key", "key"),
    )
