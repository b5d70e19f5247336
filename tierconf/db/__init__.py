"""Database package for the tierconf engine."""

from tierconf.db.base import Base
from tierconf.db.engine import build_engine, get_session_factory, init_schema
from tierconf.db.models import SINGLETON_SCOPE_ID, ConfigEntryRecord

__all__ = [
    "Base",
    "ConfigEntryRecord",
    "SINGLETON_SCOPE_ID",
    "build_engine",
    "get_session_factory",
    "init_schema",
]
