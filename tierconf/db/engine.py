"""Database engine and session factories."""

from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tierconf.db.base import Base
from tierconf.settings import get_settings


def build_engine(url: Optional[str] = None) -> Engine:
    """Create an engine for ``url`` (defaults to settings.database_url).

    In-memory SQLite gets a single shared connection so every session sees
    the same database.
    """
    url = url or get_settings().database_url
    if url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


def init_schema(engine: Engine) -> None:
    """Create tables that do not exist yet. Production uses the Alembic migration."""
    Base.metadata.create_all(engine)


def get_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False)
