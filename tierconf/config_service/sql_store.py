"""SQLAlchemy-backed configuration store."""

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional, TypeVar

from sqlalchemy import delete, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session

from tierconf.db.engine import get_session_factory
from tierconf.db.models import SINGLETON_SCOPE_ID, ConfigEntryRecord
from tierconf.errors import StoreUnavailableError

from .config import Scope
from .config_store import ConfigEntry, ConfigStore
from .values import ConfigValue

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _as_utc(ts: datetime) -> datetime:
    # SQLite drops tzinfo on the way back
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


class SqlConfigStore(ConfigStore):
    """ConfigStore persisting entries in the ``config_entries`` table."""

    def __init__(self, engine: Engine):
        self._engine = engine
        self._session_factory = get_session_factory(engine)

    # --- ConfigStore contract ---

    def read(self, scope: Scope, scope_id: Optional[str], key: str) -> Optional[ConfigEntry]:
        def _read(session: Session) -> Optional[ConfigEntry]:
            record = session.execute(self._select(scope, scope_id, key)).scalar_one_or_none()
            return self._to_entry(record) if record is not None else None

        return self._run(_read, "read")

    def write(
        self,
        scope: Scope,
        scope_id: Optional[str],
        key: str,
        value: ConfigValue,
        is_encrypted: bool = False,
    ) -> ConfigEntry:
        def _write(session: Session) -> ConfigEntry:
            now = datetime.now(timezone.utc)
            record = session.execute(self._select(scope, scope_id, key)).scalar_one_or_none()
            if record is None:
                record = ConfigEntryRecord(
                    scope=scope.value,
                    scope_id=scope_id or SINGLETON_SCOPE_ID,
                    key=key,
                    created_at=now,
                )
                session.add(record)
            record.value = value.to_json()
            record.value_kind = value.kind.value
            record.is_encrypted = is_encrypted
            record.updated_at = now
            session.commit()
            return self._to_entry(record)

        try:
            return self._run(_write, "write")
        except IntegrityError:
            # A concurrent writer inserted the same composite key first;
            # the second attempt finds it and updates in place.
            logger.debug("Concurrent insert on %s/%s/%s, retrying as update",
                         scope.value, scope_id or "-", key)
            return self._run(_write, "write")

    def delete(self, scope: Scope, scope_id: Optional[str], key: str) -> bool:
        def _delete(session: Session) -> bool:
            result = session.execute(
                delete(ConfigEntryRecord).where(
                    ConfigEntryRecord.scope == scope.value,
                    ConfigEntryRecord.scope_id == (scope_id or SINGLETON_SCOPE_ID),
                    ConfigEntryRecord.key == key,
                )
            )
            session.commit()
            return result.rowcount > 0

        return self._run(_delete, "delete")

    def list_entries(self, scope: Scope, scope_id: Optional[str]) -> List[ConfigEntry]:
        def _list(session: Session) -> List[ConfigEntry]:
            records = session.execute(
                select(ConfigEntryRecord)
                .where(
                    ConfigEntryRecord.scope == scope.value,
                    ConfigEntryRecord.scope_id == (scope_id or SINGLETON_SCOPE_ID),
                )
                .order_by(ConfigEntryRecord.key)
            ).scalars().all()
            return [self._to_entry(r) for r in records]

        return self._run(_list, "list")

    def close(self) -> None:
        self._engine.dispose()

    # --- Helpers ---

    def _run(self, operation: Callable[[Session], T], action: str) -> T:
        try:
            with self._session_factory() as session:
                return operation(session)
        except IntegrityError:
            raise
        except (OperationalError, DBAPIError) as exc:
            logger.warning("Config store %s failed: %s", action, type(exc).__name__)
            raise StoreUnavailableError(
                f"config store {action} failed", {"backend": "sql"}
            ) from exc

    @staticmethod
    def _select(scope: Scope, scope_id: Optional[str], key: str):
        return select(ConfigEntryRecord).where(
            ConfigEntryRecord.scope == scope.value,
            ConfigEntryRecord.scope_id == (scope_id or SINGLETON_SCOPE_ID),
            ConfigEntryRecord.key == key,
        )

    @staticmethod
    def _to_entry(record: ConfigEntryRecord) -> ConfigEntry:
        return ConfigEntry(
            key=record.key,
            scope=Scope(record.scope),
            scope_id=record.scope_id or None,
            value=ConfigValue.from_json(record.value),
            is_encrypted=bool(record.is_encrypted),
            created_at=_as_utc(record.created_at),
            updated_at=_as_utc(record.updated_at),
        )
