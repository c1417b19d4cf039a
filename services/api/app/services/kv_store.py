from __future__ import annotations

from datetime import datetime
from typing import Protocol

from services.api.app.db.database import db_session
from services.api.app.db.models import KvEntry


class KeyValueStore(Protocol):
    """Opaque persistent string store, the server-side stand-in for browser storage."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class SqlKeyValueStore:
    """One row per key in `kv_entries`; each write is one upsert statement."""

    def get(self, key: str) -> str | None:
        db = db_session()
        try:
            row = db.get(KvEntry, key)
            return row.value if row is not None else None
        finally:
            db.close()

    def set(self, key: str, value: str) -> None:
        db = db_session()
        try:
            stmt = _upsert_stmt(db.get_bind().dialect.name, key, value)
            if stmt is None:
                db.merge(KvEntry(key=key, value=value, updated_at=datetime.utcnow()))
            else:
                db.execute(stmt)
            db.commit()
        finally:
            db.close()

    def delete(self, key: str) -> None:
        db = db_session()
        try:
            row = db.get(KvEntry, key)
            if row is not None:
                db.delete(row)
                db.commit()
        finally:
            db.close()


def _upsert_stmt(dialect: str, key: str, value: str):
    """Single-statement INSERT .. ON CONFLICT for dialects that support it, else None."""

    if dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    elif dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    else:
        return None

    stmt = insert(KvEntry).values(key=key, value=value, updated_at=datetime.utcnow())
    return stmt.on_conflict_do_update(
        index_elements=[KvEntry.key],
        set_={"value": stmt.excluded.value, "updated_at": stmt.excluded.updated_at},
    )
