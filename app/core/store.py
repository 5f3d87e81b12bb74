"""Key-value persistence for dashboard documents.

Values are arbitrary JSON documents. ``get`` returns ``None`` for a key that
was never written or has been deleted; absence is a normal state. Every
storage fault is raised as :class:`StoreError` carrying the operation and the
key (or prefix) involved.
"""

import copy
from typing import Any, Optional, Protocol

from sqlalchemy import delete as sa_delete
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlmodel import col, select

from app.core.db import create_engine, create_session_factory, init_db
from app.models.kv_entry import KVEntry


class StoreError(RuntimeError):
    def __init__(self, *, operation: str, key: str, cause: Optional[BaseException] = None):
        super().__init__(f"Store {operation} failed for {key!r}: {cause}")
        self.operation = operation
        self.key = key
        self.cause = cause


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Optional[Any]: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def get_by_prefix(self, prefix: str) -> list[Any]: ...


class InMemoryKeyValueStore:
    """Process-local store; values are copied in and out so callers never share state."""

    def __init__(self, initial: Optional[dict[str, Any]] = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    async def get(self, key: str) -> Optional[Any]:
        return copy.deepcopy(self._data.get(key))

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def get_by_prefix(self, prefix: str) -> list[Any]:
        return [copy.deepcopy(self._data[k]) for k in sorted(self._data) if k.startswith(prefix)]

    def keys(self) -> list[str]:
        return sorted(self._data)


class SqlKeyValueStore:
    """SQLModel-backed store; one row per key in the ``kv_store`` table."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._session_factory = create_session_factory(engine)

    @classmethod
    def from_url(cls, database_url: str) -> "SqlKeyValueStore":
        return cls(create_engine(database_url))

    async def init(self) -> None:
        await init_db(self._engine)

    async def close(self) -> None:
        await self._engine.dispose()

    async def get(self, key: str) -> Optional[Any]:
        try:
            async with self._session_factory() as session:
                entry = await session.get(KVEntry, key)
                return None if entry is None else entry.value
        except SQLAlchemyError as exc:
            raise StoreError(operation="get", key=key, cause=exc) from exc

    async def set(self, key: str, value: Any) -> None:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await self._upsert(session, key, value)
        except SQLAlchemyError as exc:
            raise StoreError(operation="set", key=key, cause=exc) from exc

    async def delete(self, key: str) -> None:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await session.execute(sa_delete(KVEntry).where(col(KVEntry.key) == key))
        except SQLAlchemyError as exc:
            raise StoreError(operation="delete", key=key, cause=exc) from exc

    async def get_by_prefix(self, prefix: str) -> list[Any]:
        statement = (
            select(KVEntry)
            .where(col(KVEntry.key).startswith(prefix, autoescape=True))
            .order_by(col(KVEntry.key))
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(statement)
                entries = result.scalars().all()
        except SQLAlchemyError as exc:
            raise StoreError(operation="get_by_prefix", key=prefix, cause=exc) from exc
        # SQLite LIKE ignores ASCII case; keep the match exact.
        return [entry.value for entry in entries if entry.key.startswith(prefix)]

    async def _upsert(self, session: Any, key: str, value: Any) -> None:
        dialect = self._engine.dialect.name
        if dialect in ("sqlite", "postgresql"):
            insert = sqlite_insert if dialect == "sqlite" else pg_insert
            statement = insert(KVEntry).values(key=key, value=value)
            statement = statement.on_conflict_do_update(
                index_elements=["key"],
                set_={"value": statement.excluded["value"]},
            )
            await session.execute(statement)
        else:
            await session.merge(KVEntry(key=key, value=value))
