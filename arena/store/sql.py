"""Data store backed by the async SQLAlchemy engine."""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from sqlalchemy import select, update, inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from ..database import create_session_factory
from ..errors import RecordNotFound, StoreError, VersionConflict
from ..models import (
    Match, Tournament, TournamentParticipant, TournamentRound, TournamentKill,
    LiveStream, LiveChatMessage,
)
from ..utils import ensure_aware
from .base import DataStore, Filter, Row

logger = logging.getLogger(__name__)

TABLES = {
    "matches": Match,
    "tournaments": Tournament,
    "tournament_participants": TournamentParticipant,
    "tournament_rounds": TournamentRound,
    "tournament_kills": TournamentKill,
    "live_streams": LiveStream,
    "live_chat_messages": LiveChatMessage,
}

# Driver-level failures (refused connection, timeout) are not wrapped by SQLAlchemy
DRIVER_ERRORS = (SQLAlchemyError, OSError, asyncio.TimeoutError)


def _to_dict(obj) -> Row:
    row: Dict[str, Any] = {}
    for attr in inspect(obj).mapper.column_attrs:
        value = getattr(obj, attr.key)
        if isinstance(value, datetime):
            value = ensure_aware(value)
        elif isinstance(value, dict):
            value = dict(value)
        row[attr.key] = value
    return row


def _condition(model, flt: Filter):
    column = getattr(model, flt.column)
    if flt.op == "eq":
        return column.is_(None) if flt.value is None else column == flt.value
    if flt.op == "neq":
        return column.is_not(None) if flt.value is None else column != flt.value
    if flt.op == "gt":
        return column > flt.value
    if flt.op == "gte":
        return column >= flt.value
    if flt.op == "lt":
        return column < flt.value
    if flt.op == "lte":
        return column <= flt.value
    return column.in_(list(flt.value))


class SQLAlchemyStore(DataStore):
    """One session (and one transaction) per call."""

    mode = "database"

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._sessions = create_session_factory(engine)

    @asynccontextmanager
    async def _session(self, action: str) -> AsyncIterator[AsyncSession]:
        """Open a session; database and connection failures surface as StoreError."""
        try:
            async with self._sessions() as session:
                yield session
        except DRIVER_ERRORS as e:
            logger.error(f"{action} failed: {e!r}")
            raise StoreError(f"{action} failed: {e}") from e

    def _model(self, table: str):
        try:
            return TABLES[table]
        except KeyError:
            raise StoreError(f"Unknown table: {table}")

    def _column(self, model, name: str):
        try:
            return getattr(model, name)
        except AttributeError as e:
            raise StoreError(f"Unknown column on {model.__tablename__}: {name}") from e

    def _where(self, model, filters: Sequence[Filter]):
        try:
            return [_condition(model, f) for f in filters]
        except AttributeError as e:
            raise StoreError(f"Unknown filter column on {model.__tablename__}: {e}") from e

    async def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Row]:
        model = self._model(table)
        query = select(model).where(*self._where(model, filters))
        if order_by:
            column = self._column(model, order_by)
            query = query.order_by(column.desc() if descending else column.asc())
        if limit is not None:
            query = query.limit(limit)
        async with self._session(f"select on {table}") as session:
            result = await session.execute(query)
            return [_to_dict(obj) for obj in result.scalars().all()]

    async def get(self, table: str, record_id: str) -> Row:
        model = self._model(table)
        async with self._session(f"get on {table}") as session:
            obj = await session.get(model, record_id)
            if obj is None:
                raise RecordNotFound(table, record_id)
            return _to_dict(obj)

    async def insert(self, table: str, row: Row) -> Row:
        model = self._model(table)
        try:
            obj = model(**row)
        except TypeError as e:
            raise StoreError(f"Invalid row for {table}: {e}") from e
        async with self._session(f"insert into {table}") as session:
            session.add(obj)
            await session.commit()
            await session.refresh(obj)
            return _to_dict(obj)

    async def update(self, table: str, patch: Row, filters: Sequence[Filter]) -> List[Row]:
        model = self._model(table)
        for key in patch:
            self._column(model, key)
        query = select(model).where(*self._where(model, filters))
        async with self._session(f"update on {table}") as session:
            result = await session.execute(query)
            objs = result.scalars().all()
            for obj in objs:
                for key, value in patch.items():
                    setattr(obj, key, value)
            await session.commit()
            for obj in objs:
                await session.refresh(obj)
            return [_to_dict(obj) for obj in objs]

    async def delete(self, table: str, filters: Sequence[Filter]) -> int:
        model = self._model(table)
        query = select(model).where(*self._where(model, filters))
        async with self._session(f"delete on {table}") as session:
            result = await session.execute(query)
            objs = result.scalars().all()
            for obj in objs:
                await session.delete(obj)
            await session.commit()
            return len(objs)

    async def merge_json(
        self,
        table: str,
        record_id: str,
        column: str,
        patch: Row,
        expected_version: Optional[int] = None,
        extra: Optional[Row] = None,
        version_column: str = "details_version",
    ) -> Row:
        model = self._model(table)
        # FOR UPDATE is dropped by dialects that lack it (SQLite)
        query = select(model).where(model.id == record_id).with_for_update()
        async with self._session(f"merge on {table}.{column}") as session:
            result = await session.execute(query)
            obj = result.scalar_one_or_none()
            if obj is None:
                raise RecordNotFound(table, record_id)
            current = getattr(obj, version_column) or 0
            if expected_version is not None and expected_version != current:
                raise VersionConflict(table, record_id, expected_version, current)
            merged = dict(getattr(obj, column) or {})
            merged.update(patch)
            # New dict object so the JSON column is flagged dirty
            setattr(obj, column, merged)
            setattr(obj, version_column, current + 1)
            for key, value in (extra or {}).items():
                setattr(obj, key, value)
            await session.commit()
            await session.refresh(obj)
            return _to_dict(obj)

    async def increment(self, table: str, record_id: str, amounts: Dict[str, int]) -> Row:
        model = self._model(table)
        values = {}
        for name, amount in amounts.items():
            column = self._column(model, name)
            values[column] = column + amount
        async with self._session(f"increment on {table}") as session:
            result = await session.execute(update(model).where(model.id == record_id).values(values))
            if result.rowcount == 0:
                raise RecordNotFound(table, record_id)
            await session.commit()
            obj = await session.get(model, record_id)
            return _to_dict(obj)

    async def set_exclusive(self, table: str, column: str, record_id: Optional[str]) -> None:
        model = self._model(table)
        flag = self._column(model, column)
        async with self._session(f"set_exclusive on {table}.{column}") as session:
            async with session.begin():
                if record_id is not None and await session.get(model, record_id) is None:
                    raise RecordNotFound(table, record_id)
                await session.execute(update(model).values({flag: False}))
                if record_id is not None:
                    await session.execute(
                        update(model).where(model.id == record_id).values({flag: True})
                    )

    async def close(self) -> None:
        await self.engine.dispose()
