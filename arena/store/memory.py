"""In-process store used in demo mode (no database reachable) and in tests."""

import asyncio
import copy
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from ..database import Base
from ..errors import RecordNotFound, StoreError, VersionConflict
from ..utils import ensure_aware
from .base import DataStore, Filter, Row

logger = logging.getLogger(__name__)


def _comparable(value: Any) -> Any:
    if isinstance(value, datetime):
        return ensure_aware(value)
    return value


def _matches(row: Row, flt: Filter) -> bool:
    actual = _comparable(row.get(flt.column))
    expected = flt.value
    if flt.op == "in":
        return actual in expected
    expected = _comparable(expected)
    if flt.op == "eq":
        return actual == expected
    if flt.op == "neq":
        return actual != expected
    if actual is None or expected is None:
        return False
    if flt.op == "gt":
        return actual > expected
    if flt.op == "gte":
        return actual >= expected
    if flt.op == "lt":
        return actual < expected
    return actual <= expected


class MemoryStore(DataStore):
    """Rows live in per-table dicts keyed by id.

    Column names and defaults come from the ORM table definitions so rows have
    the same shape as the ones the database store returns. Callers always get
    copies back.
    """

    mode = "memory"

    def __init__(self):
        # Register every model with Base.metadata
        from .. import models  # noqa: F401

        self._tables: Dict[str, Dict[str, Row]] = {name: {} for name in Base.metadata.tables}
        self._lock = asyncio.Lock()
        self._failures_pending = 0
        self.calls = 0

    def fail_next(self, count: int = 1):
        """Make the next ``count`` store calls raise StoreError."""
        logger.debug(f"Next {count} store calls will fail")
        self._failures_pending = count

    def _check(self, table: str) -> Dict[str, Row]:
        self.calls += 1
        if self._failures_pending > 0:
            self._failures_pending -= 1
            raise StoreError(f"Simulated store failure on {table}")
        if table not in self._tables:
            raise StoreError(f"Unknown table: {table}")
        return self._tables[table]

    def _columns(self, table: str):
        return Base.metadata.tables[table].columns

    def _validate(self, table: str, values: Row):
        unknown = set(values) - {c.name for c in self._columns(table)}
        if unknown:
            raise StoreError(f"Unknown columns for {table}: {sorted(unknown)}")

    def _with_defaults(self, table: str, row: Row) -> Row:
        full = {}
        for column in self._columns(table):
            if row.get(column.name) is not None:
                full[column.name] = copy.deepcopy(row[column.name])
            elif column.default is not None:
                default = column.default
                full[column.name] = default.arg(None) if default.is_callable else default.arg
            else:
                full[column.name] = None
        return full

    def _touch(self, table: str, row: Row):
        for column in self._columns(table):
            if column.onupdate is not None and column.onupdate.is_callable:
                row[column.name] = column.onupdate.arg(None)

    async def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Row]:
        async with self._lock:
            rows = [r for r in self._check(table).values() if all(_matches(r, f) for f in filters)]
            if order_by:
                # None sorts first ascending, last descending
                rows.sort(
                    key=lambda r: (r.get(order_by) is not None, _comparable(r.get(order_by))),
                    reverse=descending,
                )
            if limit is not None:
                rows = rows[:limit]
            return copy.deepcopy(rows)

    async def get(self, table: str, record_id: str) -> Row:
        async with self._lock:
            row = self._check(table).get(record_id)
            if row is None:
                raise RecordNotFound(table, record_id)
            return copy.deepcopy(row)

    async def insert(self, table: str, row: Row) -> Row:
        async with self._lock:
            rows = self._check(table)
            self._validate(table, row)
            full = self._with_defaults(table, row)
            if full["id"] in rows:
                raise StoreError(f"Duplicate id for {table}: {full['id']}")
            rows[full["id"]] = full
            return copy.deepcopy(full)

    async def update(self, table: str, patch: Row, filters: Sequence[Filter]) -> List[Row]:
        async with self._lock:
            rows = self._check(table)
            self._validate(table, patch)
            updated = []
            for row in rows.values():
                if all(_matches(row, f) for f in filters):
                    row.update(copy.deepcopy(patch))
                    self._touch(table, row)
                    updated.append(copy.deepcopy(row))
            return updated

    async def delete(self, table: str, filters: Sequence[Filter]) -> int:
        async with self._lock:
            rows = self._check(table)
            doomed = [key for key, row in rows.items() if all(_matches(row, f) for f in filters)]
            for key in doomed:
                del rows[key]
            return len(doomed)

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
        async with self._lock:
            rows = self._check(table)
            row = rows.get(record_id)
            if row is None:
                raise RecordNotFound(table, record_id)
            current = row.get(version_column) or 0
            if expected_version is not None and expected_version != current:
                raise VersionConflict(table, record_id, expected_version, current)
            merged = dict(row.get(column) or {})
            merged.update(copy.deepcopy(patch))
            row[column] = merged
            row[version_column] = current + 1
            if extra:
                self._validate(table, extra)
                row.update(copy.deepcopy(extra))
            self._touch(table, row)
            return copy.deepcopy(row)

    async def increment(self, table: str, record_id: str, amounts: Dict[str, int]) -> Row:
        async with self._lock:
            rows = self._check(table)
            self._validate(table, amounts)
            row = rows.get(record_id)
            if row is None:
                raise RecordNotFound(table, record_id)
            for column, amount in amounts.items():
                row[column] = (row.get(column) or 0) + amount
            return copy.deepcopy(row)

    async def set_exclusive(self, table: str, column: str, record_id: Optional[str]) -> None:
        async with self._lock:
            rows = self._check(table)
            if record_id is not None and record_id not in rows:
                raise RecordNotFound(table, record_id)
            for key, row in rows.items():
                row[column] = key == record_id
