"""Table-oriented data store interface.

The live-match services only ever talk to the store through this interface,
so the hosted database and the in-memory demo store are interchangeable.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

Row = Dict[str, Any]

FILTER_OPS = ("eq", "neq", "gt", "gte", "lt", "lte", "in")


@dataclass(frozen=True)
class Filter:
    column: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in FILTER_OPS:
            raise ValueError(f"Unsupported filter op: {self.op}")


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


def neq(column: str, value: Any) -> Filter:
    return Filter(column, "neq", value)


def gt(column: str, value: Any) -> Filter:
    return Filter(column, "gt", value)


def in_(column: str, values: Sequence[Any]) -> Filter:
    return Filter(column, "in", tuple(values))


class DataStore(ABC):
    """Generic select/insert/update/delete over named tables."""

    mode = "abstract"

    @abstractmethod
    async def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Row]:
        ...

    @abstractmethod
    async def get(self, table: str, record_id: str) -> Row:
        """Fetch one row by id; raises RecordNotFound."""

    @abstractmethod
    async def insert(self, table: str, row: Row) -> Row:
        ...

    @abstractmethod
    async def update(self, table: str, patch: Row, filters: Sequence[Filter]) -> List[Row]:
        ...

    @abstractmethod
    async def delete(self, table: str, filters: Sequence[Filter]) -> int:
        ...

    @abstractmethod
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
        """Overlay ``patch`` on the JSON object stored in ``column``.

        The merge happens against the value stored at write time, so fields
        written by other sessions survive. ``version_column`` is bumped on
        every write; when ``expected_version`` is given and does not match,
        VersionConflict is raised and nothing is written.
        """

    @abstractmethod
    async def increment(self, table: str, record_id: str, amounts: Dict[str, int]) -> Row:
        """Add to integer columns of one row in a single write; returns the row."""

    @abstractmethod
    async def set_exclusive(self, table: str, column: str, record_id: Optional[str]) -> None:
        """Clear a boolean flag on every row, then set it on one row, in one write."""

    async def close(self) -> None:
        return None
