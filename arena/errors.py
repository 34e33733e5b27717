"""Error types shared by the store, the services and the routes."""

from typing import Optional


class StoreError(Exception):
    """A read or write against the data store failed."""


class RecordNotFound(StoreError):
    def __init__(self, table: str, record_id: str):
        self.table = table
        self.record_id = record_id
        super().__init__(f"{table} record {record_id} not found")


class VersionConflict(StoreError):
    def __init__(self, table: str, record_id: str, expected: int, actual: Optional[int]):
        self.table = table
        self.record_id = record_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{table} record {record_id} is at version {actual}, expected {expected}"
        )


class InvalidTransition(ValueError):
    """A status change that the entity's lifecycle does not allow."""

    def __init__(self, entity: str, current: str, target: str):
        self.entity = entity
        self.current = current
        self.target = target
        super().__init__(f"Cannot move {entity} from '{current}' to '{target}'")
