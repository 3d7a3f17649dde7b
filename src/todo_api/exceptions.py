from __future__ import annotations

from typing import Optional


# PUBLIC_INTERFACE
class DataAccessError(Exception):
    """Base class for every failure raised by the to-do data layer."""


class StoreConnectionError(DataAccessError):
    """The document store is unreachable or has not been connected yet."""


class StoreOperationError(DataAccessError):
    """A store backend reported a failure while executing a single operation."""


class IdGenerationError(DataAccessError):
    """The atomic counter update found no matching sequence record."""

    def __init__(self, sequence_name: str) -> None:
        super().__init__(f"No sequence record named '{sequence_name}'")
        self.sequence_name = sequence_name


class InsertError(DataAccessError):
    """The store did not persist the new document."""


class QueryError(DataAccessError):
    """A read or write query against the item collection failed."""


class NotFoundError(DataAccessError):
    """A lookup by id matched no document."""

    def __init__(self, item_id: int, message: Optional[str] = None) -> None:
        super().__init__(message or f"No to-do item with id {item_id}")
        self.item_id = item_id
