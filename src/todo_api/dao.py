from __future__ import annotations

import logging
from typing import List

from pydantic import ValidationError

from .exceptions import (
    IdGenerationError,
    InsertError,
    NotFoundError,
    QueryError,
    StoreOperationError,
)
from .models import ToDoItem
from .stores import DocumentCollection, ItemStore

logger = logging.getLogger(__name__)

TODO_ITEM_SEQUENCE = "todo-item-id"

# Read operations never surface the store's own identity field
_PROJECTION = {"_id": 0}


# PUBLIC_INTERFACE
class ToDoItemDAO:
    """
    Data access object for the to-do item collection.

    Ids come from a persisted sequence record ({name, value}) incremented with
    the store's atomic find-and-update, so concurrent inserts never share an
    id. The DAO does not open or close the store connection and does not cache
    items. Failures are raised as DataAccessError subclasses; StoreConnectionError
    propagates unchanged from every operation.
    """

    def __init__(
        self,
        store: ItemStore,
        collection: str = "todo-items",
        sequences: str = "sequences",
        sequence_name: str = TODO_ITEM_SEQUENCE,
    ) -> None:
        self._store = store
        self._collection_name = collection
        self._sequences_name = sequences
        self._sequence_name = sequence_name

    def _collection(self) -> DocumentCollection:
        return self._store.collection(self._collection_name)

    async def _new_id(self) -> int:
        """Increment the sequence record and return its post-increment value."""
        sequences = self._store.collection(self._sequences_name)
        try:
            record = await sequences.find_one_and_update(
                {"name": self._sequence_name}, {"$inc": {"value": 1}}
            )
        except StoreOperationError as e:
            raise IdGenerationError(self._sequence_name) from e
        if record is None or "value" not in record:
            raise IdGenerationError(self._sequence_name)
        new_id = int(record["value"])
        logger.debug("Allocated id %d from sequence '%s'", new_id, self._sequence_name)
        return new_id

    async def insert(self, item: ToDoItem) -> int:
        """
        Assign a fresh id to `item` and persist it.

        Returns:
            The assigned id, also set on `item.id`.

        Raises:
            IdGenerationError if no id could be allocated; nothing is written.
            InsertError if the store did not persist the document. The
            allocated id is then skipped for good.
        """
        item.id = await self._new_id()
        try:
            inserted = await self._collection().insert_one(item.to_document())
        except StoreOperationError as e:
            raise InsertError(f"Failed to insert item {item.id}: {e}") from e
        if inserted < 1:
            raise InsertError(f"Store reported no inserted document for item {item.id}")
        return item.id

    async def list_all(self) -> List[ToDoItem]:
        """Return every stored item, in no particular order."""
        try:
            docs = await self._collection().find({}, _PROJECTION)
            return [ToDoItem.model_validate(doc) for doc in docs]
        except (StoreOperationError, ValidationError) as e:
            raise QueryError(f"Failed to list items: {e}") from e

    async def find_by_id(self, item_id: int) -> ToDoItem:
        """
        Return the item with the given id.

        Raises:
            NotFoundError if no document has this id.
        """
        try:
            doc = await self._collection().find_one({"id": item_id}, _PROJECTION)
        except StoreOperationError as e:
            raise QueryError(f"Failed to find item {item_id}: {e}") from e
        if doc is None:
            raise NotFoundError(item_id)
        try:
            return ToDoItem.model_validate(doc)
        except ValidationError as e:
            raise QueryError(f"Stored item {item_id} is malformed: {e}") from e

    async def update(self, item: ToDoItem) -> bool:
        """
        Replace the whole document whose id is `item.id`.

        Returns True only if the store modified a document. False is returned
        both when no document has this id and when the replacement equals the
        stored document, so False does not imply the item is absent.
        """
        try:
            modified = await self._collection().replace_one({"id": item.id}, item.to_document())
        except StoreOperationError as e:
            raise QueryError(f"Failed to update item {item.id}: {e}") from e
        return modified > 0

    async def remove_by_id(self, item_id: int) -> bool:
        """Delete the item with the given id. Returns False if none matched."""
        try:
            deleted = await self._collection().delete_one({"id": item_id})
        except StoreOperationError as e:
            raise QueryError(f"Failed to remove item {item_id}: {e}") from e
        return deleted > 0
