from __future__ import annotations

import functools
import logging
from typing import Any, Awaitable, Callable, List, Mapping, Optional, TypeVar

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import ConnectionFailure, PyMongoError

from .exceptions import StoreConnectionError, StoreOperationError
from .stores import Document, DocumentCollection, Filter, ItemStore, Projection

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _translate_errors(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    """Re-raise pymongo failures as data layer errors."""

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        try:
            return await func(*args, **kwargs)
        except ConnectionFailure as e:
            raise StoreConnectionError(str(e)) from e
        except PyMongoError as e:
            raise StoreOperationError(str(e)) from e

    return wrapper


class MongoCollection(DocumentCollection):
    """DocumentCollection over a motor collection."""

    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self._collection = collection

    @_translate_errors
    async def find(self, filter: Filter, projection: Optional[Projection] = None) -> List[Document]:
        cursor = self._collection.find(dict(filter), projection=projection)
        return await cursor.to_list(length=None)

    @_translate_errors
    async def find_one(self, filter: Filter, projection: Optional[Projection] = None) -> Optional[Document]:
        return await self._collection.find_one(dict(filter), projection=projection)

    @_translate_errors
    async def insert_one(self, document: Document) -> int:
        # insert_one adds _id to the dict it is given
        result = await self._collection.insert_one(dict(document))
        return 1 if result.acknowledged and result.inserted_id is not None else 0

    @_translate_errors
    async def find_one_and_update(self, filter: Filter, update: Mapping[str, Mapping[str, Any]]) -> Optional[Document]:
        return await self._collection.find_one_and_update(
            dict(filter),
            {op: dict(fields) for op, fields in update.items()},
            return_document=ReturnDocument.AFTER,
        )

    @_translate_errors
    async def replace_one(self, filter: Filter, document: Document) -> int:
        result = await self._collection.replace_one(dict(filter), dict(document))
        return result.modified_count

    @_translate_errors
    async def delete_one(self, filter: Filter) -> int:
        result = await self._collection.delete_one(dict(filter))
        return result.deleted_count

    @_translate_errors
    async def create_index(self, field: str, unique: bool = False) -> None:
        await self._collection.create_index([(field, ASCENDING)], unique=unique)


class MongoItemStore(ItemStore):
    """
    MongoDB store backed by motor.

    The client is created on connect() and verified with a ping, so a store
    that cannot reach its server fails at startup instead of on first query.
    `client_factory` builds the client from (url, **client_options); any
    motor-compatible client class can be passed.
    """

    def __init__(
        self,
        url: str,
        db_name: str,
        client_factory: Callable[..., Any] = AsyncIOMotorClient,
        **client_options: Any,
    ) -> None:
        self._url = url
        self._db_name = db_name
        self._client_factory = client_factory
        self._client_options = client_options
        self._client: Optional[AsyncIOMotorClient] = None

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        if self._client is not None:
            return
        client = self._client_factory(self._url, **self._client_options)
        try:
            await client.admin.command("ping")
        except PyMongoError as e:
            client.close()
            raise StoreConnectionError(f"Failed to connect to {self._url}: {e}") from e
        self._client = client
        logger.info("Connected to the database '%s'", self._db_name)

    async def disconnect(self) -> None:
        if self._client is None:
            return
        self._client.close()
        self._client = None
        logger.info("Closed database connection")

    def get_db(self) -> AsyncIOMotorDatabase:
        if self._client is None:
            raise StoreConnectionError("Database is not connected")
        return self._client[self._db_name]

    def collection(self, name: str) -> DocumentCollection:
        return MongoCollection(self.get_db()[name])

    @_translate_errors
    async def drop_collection(self, name: str) -> None:
        await self.get_db().drop_collection(name)
