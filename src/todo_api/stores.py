from __future__ import annotations

import copy
import itertools
import logging
from abc import ABC, abstractmethod
from threading import RLock
from typing import Any, Dict, List, Mapping, Optional, Set

from .exceptions import StoreConnectionError, StoreOperationError

logger = logging.getLogger(__name__)

Document = Dict[str, Any]
Filter = Mapping[str, Any]
Projection = Mapping[str, int]


# PUBLIC_INTERFACE
class DocumentCollection(ABC):
    """
    Collection-level operations of a document store.

    Filters are equality matches on top-level fields. Every method raises
    StoreConnectionError when the store is unreachable and
    StoreOperationError for any other failure reported by the backend.
    """

    @abstractmethod
    async def find(self, filter: Filter, projection: Optional[Projection] = None) -> List[Document]:
        """Return every document matching the filter."""

    @abstractmethod
    async def find_one(self, filter: Filter, projection: Optional[Projection] = None) -> Optional[Document]:
        """Return the first document matching the filter, or None."""

    @abstractmethod
    async def insert_one(self, document: Document) -> int:
        """Insert a document and return the number of inserted documents."""

    @abstractmethod
    async def find_one_and_update(self, filter: Filter, update: Mapping[str, Mapping[str, Any]]) -> Optional[Document]:
        """
        Atomically apply `update` ($inc / $set) to the first matching document
        and return the document as it is after the update, or None if nothing
        matched.
        """

    @abstractmethod
    async def replace_one(self, filter: Filter, document: Document) -> int:
        """Replace the first matching document and return the modified count."""

    @abstractmethod
    async def delete_one(self, filter: Filter) -> int:
        """Delete the first matching document and return the deleted count."""

    @abstractmethod
    async def create_index(self, field: str, unique: bool = False) -> None:
        """Create an ascending index on a single field."""


# PUBLIC_INTERFACE
class ItemStore(ABC):
    """Abstract document-store connection handed to the data access object."""

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether connect() succeeded and disconnect() was not called since."""

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection; calling it on a connected store is a no-op."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the connection; calling it on a closed store is a no-op."""

    @abstractmethod
    def collection(self, name: str) -> DocumentCollection:
        """Return the named collection. Raises StoreConnectionError if not connected."""

    @abstractmethod
    async def drop_collection(self, name: str) -> None:
        """Drop the named collection and its indexes."""


def _matches(document: Document, filter: Filter) -> bool:
    return all(key in document and document[key] == value for key, value in filter.items())


def _project(document: Document, projection: Optional[Projection]) -> Document:
    out = copy.deepcopy(document)
    if projection:
        for key, include in projection.items():
            if not include:
                out.pop(key, None)
    return out


class _InMemoryCollection(DocumentCollection):
    """List-backed collection; every operation runs under the owning store's lock."""

    def __init__(self, name: str, lock: RLock, object_ids: "itertools.count[int]") -> None:
        self.name = name
        self._lock = lock
        self._object_ids = object_ids
        self._docs: List[Document] = []
        self._unique: Set[str] = set()

    def _check_unique(self, document: Document, skip: Optional[Document] = None) -> None:
        for field in self._unique:
            if field not in document:
                continue
            for existing in self._docs:
                if existing is not skip and existing.get(field) == document[field]:
                    raise StoreOperationError(
                        f"Duplicate key in '{self.name}': {field}={document[field]!r}"
                    )

    async def find(self, filter: Filter, projection: Optional[Projection] = None) -> List[Document]:
        with self._lock:
            return [_project(d, projection) for d in self._docs if _matches(d, filter)]

    async def find_one(self, filter: Filter, projection: Optional[Projection] = None) -> Optional[Document]:
        with self._lock:
            for d in self._docs:
                if _matches(d, filter):
                    return _project(d, projection)
            return None

    async def insert_one(self, document: Document) -> int:
        with self._lock:
            stored = copy.deepcopy(document)
            stored.setdefault("_id", next(self._object_ids))
            self._check_unique(stored)
            self._docs.append(stored)
            return 1

    async def find_one_and_update(self, filter: Filter, update: Mapping[str, Mapping[str, Any]]) -> Optional[Document]:
        unsupported = set(update) - {"$inc", "$set"}
        if unsupported:
            raise StoreOperationError(f"Unsupported update operators: {sorted(unsupported)}")
        with self._lock:
            for d in self._docs:
                if not _matches(d, filter):
                    continue
                for key, amount in update.get("$inc", {}).items():
                    d[key] = d.get(key, 0) + amount
                for key, value in update.get("$set", {}).items():
                    d[key] = copy.deepcopy(value)
                return copy.deepcopy(d)
            return None

    async def replace_one(self, filter: Filter, document: Document) -> int:
        with self._lock:
            for i, d in enumerate(self._docs):
                if not _matches(d, filter):
                    continue
                replacement = copy.deepcopy(document)
                replacement["_id"] = d["_id"]
                if replacement == d:
                    # Identical replacement is matched but not modified
                    return 0
                self._check_unique(replacement, skip=d)
                self._docs[i] = replacement
                return 1
            return 0

    async def delete_one(self, filter: Filter) -> int:
        with self._lock:
            for i, d in enumerate(self._docs):
                if _matches(d, filter):
                    del self._docs[i]
                    return 1
            return 0

    async def create_index(self, field: str, unique: bool = False) -> None:
        if not unique:
            return
        with self._lock:
            seen = set()
            for d in self._docs:
                if field in d:
                    key = repr(d[field])
                    if key in seen:
                        raise StoreOperationError(
                            f"Cannot create unique index on '{self.name}.{field}': duplicates exist"
                        )
                    seen.add(key)
            self._unique.add(field)


class InMemoryItemStore(ItemStore):
    """
    Thread-safe in-memory document store suitable for testing and default runtime.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._collections: Dict[str, _InMemoryCollection] = {}
        self._object_ids = itertools.count(1)
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        if not self._connected:
            self._connected = True
            logger.info("Connected to the in-memory store")

    async def disconnect(self) -> None:
        if self._connected:
            self._connected = False
            logger.info("Closed in-memory store")

    def collection(self, name: str) -> DocumentCollection:
        if not self._connected:
            raise StoreConnectionError("Store is not connected")
        with self._lock:
            coll = self._collections.get(name)
            if coll is None:
                coll = _InMemoryCollection(name, self._lock, self._object_ids)
                self._collections[name] = coll
            return coll

    async def drop_collection(self, name: str) -> None:
        if not self._connected:
            raise StoreConnectionError("Store is not connected")
        with self._lock:
            self._collections.pop(name, None)


# PUBLIC_INTERFACE
def get_store(settings=None) -> ItemStore:
    """
    Factory to return the configured store based on settings.
    - memory: InMemoryItemStore
    - mongo: MongoItemStore (motor)
    """
    from .settings import get_settings

    settings = settings or get_settings()
    if settings.persistence_backend == "mongo":
        from .db import MongoItemStore

        return MongoItemStore(settings.mongo_url, settings.mongo_db_name)
    return InMemoryItemStore()
