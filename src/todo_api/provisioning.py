"""
Provision the to-do database.

Creates the item collection with a unique index on `id` and the
`todo-item-id` sequence record starting at 1. Optionally drops existing data
first and inserts a few sample items.

Usage:
    todo-provision [--reset] [--seed]
    python -m todo_api.provisioning [--reset] [--seed]
"""
from __future__ import annotations

import argparse
import asyncio
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from .dao import TODO_ITEM_SEQUENCE, ToDoItemDAO
from .exceptions import DataAccessError
from .models import ToDoItem
from .settings import Settings, get_settings
from .stores import ItemStore, get_store

logger = logging.getLogger(__name__)


def sample_items() -> List[ToDoItem]:
    """Sample items inserted by --seed."""
    return [
        ToDoItem(description="Make up some new ToDos", deadline=datetime(2019, 1, 1, 10, 45)),
        ToDoItem(description="Prep for Monday's class", tags=["tag1", "tag2"], deadline=datetime(2019, 10, 1)),
        ToDoItem(description="Answer recruiter emails on LinkedIn", tags=["tag1", "tag2"]),
        ToDoItem(description="Take Gracie to the park", deadline=datetime(2020, 4, 7, 11, 45)),
        ToDoItem(description="Finish writing book", tags=["tag1", "tag2"]),
    ]


# PUBLIC_INTERFACE
async def provision(
    store: ItemStore,
    collection: str = "todo-items",
    sequences: str = "sequences",
    *,
    reset: bool = False,
    seed: bool = False,
) -> List[int]:
    """
    Prepare a connected store for the data access object.

    Args:
        store: A connected ItemStore.
        collection: Item collection name.
        sequences: Sequence collection name.
        reset: Drop both collections first, restarting ids.
        seed: Insert sample_items() through ToDoItemDAO.

    Returns:
        Ids of the seeded items (empty when seed is False).
    """
    if reset:
        await store.drop_collection(collection)
        await store.drop_collection(sequences)
        logger.info("Dropped collections '%s' and '%s'", collection, sequences)

    await store.collection(collection).create_index("id", unique=True)
    await store.collection(sequences).create_index("name", unique=True)

    seq_coll = store.collection(sequences)
    if await seq_coll.find_one({"name": TODO_ITEM_SEQUENCE}) is None:
        await seq_coll.insert_one({"name": TODO_ITEM_SEQUENCE, "value": 1})
        logger.info("Created sequence '%s'", TODO_ITEM_SEQUENCE)

    ids: List[int] = []
    if seed:
        dao = ToDoItemDAO(store, collection=collection, sequences=sequences)
        for item in sample_items():
            ids.append(await dao.insert(item))
        logger.info("Seeded %d items", len(ids))
    return ids


async def _run(settings: Settings, reset: bool, seed: bool) -> List[int]:
    store = get_store(settings)
    await store.connect()
    try:
        return await provision(
            store,
            settings.todo_collection,
            settings.sequences_collection,
            reset=reset,
            seed=seed,
        )
    finally:
        await store.disconnect()


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Provision the to-do database.")
    parser.add_argument("--reset", action="store_true", help="drop existing items and sequences first")
    parser.add_argument("--seed", action="store_true", help="insert sample items")
    args = parser.parse_args(argv)

    settings = get_settings()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        asyncio.run(_run(settings, args.reset, args.seed))
    except DataAccessError:
        logger.exception("Provisioning failed")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
