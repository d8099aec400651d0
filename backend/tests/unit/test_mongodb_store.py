"""
Test MongoDB Chat History Store
Tests query shape and serialization against a stub collection
"""

import asyncio
from datetime import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from pymongo import DESCENDING

from cardiocare.core.mongodb import MongoChatHistoryStore


def make_collection(docs=(), total=0, deleted=0):
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.skip.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.to_list = AsyncMock(return_value=list(docs))

    collection = MagicMock()
    collection.find.return_value = cursor
    collection.insert_one = AsyncMock()
    collection.count_documents = AsyncMock(return_value=total)
    collection.delete_many = AsyncMock(return_value=SimpleNamespace(deleted_count=deleted))
    return collection, cursor


DOC = {
    "_id": "abc",
    "user_id": "user-1",
    "role": "assistant",
    "content": "Hello",
    "created_at": datetime(2025, 3, 1, 9, 0),
}


def test_load_recent_is_newest_first_with_id_tiebreak():
    collection, cursor = make_collection(docs=[DOC])
    store = MongoChatHistoryStore(collection=collection)

    items = asyncio.run(store.load_recent("user-1", 5))

    collection.find.assert_called_once_with({"user_id": "user-1"})
    cursor.sort.assert_called_once_with([("created_at", DESCENDING), ("_id", DESCENDING)])
    cursor.limit.assert_called_once_with(5)
    assert items == [{
        "role": "assistant",
        "content": "Hello",
        "user_id": "user-1",
        "created_at": "2025-03-01T09:00:00",
    }]


def test_append_writes_timestamped_document():
    collection, _ = make_collection()
    store = MongoChatHistoryStore(collection=collection)

    asyncio.run(store.append("user-1", "user", "Hi Bubu"))

    doc = collection.insert_one.await_args.args[0]
    assert doc["user_id"] == "user-1"
    assert doc["role"] == "user"
    assert doc["content"] == "Hi Bubu"
    assert isinstance(doc["created_at"], datetime)


def test_get_history_pages_with_total():
    collection, cursor = make_collection(docs=[DOC], total=7)
    store = MongoChatHistoryStore(collection=collection)

    page = asyncio.run(store.get_history("user-1", offset=2, limit=1))

    cursor.sort.assert_called_once_with([("created_at", DESCENDING), ("_id", DESCENDING)])
    cursor.skip.assert_called_once_with(2)
    assert page["total"] == 7
    assert page["offset"] == 2
    assert page["limit"] == 1
    assert page["items"][0]["content"] == "Hello"


def test_delete_older_than_uses_cutoff():
    collection, _ = make_collection(deleted=3)
    store = MongoChatHistoryStore(collection=collection)
    cutoff = datetime(2025, 3, 1)

    deleted = asyncio.run(store.delete_older_than(cutoff))

    assert deleted == 3
    collection.delete_many.assert_awaited_once_with({"created_at": {"$lt": cutoff}})
