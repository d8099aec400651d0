# backend/cardiocare/core/mongodb.py
"""MongoDB connection and chat history storage for the CardioCare agent."""

from datetime import datetime
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.errors import CollectionInvalid
from typing import Any, Dict, List, Optional
import logging

from cardiocare.core.config import settings

logger = logging.getLogger(__name__)

# Synchronous client (index setup at startup)
_sync_client: Optional[MongoClient] = None

# Async client (chat history reads and writes)
_async_client: Optional[AsyncIOMotorClient] = None

# Same-millisecond inserts tie on created_at; _id keeps insertion order
_NEWEST_FIRST = [("created_at", DESCENDING), ("_id", DESCENDING)]


def get_mongo_sync_client() -> MongoClient:
    """Get or create synchronous MongoDB client."""
    global _sync_client
    if _sync_client is None:
        logger.info(f"Connecting to MongoDB at {settings.mongodb_host}:{settings.mongodb_port}")
        _sync_client = MongoClient(settings.mongodb_url)
        # Test connection
        _sync_client.admin.command('ping')
        logger.info("MongoDB sync client connected successfully")
    return _sync_client


def get_mongo_async_client() -> AsyncIOMotorClient:
    """Get or create async MongoDB client for chat history."""
    global _async_client
    if _async_client is None:
        logger.info(f"Connecting to async MongoDB at {settings.mongodb_host}:{settings.mongodb_port}")
        _async_client = AsyncIOMotorClient(settings.mongodb_url)
    return _async_client


def close_mongo_clients():
    """Close both MongoDB clients."""
    global _sync_client, _async_client
    if _sync_client:
        _sync_client.close()
        _sync_client = None
        logger.info("MongoDB sync client closed")
    if _async_client:
        _async_client.close()
        _async_client = None
        logger.info("MongoDB async client closed")


def init_mongodb_collections():
    """Create the chat history collection and its indexes."""
    client = get_mongo_sync_client()
    db = client[settings.mongodb_db]
    name = settings.chat_history_collection

    try:
        db.create_collection(name)
        logger.info(f"Created '{name}' collection")
    except CollectionInvalid:
        logger.info(f"'{name}' collection already exists")

    chat_messages = db[name]
    chat_messages.create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])

    # TTL index: messages expire after the retention window
    chat_messages.create_index(
        [("created_at", ASCENDING)],
        expireAfterSeconds=settings.chat_message_retention_hours * 3600
    )
    logger.info(f"Created indexes for '{name}' collection")


def _serialize(doc: Dict[str, Any]) -> Dict[str, Any]:
    created_at = doc.get("created_at")
    return {
        "role": doc["role"],
        "content": doc["content"],
        "user_id": doc["user_id"],
        "created_at": created_at.isoformat() if isinstance(created_at, datetime) else created_at,
    }


class MongoChatHistoryStore:
    """
    Per-user chat history.

    Reads return newest-first; callers that feed a model reverse the list.
    """

    def __init__(self, collection=None):
        self._collection = collection

    @property
    def collection(self):
        if self._collection is None:
            client = get_mongo_async_client()
            self._collection = client[settings.mongodb_db][settings.chat_history_collection]
        return self._collection

    async def load_recent(self, user_id: str, limit: int) -> List[Dict[str, Any]]:
        cursor = self.collection.find({"user_id": user_id}).sort(_NEWEST_FIRST).limit(limit)
        docs = await cursor.to_list(length=limit)
        return [_serialize(doc) for doc in docs]

    async def append(self, user_id: str, role: str, content: str) -> None:
        await self.collection.insert_one({
            "user_id": user_id,
            "role": role,
            "content": content,
            "created_at": datetime.utcnow()
        })

    async def get_history(self, user_id: str, offset: int = 0, limit: int = 20) -> Dict[str, Any]:
        query = {"user_id": user_id}
        total = await self.collection.count_documents(query)
        cursor = self.collection.find(query).sort(_NEWEST_FIRST).skip(offset).limit(limit)
        docs = await cursor.to_list(length=limit)
        return {
            "items": [_serialize(doc) for doc in docs],
            "total": total,
            "offset": offset,
            "limit": limit,
        }

    async def delete_older_than(self, cutoff: datetime) -> int:
        result = await self.collection.delete_many({"created_at": {"$lt": cutoff}})
        logger.info(f"Deleted {result.deleted_count} chat messages older than {cutoff.isoformat()}")
        return result.deleted_count
