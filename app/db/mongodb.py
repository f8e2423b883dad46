"""MongoDB database connection using Motor (async driver)."""

import logging

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)

from app.core.config import settings

logger = logging.getLogger(__name__)

CONVERSATIONS_COLLECTION = "conversations"
MESSAGES_COLLECTION = "messages"

# Global MongoDB client and database instances
mongodb_client: AsyncIOMotorClient | None = None
mongodb_db: AsyncIOMotorDatabase | None = None


async def connect_mongodb() -> None:
    """Connect to MongoDB."""
    global mongodb_client, mongodb_db

    mongodb_client = AsyncIOMotorClient(
        settings.mongodb_url,
        maxPoolSize=50,
        minPoolSize=10,
        maxIdleTimeMS=30000,
        connectTimeoutMS=5000,
        serverSelectionTimeoutMS=5000,
        tz_aware=True,
    )
    mongodb_db = mongodb_client[settings.mongodb_database]

    try:
        await mongodb_client.admin.command("ping")
        logger.info(f"Connected to MongoDB: {settings.mongodb_database}")
    except Exception as e:
        logger.error(f"Failed to connect to MongoDB: {e}")
        raise


async def close_mongodb() -> None:
    """Close MongoDB connection."""
    global mongodb_client, mongodb_db

    if mongodb_client:
        mongodb_client.close()
        mongodb_client = None
        mongodb_db = None
        logger.info("MongoDB connection closed")


def get_mongodb() -> AsyncIOMotorDatabase:
    """Get MongoDB database instance."""
    if mongodb_db is None:
        raise RuntimeError("MongoDB is not connected")
    return mongodb_db


def get_collection(collection_name: str) -> AsyncIOMotorCollection:
    """
    Get a MongoDB collection.

    Resolved on every call so repositories can be built before the lifespan
    has connected the client.
    """
    db = get_mongodb()
    return db[collection_name]


async def ensure_indexes() -> None:
    """
    Create indexes used by the socket handlers.

    The active-conversation lookup filters by customer and status and sorts by
    updated_at; message listing sorts by created_at within a conversation.
    """
    db = get_mongodb()

    conversations = db[CONVERSATIONS_COLLECTION]
    await conversations.create_index([("customer_id", 1), ("status", 1), ("updated_at", -1)])
    await conversations.create_index([("status", 1), ("updated_at", -1)])
    await conversations.create_index("agent_id")

    messages = db[MESSAGES_COLLECTION]
    await messages.create_index([("conversation_id", 1), ("created_at", 1)])
    await messages.create_index([("conversation_id", 1), ("is_read", 1)])

    logger.info("MongoDB indexes ensured")
