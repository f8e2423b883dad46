"""Conversation repository - data access layer for MongoDB."""

import functools
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from app.core.exceptions import PersistenceError
from app.db.mongodb import CONVERSATIONS_COLLECTION, MESSAGES_COLLECTION, get_collection
from app.domains.conversation.models import (
    ACTIVE_STATUSES,
    Conversation,
    ConversationStatus,
    Message,
    utcnow,
)


def _object_id(value: str) -> ObjectId | None:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def _persistence_errors(func):
    """Re-raise driver errors as PersistenceError."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except PyMongoError as e:
            raise PersistenceError(f"{func.__name__} failed: {e}") from e

    return wrapper


class ConversationRepositoryInterface(ABC):
    """Conversation repository interface (Port)."""

    @abstractmethod
    async def create(self, conversation: Conversation) -> Conversation:
        """Create a new conversation."""
        pass

    @abstractmethod
    async def get_by_id(self, conversation_id: str) -> Conversation | None:
        """Get conversation by ID."""
        pass

    @abstractmethod
    async def find_active_for_customer(self, customer_id: str) -> Conversation | None:
        """Most recently updated open/assigned conversation of a customer."""
        pass

    @abstractmethod
    async def list_conversations(
        self,
        status: ConversationStatus | None = None,
        agent_id: str | None = None,
        limit: int = 50,
    ) -> list[Conversation]:
        """List conversations, most recently updated first."""
        pass

    @abstractmethod
    async def update_customer_info(
        self,
        conversation_id: str,
        customer_name: str | None,
        customer_email: str | None,
    ) -> Conversation | None:
        """Fill provided customer fields and bump updated_at."""
        pass

    @abstractmethod
    async def touch(self, conversation_id: str, increment_unread: bool = False) -> None:
        """Bump updated_at, optionally counting one more unread message."""
        pass

    @abstractmethod
    async def claim(self, conversation_id: str, agent_id: str) -> bool:
        """
        Move an open conversation to assigned.

        Only succeeds while the conversation is still open, so concurrent
        first replies cannot both claim it.
        """
        pass

    @abstractmethod
    async def update_fields(self, conversation_id: str, fields: dict[str, Any]) -> Conversation | None:
        """Set arbitrary fields, bump updated_at, return the new document."""
        pass

    @abstractmethod
    async def reset_unread(self, conversation_id: str) -> None:
        """Reset unread count to zero."""
        pass


class MessageRepositoryInterface(ABC):
    """Message repository interface (Port)."""

    @abstractmethod
    async def create(self, message: Message) -> Message:
        """Create a new message."""
        pass

    @abstractmethod
    async def get_latest(self, conversation_id: str) -> Message | None:
        """Most recent message of a conversation."""
        pass

    @abstractmethod
    async def list_messages(self, conversation_id: str, limit: int = 200) -> list[Message]:
        """Messages of a conversation, oldest first."""
        pass

    @abstractmethod
    async def mark_read(self, conversation_id: str, message_ids: list[str]) -> int:
        """Mark the given messages of a conversation as read."""
        pass


class MongoConversationRepository(ConversationRepositoryInterface):
    """MongoDB implementation of conversation repository (Adapter)."""

    @property
    def _collection(self):
        return get_collection(CONVERSATIONS_COLLECTION)

    @staticmethod
    def _to_model(doc: dict | None) -> Conversation | None:
        if not doc:
            return None
        doc["_id"] = str(doc["_id"])
        return Conversation(**doc)

    @_persistence_errors
    async def create(self, conversation: Conversation) -> Conversation:
        doc = conversation.model_dump(exclude={"id"}, by_alias=True)
        result = await self._collection.insert_one(doc)
        conversation.id = str(result.inserted_id)
        return conversation

    @_persistence_errors
    async def get_by_id(self, conversation_id: str) -> Conversation | None:
        oid = _object_id(conversation_id)
        if oid is None:
            return None
        return self._to_model(await self._collection.find_one({"_id": oid}))

    @_persistence_errors
    async def find_active_for_customer(self, customer_id: str) -> Conversation | None:
        doc = await self._collection.find_one(
            {
                "customer_id": customer_id,
                "status": {"$in": [status.value for status in ACTIVE_STATUSES]},
            },
            sort=[("updated_at", -1)],
        )
        return self._to_model(doc)

    @_persistence_errors
    async def list_conversations(
        self,
        status: ConversationStatus | None = None,
        agent_id: str | None = None,
        limit: int = 50,
    ) -> list[Conversation]:
        query: dict[str, Any] = {}
        if status:
            query["status"] = status.value if isinstance(status, ConversationStatus) else status
        if agent_id:
            query["agent_id"] = agent_id

        cursor = self._collection.find(query).sort([("updated_at", -1), ("_id", -1)]).limit(limit)
        return [self._to_model(doc) async for doc in cursor]

    @_persistence_errors
    async def update_customer_info(
        self,
        conversation_id: str,
        customer_name: str | None,
        customer_email: str | None,
    ) -> Conversation | None:
        oid = _object_id(conversation_id)
        if oid is None:
            return None

        update: dict[str, Any] = {"updated_at": utcnow()}
        if customer_name:
            update["customer_name"] = customer_name
        if customer_email:
            update["customer_email"] = customer_email

        doc = await self._collection.find_one_and_update(
            {"_id": oid},
            {"$set": update},
            return_document=ReturnDocument.AFTER,
        )
        return self._to_model(doc)

    @_persistence_errors
    async def touch(self, conversation_id: str, increment_unread: bool = False) -> None:
        update: dict[str, Any] = {"$set": {"updated_at": utcnow()}}
        if increment_unread:
            update["$inc"] = {"unread_count": 1}
        await self._collection.update_one({"_id": ObjectId(conversation_id)}, update)

    @_persistence_errors
    async def claim(self, conversation_id: str, agent_id: str) -> bool:
        result = await self._collection.update_one(
            {"_id": ObjectId(conversation_id), "status": ConversationStatus.OPEN.value},
            {
                "$set": {
                    "status": ConversationStatus.ASSIGNED.value,
                    "agent_id": agent_id,
                    "updated_at": utcnow(),
                }
            },
        )
        return result.modified_count > 0

    @_persistence_errors
    async def update_fields(self, conversation_id: str, fields: dict[str, Any]) -> Conversation | None:
        oid = _object_id(conversation_id)
        if oid is None:
            return None
        update = {
            key: value.value if isinstance(value, Enum) else value
            for key, value in fields.items()
        }
        update["updated_at"] = utcnow()
        doc = await self._collection.find_one_and_update(
            {"_id": oid},
            {"$set": update},
            return_document=ReturnDocument.AFTER,
        )
        return self._to_model(doc)

    @_persistence_errors
    async def reset_unread(self, conversation_id: str) -> None:
        await self._collection.update_one(
            {"_id": ObjectId(conversation_id)},
            {"$set": {"unread_count": 0}},
        )


class MongoMessageRepository(MessageRepositoryInterface):
    """MongoDB implementation of message repository (Adapter)."""

    @property
    def _collection(self):
        return get_collection(MESSAGES_COLLECTION)

    @staticmethod
    def _to_model(doc: dict) -> Message:
        doc["_id"] = str(doc["_id"])
        return Message(**doc)

    @_persistence_errors
    async def create(self, message: Message) -> Message:
        doc = message.model_dump(exclude={"id"}, by_alias=True)
        result = await self._collection.insert_one(doc)
        message.id = str(result.inserted_id)
        return message

    @_persistence_errors
    async def get_latest(self, conversation_id: str) -> Message | None:
        doc = await self._collection.find_one(
            {"conversation_id": conversation_id},
            sort=[("created_at", -1), ("_id", -1)],
        )
        return self._to_model(doc) if doc else None

    @_persistence_errors
    async def list_messages(self, conversation_id: str, limit: int = 200) -> list[Message]:
        cursor = (
            self._collection.find({"conversation_id": conversation_id})
            .sort([("created_at", 1), ("_id", 1)])
            .limit(limit)
        )
        return [self._to_model(doc) async for doc in cursor]

    @_persistence_errors
    async def mark_read(self, conversation_id: str, message_ids: list[str]) -> int:
        oids = [oid for oid in (_object_id(mid) for mid in message_ids) if oid is not None]
        if not oids:
            return 0
        result = await self._collection.update_many(
            {"_id": {"$in": oids}, "conversation_id": conversation_id},
            {"$set": {"is_read": True}},
        )
        return result.modified_count
