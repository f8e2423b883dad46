"""Conversation domain models for MongoDB.

Conversations and messages live in the ``conversations`` and ``messages``
collections. Agents live in PostgreSQL and are referenced by ``agent_id``.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class ConversationStatus(str, Enum):
    """Conversation status enum."""

    OPEN = "open"  # Waiting for the first agent reply
    ASSIGNED = "assigned"  # Claimed by an agent
    CLOSED = "closed"


# A customer may have at most one conversation in these states
ACTIVE_STATUSES = (ConversationStatus.OPEN, ConversationStatus.ASSIGNED)


class Priority(str, Enum):
    """Conversation priority enum."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class SenderType(str, Enum):
    """Message sender type enum."""

    AGENT = "agent"
    CUSTOMER = "customer"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Conversation(BaseModel):
    """Conversation document model for MongoDB."""

    id: str | None = Field(None, alias="_id")

    # Participants
    customer_id: str
    customer_name: str | None = None
    customer_email: str | None = None
    agent_id: str | None = None

    status: ConversationStatus = ConversationStatus.OPEN
    priority: Priority = Priority.NORMAL

    # Customer messages not yet read by an agent
    unread_count: int = 0

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Config:
        populate_by_name = True
        use_enum_values = True

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


class Message(BaseModel):
    """Message document model for MongoDB. Immutable apart from is_read."""

    id: str | None = Field(None, alias="_id")
    conversation_id: str

    # Sender info
    sender_id: str
    sender_type: SenderType
    sender_name: str

    # Content
    content: str
    file_url: str | None = None
    file_name: str | None = None

    is_read: bool = False

    created_at: datetime = Field(default_factory=utcnow)

    class Config:
        populate_by_name = True
        use_enum_values = True
