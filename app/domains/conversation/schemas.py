"""Conversation domain schemas - wire shapes shared by sockets and HTTP."""

from datetime import datetime

from pydantic import Field

from app.core.schemas import CamelModel
from app.domains.agent.schemas import AgentSummary
from app.domains.conversation.models import (
    Conversation,
    ConversationStatus,
    Message,
    Priority,
    SenderType,
)


# ============================================================
# Message Schemas
# ============================================================


class MessageOut(CamelModel):
    """Full persisted message as delivered in ``message:received``."""

    id: str
    conversation_id: str
    sender_id: str
    sender_type: SenderType
    sender_name: str
    content: str
    file_url: str | None = None
    file_name: str | None = None
    is_read: bool
    created_at: datetime

    @classmethod
    def from_message(cls, message: Message) -> "MessageOut":
        return cls(
            id=str(message.id),
            conversation_id=message.conversation_id,
            sender_id=message.sender_id,
            sender_type=message.sender_type,
            sender_name=message.sender_name,
            content=message.content,
            file_url=message.file_url,
            file_name=message.file_name,
            is_read=message.is_read,
            created_at=message.created_at,
        )


class LastMessagePreview(CamelModel):
    """Most recent message inlined into a conversation listing."""

    id: str
    content: str
    sender_type: SenderType
    created_at: datetime


# ============================================================
# Conversation Schemas
# ============================================================


class ConversationListItem(CamelModel):
    """
    Listing shape used by ``conversation:created``/``conversation:updated``
    and the dashboard list: agent summary and last message inlined, no
    message collection.
    """

    id: str
    customer_id: str
    customer_name: str | None = None
    customer_email: str | None = None
    agent_id: str | None = None
    agent: AgentSummary | None = None
    status: ConversationStatus
    priority: Priority
    unread_count: int
    last_message: LastMessagePreview | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def build(
        cls,
        conversation: Conversation,
        agent: AgentSummary | None = None,
        last_message: Message | None = None,
    ) -> "ConversationListItem":
        preview = None
        if last_message is not None:
            preview = LastMessagePreview(
                id=str(last_message.id),
                content=last_message.content,
                sender_type=last_message.sender_type,
                created_at=last_message.created_at,
            )
        return cls(
            id=str(conversation.id),
            customer_id=conversation.customer_id,
            customer_name=conversation.customer_name,
            customer_email=conversation.customer_email,
            agent_id=conversation.agent_id,
            agent=agent,
            status=conversation.status,
            priority=conversation.priority,
            unread_count=conversation.unread_count,
            last_message=preview,
            created_at=conversation.created_at,
            updated_at=conversation.updated_at,
        )


class ConversationDetail(ConversationListItem):
    """Conversation with its full, oldest-first message history."""

    messages: list[MessageOut] = Field(default_factory=list)


class ConversationUpdate(CamelModel):
    """Schema for updating status, assignment or priority."""

    status: ConversationStatus | None = None
    agent_id: str | None = Field(None, min_length=1)
    priority: Priority | None = None
