"""Socket event schemas.

Inbound events form a closed set: every ``InboundEvent`` member has exactly
one payload schema in ``INBOUND_SCHEMAS`` and one handler in the namespace.
"""

from datetime import datetime
from enum import Enum

from pydantic import EmailStr, Field

from app.core.config import settings
from app.core.schemas import CamelModel
from app.domains.conversation.models import SenderType


class InboundEvent(str, Enum):
    """Client -> server events."""

    CUSTOMER_JOIN = "customer:join"
    CUSTOMER_MESSAGE = "customer:message"
    CUSTOMER_TYPING = "customer:typing"
    AGENT_JOIN = "agent:join"
    AGENT_MESSAGE = "agent:message"
    AGENT_TYPING = "agent:typing"
    AGENT_ONLINE = "agent:online"
    AGENT_OFFLINE = "agent:offline"
    MESSAGES_MARK_READ = "messages:mark-read"


class OutboundEvent:
    """Server -> client event names."""

    CONVERSATION_CREATED = "conversation:created"
    CONVERSATION_UPDATED = "conversation:updated"
    MESSAGE_RECEIVED = "message:received"
    MESSAGE_ERROR = "message:error"
    TYPING_START = "typing:start"
    TYPING_STOP = "typing:stop"
    AGENT_STATUS = "agent:status"
    MESSAGES_READ = "messages:read"


FILE_URL_PATTERN = r"^https?://\S+$"


# ============================================================
# Inbound payloads
# ============================================================


class CustomerJoinPayload(CamelModel):
    customer_id: str = Field(..., min_length=1)
    customer_name: str | None = Field(None, max_length=100)
    customer_email: EmailStr | None = None
    conversation_id: str | None = Field(None, min_length=1)


class CustomerMessagePayload(CamelModel):
    conversation_id: str | None = Field(None, min_length=1)
    customer_id: str = Field(..., min_length=1)
    customer_name: str | None = Field(None, max_length=100)
    customer_email: EmailStr | None = None
    content: str = Field(..., min_length=1, max_length=settings.max_message_length)
    file_url: str | None = Field(None, pattern=FILE_URL_PATTERN, max_length=2048)
    file_name: str | None = Field(None, max_length=255)
    temp_id: str | None = None


class AgentJoinPayload(CamelModel):
    agent_id: str = Field(..., min_length=1)
    conversation_id: str = Field(..., min_length=1)


class AgentMessagePayload(CamelModel):
    conversation_id: str = Field(..., min_length=1)
    agent_id: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1, max_length=settings.max_message_length)
    file_url: str | None = Field(None, pattern=FILE_URL_PATTERN, max_length=2048)
    file_name: str | None = Field(None, max_length=255)
    temp_id: str | None = None


class TypingPayload(CamelModel):
    conversation_id: str = Field(..., min_length=1)
    sender_id: str = Field(..., min_length=1)
    sender_type: SenderType


class AgentPresencePayload(CamelModel):
    agent_id: str = Field(..., min_length=1)


class MarkReadPayload(CamelModel):
    conversation_id: str = Field(..., min_length=1)
    message_ids: list[str]
    read_by: str = Field(..., min_length=1)
    read_by_type: SenderType


INBOUND_SCHEMAS: dict[InboundEvent, type[CamelModel]] = {
    InboundEvent.CUSTOMER_JOIN: CustomerJoinPayload,
    InboundEvent.CUSTOMER_MESSAGE: CustomerMessagePayload,
    InboundEvent.CUSTOMER_TYPING: TypingPayload,
    InboundEvent.AGENT_JOIN: AgentJoinPayload,
    InboundEvent.AGENT_MESSAGE: AgentMessagePayload,
    InboundEvent.AGENT_TYPING: TypingPayload,
    InboundEvent.AGENT_ONLINE: AgentPresencePayload,
    InboundEvent.AGENT_OFFLINE: AgentPresencePayload,
    InboundEvent.MESSAGES_MARK_READ: MarkReadPayload,
}


# ============================================================
# Outbound payloads
# ============================================================


class MessageErrorEvent(CamelModel):
    temp_id: str | None = None
    error: str


class TypingEvent(CamelModel):
    conversation_id: str
    sender_id: str
    sender_type: SenderType


class AgentStatusEvent(CamelModel):
    agent_id: str
    is_online: bool
    last_seen: datetime


class MessagesReadEvent(CamelModel):
    conversation_id: str
    message_ids: list[str]
    read_by: str
