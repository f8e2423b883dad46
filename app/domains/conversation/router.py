"""Conversation API router - dashboard listing and conversation updates."""

from fastapi import APIRouter, Query

from app.dependencies.realtime import Realtime
from app.domains.conversation.models import ConversationStatus
from app.domains.conversation.schemas import (
    ConversationDetail,
    ConversationListItem,
    ConversationUpdate,
)

router = APIRouter()


@router.get("", response_model=list[ConversationListItem])
async def list_conversations(
    realtime: Realtime,
    status: ConversationStatus | None = Query(None),
    agent_id: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
):
    """List conversations, most recently updated first."""
    return await realtime.conversations.list_conversations(
        status=status, agent_id=agent_id, limit=limit
    )


@router.get("/{pk}", response_model=ConversationDetail)
async def get_conversation(pk: str, realtime: Realtime):
    """Get a conversation with its messages."""
    return await realtime.conversations.get_conversation_detail(pk)


@router.patch("/{pk}", response_model=ConversationListItem)
async def update_conversation(pk: str, data: ConversationUpdate, realtime: Realtime):
    """
    Update status, assignment or priority.

    Connected agents receive the new listing through ``conversation:updated``.
    """
    conversation = await realtime.conversations.update_conversation(pk, data)
    listing = await realtime.conversations.build_listing(conversation)
    await realtime.announce_conversation_updated(listing)
    return listing
