"""Message pipeline - persist chat messages and fan them out."""

import logging

from app.core.concurrency import KeyedLock
from app.domains.conversation.models import SenderType
from app.domains.conversation.schemas import MessageOut
from app.domains.conversation.service import ConversationService
from app.sockets.registry import ConnectionRegistry, UserType
from app.sockets.rooms import (
    AGENTS_ROOM,
    RoomRouter,
    get_conversation_room,
    get_customer_room,
)
from app.sockets.schemas import (
    AgentMessagePayload,
    CustomerMessagePayload,
    MarkReadPayload,
    MessagesReadEvent,
    OutboundEvent,
)

logger = logging.getLogger(__name__)


class MessagePipeline:
    """
    Customer and agent message flow.

    Persisting a message and broadcasting it happen under a per-conversation
    lock, so room members receive a conversation's messages in the order
    they were stored.
    """

    def __init__(
        self,
        router: RoomRouter,
        registry: ConnectionRegistry,
        conversations: ConversationService,
    ):
        self._router = router
        self._registry = registry
        self._conversations = conversations
        self._conversation_locks = KeyedLock()

    async def handle_customer_message(self, sid: str, payload: CustomerMessagePayload) -> MessageOut:
        """
        Resolve (or create) the conversation, persist, broadcast.

        Raises:
            NotFoundError: If an explicit conversation ID does not exist
        """
        conversation, created = await self._conversations.resolver.resolve_for_customer_message(
            customer_id=payload.customer_id,
            explicit_conversation_id=payload.conversation_id,
            customer_name=payload.customer_name,
            customer_email=payload.customer_email,
        )

        if created:
            listing = await self._conversations.build_listing(conversation)
            await self._router.emit(
                OutboundEvent.CONVERSATION_CREATED, listing.to_wire(), room=AGENTS_ROOM
            )

        room = get_conversation_room(conversation.id)
        await self._router.join(sid, room)
        if sid in self._registry:
            self._registry.attach_conversation(sid, conversation.id)
        else:
            self._registry.register(sid, payload.customer_id, UserType.CUSTOMER, conversation.id)

        async with self._conversation_locks.hold(conversation.id):
            message = await self._conversations.record_customer_message(
                conversation,
                customer_id=payload.customer_id,
                content=payload.content,
                customer_name=payload.customer_name or conversation.customer_name,
                file_url=payload.file_url,
                file_name=payload.file_name,
            )
            message_out = MessageOut.from_message(message)
            await self._router.emit(OutboundEvent.MESSAGE_RECEIVED, message_out.to_wire(), room=room)

            listing = await self._conversations.get_listing(conversation.id)
            await self._router.emit(
                OutboundEvent.CONVERSATION_UPDATED, listing.to_wire(), room=AGENTS_ROOM
            )

        logger.info(
            f"Message from customer {payload.customer_id} in conversation {conversation.id}"
        )
        return message_out

    async def handle_agent_message(self, sid: str, payload: AgentMessagePayload) -> MessageOut:
        """
        Persist an agent reply; the first reply claims an open conversation.

        Agents never create conversations implicitly.

        Raises:
            NotFoundError: If the agent or the conversation does not exist
        """
        agent = await self._conversations.get_agent(payload.agent_id)
        conversation = await self._conversations.get_conversation(payload.conversation_id)

        async with self._conversation_locks.hold(conversation.id):
            message = await self._conversations.record_agent_message(
                conversation,
                agent,
                content=payload.content,
                file_url=payload.file_url,
                file_name=payload.file_name,
            )
            message_out = MessageOut.from_message(message)

            # The customer room covers a widget that has not joined the
            # conversation room yet; a socket in both rooms gets one copy.
            await self._router.emit(
                OutboundEvent.MESSAGE_RECEIVED,
                message_out.to_wire(),
                room=[
                    get_conversation_room(conversation.id),
                    get_customer_room(conversation.customer_id),
                ],
            )

            listing = await self._conversations.get_listing(conversation.id)
            await self._router.emit(
                OutboundEvent.CONVERSATION_UPDATED, listing.to_wire(), room=AGENTS_ROOM
            )

        logger.info(
            f"Message from agent {payload.agent_id} in conversation {conversation.id} "
            f"(customer {conversation.customer_id})"
        )
        return message_out

    async def handle_mark_read(self, sid: str, payload: MarkReadPayload) -> int:
        """
        Mark messages read and publish the read receipt.

        Raises:
            NotFoundError: If the conversation does not exist
        """
        count = await self._conversations.mark_messages_read(
            payload.conversation_id,
            payload.message_ids,
            payload.read_by_type,
        )

        if payload.read_by_type == SenderType.AGENT:
            listing = await self._conversations.get_listing(payload.conversation_id)
            await self._router.emit(
                OutboundEvent.CONVERSATION_UPDATED, listing.to_wire(), room=AGENTS_ROOM
            )

        receipt = MessagesReadEvent(
            conversation_id=payload.conversation_id,
            message_ids=payload.message_ids,
            read_by=payload.read_by,
        )
        await self._router.emit(
            OutboundEvent.MESSAGES_READ,
            receipt.to_wire(),
            room=get_conversation_room(payload.conversation_id),
        )
        return count
