"""Conversation domain service - conversation and message business logic."""

import logging

from app.core.exceptions import ActiveConversationExistsError, NotFoundError
from app.domains.agent.models import Agent
from app.domains.agent.repository import AgentRepositoryInterface
from app.domains.agent.schemas import AgentSummary
from app.domains.conversation.models import (
    Conversation,
    ConversationStatus,
    Message,
    SenderType,
)
from app.domains.conversation.repository import (
    ConversationRepositoryInterface,
    MessageRepositoryInterface,
)
from app.domains.conversation.resolver import ConversationResolver
from app.domains.conversation.schemas import (
    ConversationDetail,
    ConversationListItem,
    ConversationUpdate,
    MessageOut,
)

logger = logging.getLogger(__name__)

DEFAULT_CUSTOMER_NAME = "Customer"


class ConversationService:
    """Conversation management service.

    Depends on repository interfaces only; the socket layer and the HTTP
    routes share one instance.
    """

    def __init__(
        self,
        conversation_repository: ConversationRepositoryInterface,
        message_repository: MessageRepositoryInterface,
        agent_repository: AgentRepositoryInterface,
    ):
        self._conversation_repo = conversation_repository
        self._message_repo = message_repository
        self._agent_repo = agent_repository
        self.resolver = ConversationResolver(conversation_repository)

    async def get_conversation(self, conversation_id: str) -> Conversation:
        """
        Get conversation by ID.

        Raises:
            NotFoundError: If conversation not found
        """
        conversation = await self._conversation_repo.get_by_id(conversation_id)
        if not conversation:
            raise NotFoundError("Conversation", conversation_id)
        return conversation

    async def get_agent(self, agent_id: str) -> Agent:
        """
        Get agent by ID.

        Raises:
            NotFoundError: If agent not found
        """
        agent = await self._agent_repo.get_by_id(agent_id)
        if not agent:
            raise NotFoundError("Agent", agent_id)
        return agent

    async def update_customer_info(
        self,
        conversation_id: str,
        customer_name: str | None,
        customer_email: str | None,
    ) -> Conversation | None:
        """Fill customer details supplied on join; unknown IDs are ignored."""
        if not (customer_name or customer_email):
            return None
        return await self._conversation_repo.update_customer_info(
            conversation_id, customer_name, customer_email
        )

    async def record_customer_message(
        self,
        conversation: Conversation,
        customer_id: str,
        content: str,
        customer_name: str | None = None,
        file_url: str | None = None,
        file_name: str | None = None,
    ) -> Message:
        """
        Persist a customer message and count it as unread for agents.

        Returns:
            Created message
        """
        message = await self._message_repo.create(
            Message(
                conversation_id=conversation.id,
                sender_id=customer_id,
                sender_type=SenderType.CUSTOMER,
                sender_name=customer_name or DEFAULT_CUSTOMER_NAME,
                content=content,
                file_url=file_url,
                file_name=file_name,
            )
        )
        await self._conversation_repo.touch(conversation.id, increment_unread=True)
        return message

    async def record_agent_message(
        self,
        conversation: Conversation,
        agent: Agent,
        content: str,
        file_url: str | None = None,
        file_name: str | None = None,
    ) -> Message:
        """
        Persist an agent reply.

        The first reply to an open conversation claims it: status becomes
        assigned and agent_id is set unless one was already recorded.

        Returns:
            Created message
        """
        message = await self._message_repo.create(
            Message(
                conversation_id=conversation.id,
                sender_id=str(agent.id),
                sender_type=SenderType.AGENT,
                sender_name=agent.name,
                content=content,
                file_url=file_url,
                file_name=file_name,
            )
        )

        claimed = False
        if conversation.status == ConversationStatus.OPEN:
            claimed = await self._conversation_repo.claim(
                conversation.id, conversation.agent_id or str(agent.id)
            )
            if claimed:
                logger.info(f"Conversation {conversation.id} assigned to agent {agent.id}")
        if not claimed:
            await self._conversation_repo.touch(conversation.id)
        return message

    async def mark_messages_read(
        self,
        conversation_id: str,
        message_ids: list[str],
        reader_type: SenderType,
    ) -> int:
        """
        Mark messages as read.

        An agent reading resets the conversation's unread count.

        Returns:
            Number of messages marked as read
        """
        await self.get_conversation(conversation_id)

        count = await self._message_repo.mark_read(conversation_id, message_ids)
        if reader_type == SenderType.AGENT:
            await self._conversation_repo.reset_unread(conversation_id)
        return count

    async def build_listing(self, conversation: Conversation) -> ConversationListItem:
        """Enrich a conversation with its agent summary and last message."""
        agent = None
        if conversation.agent_id:
            found = await self._agent_repo.get_by_id(conversation.agent_id)
            if found is not None:
                agent = AgentSummary.from_agent(found)
        last_message = await self._message_repo.get_latest(conversation.id)
        return ConversationListItem.build(conversation, agent, last_message)

    async def get_listing(self, conversation_id: str) -> ConversationListItem:
        """Reload a conversation and return its listing shape."""
        return await self.build_listing(await self.get_conversation(conversation_id))

    async def list_conversations(
        self,
        status: ConversationStatus | None = None,
        agent_id: str | None = None,
        limit: int = 50,
    ) -> list[ConversationListItem]:
        """
        List conversations in listing shape.

        Agent summaries are fetched in one query for the whole page.
        """
        conversations = await self._conversation_repo.list_conversations(
            status=status, agent_id=agent_id, limit=limit
        )
        agent_ids = sorted({c.agent_id for c in conversations if c.agent_id})
        agents = await self._agent_repo.get_by_ids(agent_ids)

        items = []
        for conversation in conversations:
            agent = agents.get(conversation.agent_id) if conversation.agent_id else None
            last_message = await self._message_repo.get_latest(conversation.id)
            items.append(
                ConversationListItem.build(
                    conversation,
                    AgentSummary.from_agent(agent) if agent else None,
                    last_message,
                )
            )
        return items

    async def get_conversation_detail(self, conversation_id: str) -> ConversationDetail:
        """Conversation listing plus its messages, oldest first."""
        listing = await self.get_listing(conversation_id)
        messages = await self._message_repo.list_messages(conversation_id)
        return ConversationDetail(
            **listing.model_dump(),
            messages=[MessageOut.from_message(m) for m in messages],
        )

    async def update_conversation(
        self,
        conversation_id: str,
        data: ConversationUpdate,
    ) -> Conversation:
        """
        Update status, assignment or priority.

        Business rules:
        - Assigning an agent without an explicit status marks it assigned
        - A conversation may only become active again when the customer has
          no other open/assigned conversation

        Raises:
            NotFoundError: If conversation or assigned agent not found
            ActiveConversationExistsError: If reactivation would break the
                one-active-conversation rule
        """
        conversation = await self.get_conversation(conversation_id)

        fields: dict = {}
        if "agent_id" in data.model_fields_set:
            if data.agent_id:
                await self.get_agent(data.agent_id)
                if data.status is None:
                    fields["status"] = ConversationStatus.ASSIGNED
            fields["agent_id"] = data.agent_id
        if data.status is not None:
            fields["status"] = data.status
        if data.priority is not None:
            fields["priority"] = data.priority

        new_status = fields.get("status", conversation.status)
        reactivating = not conversation.is_active and new_status != ConversationStatus.CLOSED

        if not reactivating:
            updated = await self._conversation_repo.update_fields(conversation_id, fields)
            return updated or conversation

        async with self.resolver.customer_lock(conversation.customer_id):
            other = await self._conversation_repo.find_active_for_customer(conversation.customer_id)
            if other is not None and other.id != conversation.id:
                raise ActiveConversationExistsError(conversation.customer_id, other.id)
            updated = await self._conversation_repo.update_fields(conversation_id, fields)
            return updated or conversation
