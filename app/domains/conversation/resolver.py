"""Conversation resolver - picks the conversation a customer message belongs to."""

import logging

from app.core.concurrency import KeyedLock
from app.core.exceptions import NotFoundError
from app.domains.conversation.models import Conversation, ConversationStatus
from app.domains.conversation.repository import ConversationRepositoryInterface

logger = logging.getLogger(__name__)


class ConversationResolver:
    """
    Reuse-or-create logic behind every customer message.

    Business rule: a customer has at most one open/assigned conversation. The
    lookup and the insert are separate awaits on the database driver, so two
    first messages from the same customer would both see "nothing active"
    and both insert. Resolution is therefore serialised per customer.
    """

    def __init__(self, repository: ConversationRepositoryInterface):
        self._repository = repository
        self._customer_locks = KeyedLock()

    def customer_lock(self, customer_id: str):
        """Lock shared by every check-then-write on a customer's active conversation."""
        return self._customer_locks.hold(customer_id)

    async def resolve_for_customer_message(
        self,
        customer_id: str,
        explicit_conversation_id: str | None = None,
        customer_name: str | None = None,
        customer_email: str | None = None,
    ) -> tuple[Conversation, bool]:
        """
        Resolve the target conversation.

        Returns:
            Tuple of (conversation, created)

        Raises:
            NotFoundError: If an explicit conversation ID does not exist
        """
        if explicit_conversation_id:
            conversation = await self._repository.get_by_id(explicit_conversation_id)
            if conversation is None:
                raise NotFoundError("Conversation", explicit_conversation_id)
            return conversation, False

        async with self.customer_lock(customer_id):
            existing = await self._repository.find_active_for_customer(customer_id)
            if existing is not None:
                updated = await self._repository.update_customer_info(
                    existing.id, customer_name, customer_email
                )
                logger.info(f"Using existing conversation {existing.id} for customer {customer_id}")
                return updated or existing, False

            conversation = await self._repository.create(
                Conversation(
                    customer_id=customer_id,
                    customer_name=customer_name,
                    customer_email=customer_email,
                    status=ConversationStatus.OPEN,
                    unread_count=0,
                )
            )
            logger.info(f"New conversation {conversation.id} created for customer {customer_id}")
            return conversation, True
