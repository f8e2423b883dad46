"""Realtime hub - owner of all in-process socket state."""

import logging

from app.core.concurrency import BestEffortRunner, KeyedLock
from app.core.config import settings
from app.db.postgres import AsyncSessionLocal
from app.domains.agent.repository import AgentRepository, AgentRepositoryInterface
from app.domains.conversation.repository import (
    MongoConversationRepository,
    MongoMessageRepository,
)
from app.domains.conversation.schemas import ConversationListItem
from app.domains.conversation.service import ConversationService
from app.sockets.pipeline import MessagePipeline
from app.sockets.presence import PresenceTracker
from app.sockets.registry import ConnectionRegistry, UserType
from app.sockets.rooms import AGENTS_ROOM, RoomRouter
from app.sockets.schemas import OutboundEvent
from app.sockets.typing_indicator import TypingCoordinator

logger = logging.getLogger(__name__)


class RealtimeHub:
    """
    Top-level coordinator for the socket layer.

    Created once by the app factory and shut down by the lifespan. Every
    handler reaches the registry, typing sessions and locks through this
    object; none of them are module globals.
    """

    def __init__(
        self,
        router: RoomRouter,
        conversations: ConversationService,
        agent_repository: AgentRepositoryInterface,
        typing_timeout: float | None = None,
        shutdown_grace: float | None = None,
    ):
        self.router = router
        self.conversations = conversations
        self.registry = ConnectionRegistry()
        self.background = BestEffortRunner()
        self.presence = PresenceTracker(router, agent_repository, self.background)
        self.typing = TypingCoordinator(
            router,
            timeout=settings.typing_timeout_seconds if typing_timeout is None else typing_timeout,
        )
        self.pipeline = MessagePipeline(router, self.registry, conversations)
        # Events of one connection are handled one at a time, in arrival order
        self.connection_locks = KeyedLock()
        # Sids whose disconnect has started; their queued events are dropped
        self._departed: set[str] = set()
        self._shutdown_grace = (
            settings.shutdown_grace_seconds if shutdown_grace is None else shutdown_grace
        )

    def is_departed(self, sid: str) -> bool:
        return sid in self._departed

    def forget_if_idle(self, sid: str) -> None:
        """Drop the departed mark once no event of ``sid`` is running or queued."""
        if sid in self._departed and sid not in self.connection_locks:
            self._departed.discard(sid)

    async def disconnect(self, sid: str) -> None:
        """
        Tear down everything tied to a socket.

        Runs under the connection's lock, after any event already in
        flight. Events of ``sid`` still queued behind it are dropped, so
        nothing re-registers the connection once it is gone. Safe to call
        for unknown or already removed connections.
        """
        self._departed.add(sid)
        try:
            async with self.connection_locks.hold(sid):
                await self._cleanup(sid)
        finally:
            self.forget_if_idle(sid)

    async def _cleanup(self, sid: str) -> None:
        connection = self.registry.remove(sid)
        cancelled = self.typing.cancel_for_connection(sid)
        if cancelled:
            logger.debug(f"Cancelled {cancelled} typing session(s) of {sid}")

        if connection is None or connection.user_type != UserType.AGENT:
            return
        if self.registry.connections_for(connection.user_id, UserType.AGENT):
            # Another tab of the same agent is still connected
            return
        await self.presence.set_offline(connection.user_id)

    async def announce_conversation_updated(self, listing: ConversationListItem) -> None:
        await self.router.emit(
            OutboundEvent.CONVERSATION_UPDATED, listing.to_wire(), room=AGENTS_ROOM
        )

    async def shutdown(self) -> None:
        self.typing.shutdown()
        stuck = await self.background.drain(timeout=self._shutdown_grace)
        if stuck:
            logger.warning(f"Cancelling {stuck} best-effort write(s) still running at shutdown")
            await self.background.cancel_all()
        self.registry.clear()
        self._departed.clear()
        logger.info("Realtime hub stopped")


def create_realtime_hub(router: RoomRouter) -> RealtimeHub:
    """Hub wired to the MongoDB and PostgreSQL repositories."""
    agent_repository = AgentRepository(AsyncSessionLocal)
    conversations = ConversationService(
        conversation_repository=MongoConversationRepository(),
        message_repository=MongoMessageRepository(),
        agent_repository=agent_repository,
    )
    return RealtimeHub(router, conversations, agent_repository)
