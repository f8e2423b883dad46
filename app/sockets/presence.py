"""Presence tracker - agent online/offline state."""

import logging
from datetime import datetime, timezone

from app.core.concurrency import BestEffortRunner
from app.domains.agent.repository import AgentRepositoryInterface
from app.sockets.rooms import RoomRouter
from app.sockets.schemas import AgentStatusEvent, OutboundEvent

logger = logging.getLogger(__name__)


class PresenceTracker:
    """
    Publishes agent presence.

    The database write goes through the best-effort runner and the status
    broadcast is emitted straight away, so a storage outage never hides an
    agent's status change from connected clients.
    """

    def __init__(
        self,
        router: RoomRouter,
        agent_repository: AgentRepositoryInterface,
        background: BestEffortRunner,
    ):
        self._router = router
        self._agent_repo = agent_repository
        self._background = background

    async def set_online(self, agent_id: str) -> None:
        await self._publish(agent_id, True)

    async def set_offline(self, agent_id: str) -> None:
        await self._publish(agent_id, False)

    async def _publish(self, agent_id: str, is_online: bool) -> None:
        last_seen = datetime.now(timezone.utc)

        self._background.run(
            self._agent_repo.set_presence(agent_id, is_online, last_seen),
            f"presence update for agent {agent_id}",
        )

        event = AgentStatusEvent(agent_id=agent_id, is_online=is_online, last_seen=last_seen)
        await self._router.emit(OutboundEvent.AGENT_STATUS, event.to_wire())

        logger.info(f"Agent {agent_id} is now {'online' if is_online else 'offline'}")
