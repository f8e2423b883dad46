"""Agent repository - data access layer."""

from abc import ABC, abstractmethod
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import PersistenceError
from app.domains.agent.models import Agent


class AgentRepositoryInterface(ABC):
    """Agent repository interface (Port)."""

    @abstractmethod
    async def create(self, agent: Agent) -> Agent:
        """Create a new agent."""
        pass

    @abstractmethod
    async def get_by_id(self, agent_id: str) -> Agent | None:
        """Get agent by ID."""
        pass

    @abstractmethod
    async def get_by_ids(self, agent_ids: list[str]) -> dict[str, Agent]:
        """Get agents keyed by ID; unknown IDs are left out."""
        pass

    @abstractmethod
    async def set_presence(self, agent_id: str, is_online: bool, last_seen: datetime) -> bool:
        """Persist presence fields. Returns False when the agent does not exist."""
        pass


class AgentRepository(AgentRepositoryInterface):
    """
    SQLAlchemy implementation of agent repository (Adapter).

    The socket layer outlives any single request, so each call opens its own
    session from the factory instead of sharing one.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create(self, agent: Agent) -> Agent:
        try:
            async with self._session_factory() as db:
                db.add(agent)
                await db.commit()
                await db.refresh(agent)
                return agent
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create agent: {e}") from e

    async def get_by_id(self, agent_id: str) -> Agent | None:
        try:
            async with self._session_factory() as db:
                result = await db.execute(select(Agent).where(Agent.id == agent_id))
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load agent: {e}") from e

    async def get_by_ids(self, agent_ids: list[str]) -> dict[str, Agent]:
        if not agent_ids:
            return {}
        try:
            async with self._session_factory() as db:
                result = await db.execute(select(Agent).where(Agent.id.in_(agent_ids)))
                return {agent.id: agent for agent in result.scalars().all()}
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load agents: {e}") from e

    async def set_presence(self, agent_id: str, is_online: bool, last_seen: datetime) -> bool:
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    update(Agent)
                    .where(Agent.id == agent_id)
                    .values(is_online=is_online, last_seen=last_seen)
                )
                await db.commit()
                return result.rowcount > 0
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to update agent presence: {e}") from e
