"""Agent domain schemas."""

from app.core.schemas import CamelModel


class AgentSummary(CamelModel):
    """Agent fields inlined into conversation listings."""

    id: str
    name: str
    email: str
    is_online: bool

    @classmethod
    def from_agent(cls, agent) -> "AgentSummary":
        return cls(
            id=str(agent.id),
            name=agent.name,
            email=agent.email,
            is_online=bool(agent.is_online),
        )
