"""Pytest configuration and shared fixtures.

The socket layer is exercised without a network or databases: repositories
are in-memory implementations of the domain ports, and room fan-out is
recorded by ``RecordingRouter`` so tests can assert on what each
connection received.
"""

import asyncio
import itertools
from collections import defaultdict
from datetime import datetime
from typing import Any, AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.core.exceptions import PersistenceError
from app.domains.agent.models import Agent
from app.domains.agent.repository import AgentRepositoryInterface
from app.domains.conversation.models import (
    ACTIVE_STATUSES,
    Conversation,
    ConversationStatus,
    Message,
    utcnow,
)
from app.domains.conversation.repository import (
    ConversationRepositoryInterface,
    MessageRepositoryInterface,
)
from app.domains.conversation.service import ConversationService
from app.main import create_app
from app.sockets.hub import RealtimeHub
from app.sockets.namespace import SupportNamespace
from app.sockets.rooms import RoomRouter

TYPING_TIMEOUT = 0.1


# ============================================================
# In-memory repositories
# ============================================================


class InMemoryConversationRepository(ConversationRepositoryInterface):
    """Every call yields to the loop once, like a real driver round trip."""

    def __init__(self) -> None:
        self.items: dict[str, Conversation] = {}
        self._ids = itertools.count(1)

    async def create(self, conversation: Conversation) -> Conversation:
        await asyncio.sleep(0)
        conversation.id = f"conv-{next(self._ids)}"
        self.items[conversation.id] = conversation.model_copy()
        return conversation

    async def get_by_id(self, conversation_id: str) -> Conversation | None:
        await asyncio.sleep(0)
        found = self.items.get(conversation_id)
        return found.model_copy() if found else None

    async def find_active_for_customer(self, customer_id: str) -> Conversation | None:
        await asyncio.sleep(0)
        active = [
            c
            for c in self.items.values()
            if c.customer_id == customer_id and c.status in ACTIVE_STATUSES
        ]
        if not active:
            return None
        return max(active, key=lambda c: c.updated_at).model_copy()

    async def list_conversations(
        self,
        status: ConversationStatus | None = None,
        agent_id: str | None = None,
        limit: int = 50,
    ) -> list[Conversation]:
        await asyncio.sleep(0)
        found = [
            c
            for c in self.items.values()
            if (status is None or c.status == status)
            and (agent_id is None or c.agent_id == agent_id)
        ]
        found.sort(key=lambda c: (c.updated_at, c.id), reverse=True)
        return [c.model_copy() for c in found[:limit]]

    async def update_customer_info(
        self,
        conversation_id: str,
        customer_name: str | None,
        customer_email: str | None,
    ) -> Conversation | None:
        await asyncio.sleep(0)
        found = self.items.get(conversation_id)
        if found is None:
            return None
        if customer_name:
            found.customer_name = customer_name
        if customer_email:
            found.customer_email = customer_email
        found.updated_at = utcnow()
        return found.model_copy()

    async def touch(self, conversation_id: str, increment_unread: bool = False) -> None:
        await asyncio.sleep(0)
        found = self.items[conversation_id]
        found.updated_at = utcnow()
        if increment_unread:
            found.unread_count += 1

    async def claim(self, conversation_id: str, agent_id: str) -> bool:
        await asyncio.sleep(0)
        found = self.items[conversation_id]
        if found.status != ConversationStatus.OPEN:
            return False
        found.status = ConversationStatus.ASSIGNED.value
        found.agent_id = agent_id
        found.updated_at = utcnow()
        return True

    async def update_fields(self, conversation_id: str, fields: dict[str, Any]) -> Conversation | None:
        await asyncio.sleep(0)
        found = self.items.get(conversation_id)
        if found is None:
            return None
        for key, value in fields.items():
            setattr(found, key, getattr(value, "value", value))
        found.updated_at = utcnow()
        return found.model_copy()

    async def reset_unread(self, conversation_id: str) -> None:
        await asyncio.sleep(0)
        self.items[conversation_id].unread_count = 0


class InMemoryMessageRepository(MessageRepositoryInterface):
    def __init__(self) -> None:
        self.items: list[Message] = []
        self._ids = itertools.count(1)

    async def create(self, message: Message) -> Message:
        await asyncio.sleep(0)
        message.id = f"msg-{next(self._ids)}"
        self.items.append(message.model_copy())
        return message

    def for_conversation(self, conversation_id: str) -> list[Message]:
        return [m for m in self.items if m.conversation_id == conversation_id]

    async def get_latest(self, conversation_id: str) -> Message | None:
        await asyncio.sleep(0)
        messages = self.for_conversation(conversation_id)
        return messages[-1].model_copy() if messages else None

    async def list_messages(self, conversation_id: str, limit: int = 200) -> list[Message]:
        await asyncio.sleep(0)
        return [m.model_copy() for m in self.for_conversation(conversation_id)[:limit]]

    async def mark_read(self, conversation_id: str, message_ids: list[str]) -> int:
        await asyncio.sleep(0)
        count = 0
        for message in self.for_conversation(conversation_id):
            if message.id in message_ids and not message.is_read:
                message.is_read = True
                count += 1
        return count


class InMemoryAgentRepository(AgentRepositoryInterface):
    def __init__(self) -> None:
        self.items: dict[str, Agent] = {}
        self.presence_writes: list[tuple[str, bool]] = []
        self.fail_presence = False

    async def create(self, agent: Agent) -> Agent:
        await asyncio.sleep(0)
        self.items[agent.id] = agent
        return agent

    async def get_by_id(self, agent_id: str) -> Agent | None:
        await asyncio.sleep(0)
        return self.items.get(agent_id)

    async def get_by_ids(self, agent_ids: list[str]) -> dict[str, Agent]:
        await asyncio.sleep(0)
        return {i: self.items[i] for i in agent_ids if i in self.items}

    async def set_presence(self, agent_id: str, is_online: bool, last_seen: datetime) -> bool:
        await asyncio.sleep(0)
        if self.fail_presence:
            raise PersistenceError("agents table unavailable")
        agent = self.items.get(agent_id)
        if agent is None:
            return False
        agent.is_online = is_online
        agent.last_seen = last_seen
        self.presence_writes.append((agent_id, is_online))
        return True


# ============================================================
# Room fan-out recorder
# ============================================================


class RecordingRouter(RoomRouter):
    """
    Room router that delivers into per-connection inboxes.

    Mirrors Socket.IO semantics: a connection is always in the room named
    after its sid, a socket in several target rooms gets one copy, and
    ``skip_sid`` excludes the sender.
    """

    def __init__(self) -> None:
        self.connected: set[str] = set()
        self.rooms: dict[str, set[str]] = defaultdict(set)
        self.inbox: dict[str, list[tuple[str, Any]]] = defaultdict(list)

    def connect(self, sid: str) -> None:
        self.connected.add(sid)

    def disconnect(self, sid: str) -> None:
        self.connected.discard(sid)
        for members in self.rooms.values():
            members.discard(sid)

    async def join(self, sid: str, room: str) -> None:
        self.rooms[room].add(sid)

    async def emit(
        self,
        event: str,
        data: Any,
        room: str | list[str] | None = None,
        skip_sid: str | None = None,
    ) -> None:
        if room is None:
            targets = set(self.connected)
        else:
            targets = set()
            for name in [room] if isinstance(room, str) else room:
                targets |= self.rooms.get(name, set())
                if name in self.connected:
                    targets.add(name)
        targets.discard(skip_sid)
        for sid in sorted(targets):
            self.inbox[sid].append((event, data))

    def received(self, sid: str, event: str | None = None) -> list[Any]:
        return [data for name, data in self.inbox[sid] if event is None or name == event]

    def event_names(self, sid: str) -> list[str]:
        return [name for name, _ in self.inbox[sid]]


class SocketClient:
    """One simulated socket talking to the namespace."""

    def __init__(self, sid: str, router: RecordingRouter, namespace: SupportNamespace):
        self.sid = sid
        self._router = router
        self._namespace = namespace

    async def emit(self, event: str, data: Any = None) -> Any:
        return await self._namespace.trigger_event(event, self.sid, data)

    async def disconnect(self) -> None:
        # The server runs the handler first, then drops the sid from its rooms
        await self._namespace.on_disconnect(self.sid, "client disconnect")
        self._router.disconnect(self.sid)

    def received(self, event: str | None = None) -> list[Any]:
        return self._router.received(self.sid, event)

    def event_names(self) -> list[str]:
        return self._router.event_names(self.sid)


# ============================================================
# Fixtures
# ============================================================


@pytest.fixture
def router() -> RecordingRouter:
    return RecordingRouter()


@pytest.fixture
def conversation_repo() -> InMemoryConversationRepository:
    return InMemoryConversationRepository()


@pytest.fixture
def message_repo() -> InMemoryMessageRepository:
    return InMemoryMessageRepository()


@pytest.fixture
def agent_repo() -> InMemoryAgentRepository:
    repository = InMemoryAgentRepository()
    for agent_id, name in (("agent-1", "Alice"), ("agent-2", "Bob")):
        repository.items[agent_id] = Agent(
            id=agent_id,
            email=f"{name.lower()}@example.com",
            name=name,
            password_hash="not-a-real-hash",
            is_online=False,
        )
    return repository


@pytest.fixture
def conversation_service(conversation_repo, message_repo, agent_repo) -> ConversationService:
    return ConversationService(
        conversation_repository=conversation_repo,
        message_repository=message_repo,
        agent_repository=agent_repo,
    )


@pytest.fixture
def typing_timeout() -> float:
    return TYPING_TIMEOUT


@pytest_asyncio.fixture
async def hub(router, conversation_service, agent_repo) -> AsyncGenerator[RealtimeHub, None]:
    realtime = RealtimeHub(
        router, conversation_service, agent_repo, typing_timeout=TYPING_TIMEOUT
    )
    yield realtime
    await realtime.shutdown()


@pytest.fixture
def namespace(hub) -> SupportNamespace:
    return SupportNamespace(hub)


@pytest.fixture
def connect(router, namespace):
    """Factory for connected sockets: ``widget = connect("sid-1")``."""

    def _connect(sid: str) -> SocketClient:
        router.connect(sid)
        return SocketClient(sid, router, namespace)

    return _connect


@pytest_asyncio.fixture
async def client(hub) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client."""
    app = create_app(realtime=hub)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def customer_message() -> dict:
    """Sample widget payload for ``customer:message``."""
    return {
        "customerId": "cust-1",
        "customerName": "Jane",
        "customerEmail": "jane@example.com",
        "content": "Hi, my order has not arrived",
        "tempId": "tmp-1",
    }
