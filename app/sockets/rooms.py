"""Room naming and the broadcast router over the Socket.IO server.

Room membership is held by the Socket.IO manager of this process only.
Running more than one server process would need a shared pub/sub manager.
"""

from abc import ABC, abstractmethod
from typing import Any

import socketio

AGENTS_ROOM = "agents"


# Room naming helpers
def get_conversation_room(conversation_id: str) -> str:
    """Get room name for a conversation."""
    return f"conversation:{conversation_id}"


def get_customer_room(customer_id: str) -> str:
    """Get room name for a customer across tabs and reconnects."""
    return f"customer:{customer_id}"


def get_agent_room(agent_id: str) -> str:
    """Get room name for specific agent."""
    return f"agent:{agent_id}"


class RoomRouter(ABC):
    """Fan-out interface used by the socket handlers (Port)."""

    @abstractmethod
    async def join(self, sid: str, room: str) -> None:
        pass

    @abstractmethod
    async def emit(
        self,
        event: str,
        data: Any,
        room: str | list[str] | None = None,
        skip_sid: str | None = None,
    ) -> None:
        """
        Emit to a room (or several, each socket receiving one copy), or to
        every connected client when room is None.
        """
        pass

    async def send(self, sid: str, event: str, data: Any) -> None:
        """Emit to a single connection."""
        await self.emit(event, data, room=sid)


class SocketIORoomRouter(RoomRouter):
    """python-socketio implementation of the room router (Adapter)."""

    def __init__(self, sio: socketio.AsyncServer, namespace: str = "/"):
        self._sio = sio
        self._namespace = namespace

    async def join(self, sid: str, room: str) -> None:
        await self._sio.enter_room(sid, room, namespace=self._namespace)

    async def emit(
        self,
        event: str,
        data: Any,
        room: str | list[str] | None = None,
        skip_sid: str | None = None,
    ) -> None:
        await self._sio.emit(
            event,
            data,
            to=room,
            skip_sid=skip_sid,
            namespace=self._namespace,
        )
