"""Connection registry - who is behind each live socket."""

from dataclasses import dataclass
from enum import Enum


class UserType(str, Enum):
    AGENT = "agent"
    CUSTOMER = "customer"


@dataclass
class Connection:
    connection_id: str
    user_id: str
    user_type: UserType
    conversation_id: str | None = None


class ConnectionRegistry:
    """
    In-memory map of sid -> Connection.

    Only touched from the event loop, so no locking. Operations on unknown
    connection IDs are no-ops.
    """

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}

    def register(
        self,
        connection_id: str,
        user_id: str,
        user_type: UserType,
        conversation_id: str | None = None,
    ) -> Connection:
        connection = Connection(connection_id, user_id, UserType(user_type), conversation_id)
        self._connections[connection_id] = connection
        return connection

    def attach_conversation(self, connection_id: str, conversation_id: str) -> None:
        connection = self._connections.get(connection_id)
        if connection is not None:
            connection.conversation_id = conversation_id

    def lookup(self, connection_id: str) -> Connection | None:
        return self._connections.get(connection_id)

    def remove(self, connection_id: str) -> Connection | None:
        return self._connections.pop(connection_id, None)

    def connections_for(self, user_id: str, user_type: UserType) -> list[Connection]:
        return [
            c
            for c in self._connections.values()
            if c.user_id == user_id and c.user_type == user_type
        ]

    def clear(self) -> None:
        self._connections.clear()

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._connections
