"""Typing coordinator - debounced typing:start / typing:stop per sender."""

import asyncio
import logging
from dataclasses import dataclass

from app.domains.conversation.models import SenderType
from app.sockets.rooms import RoomRouter, get_conversation_room
from app.sockets.schemas import OutboundEvent, TypingEvent

logger = logging.getLogger(__name__)


@dataclass
class _TypingSession:
    connection_id: str
    expiry: asyncio.Task


class TypingCoordinator:
    """
    One typing session per (conversation, sender).

    The first signal announces typing:start to the rest of the conversation
    room. Further signals inside the quiet window only push the expiry back.
    Clients never send an explicit stop: typing:stop is emitted once the
    window passes without a new signal.
    """

    def __init__(self, router: RoomRouter, timeout: float = 3.0):
        self._router = router
        self._timeout = timeout
        self._sessions: dict[tuple[str, str], _TypingSession] = {}

    async def on_typing_signal(
        self,
        connection_id: str,
        conversation_id: str,
        sender_id: str,
        sender_type: SenderType,
    ) -> None:
        key = (conversation_id, sender_id)
        event = TypingEvent(
            conversation_id=conversation_id,
            sender_id=sender_id,
            sender_type=sender_type,
        ).to_wire()

        previous = self._sessions.pop(key, None)
        if previous is not None:
            previous.expiry.cancel()

        expiry = asyncio.create_task(self._expire(key, connection_id, event))
        self._sessions[key] = _TypingSession(connection_id, expiry)

        if previous is None:
            await self._router.emit(
                OutboundEvent.TYPING_START,
                event,
                room=get_conversation_room(conversation_id),
                skip_sid=connection_id,
            )

    async def _expire(self, key: tuple[str, str], connection_id: str, event: dict) -> None:
        await asyncio.sleep(self._timeout)
        session = self._sessions.get(key)
        if session is None or session.expiry is not asyncio.current_task():
            return
        del self._sessions[key]
        try:
            await self._router.emit(
                OutboundEvent.TYPING_STOP,
                event,
                room=get_conversation_room(key[0]),
                skip_sid=connection_id,
            )
        except Exception:
            logger.exception(f"Failed to emit typing:stop for {key}")

    def cancel_for_connection(self, connection_id: str) -> int:
        """Drop every session owned by a connection without emitting stop."""
        keys = [k for k, s in self._sessions.items() if s.connection_id == connection_id]
        for key in keys:
            self._sessions.pop(key).expiry.cancel()
        return len(keys)

    def is_typing(self, conversation_id: str, sender_id: str) -> bool:
        return (conversation_id, sender_id) in self._sessions

    def shutdown(self) -> None:
        for session in self._sessions.values():
            session.expiry.cancel()
        self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)
