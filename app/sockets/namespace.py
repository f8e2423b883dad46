"""Support namespace - dispatches customer and agent socket events."""

import logging
from typing import Any, Awaitable, Callable

import socketio
from pydantic import ValidationError

from app.core.exceptions import AppException, PersistenceError
from app.sockets.hub import RealtimeHub
from app.sockets.registry import UserType
from app.sockets.rooms import (
    AGENTS_ROOM,
    get_agent_room,
    get_conversation_room,
    get_customer_room,
)
from app.sockets.schemas import (
    INBOUND_SCHEMAS,
    AgentJoinPayload,
    AgentMessagePayload,
    AgentPresencePayload,
    CustomerJoinPayload,
    CustomerMessagePayload,
    InboundEvent,
    MarkReadPayload,
    MessageErrorEvent,
    OutboundEvent,
    TypingPayload,
)

logger = logging.getLogger(__name__)

# (text for a malformed payload, text for an unexpected failure)
ERROR_TEXT: dict[InboundEvent, tuple[str, str]] = {
    InboundEvent.CUSTOMER_JOIN: ("Invalid join data", "Failed to join conversation"),
    InboundEvent.CUSTOMER_MESSAGE: ("Invalid message data", "Failed to send message"),
    InboundEvent.CUSTOMER_TYPING: ("Invalid typing data", "Failed to send typing indicator"),
    InboundEvent.AGENT_JOIN: ("Invalid join data", "Failed to join conversation"),
    InboundEvent.AGENT_MESSAGE: ("Invalid message data", "Failed to send message"),
    InboundEvent.AGENT_TYPING: ("Invalid typing data", "Failed to send typing indicator"),
    InboundEvent.AGENT_ONLINE: ("Invalid status data", "Failed to update status"),
    InboundEvent.AGENT_OFFLINE: ("Invalid status data", "Failed to update status"),
    InboundEvent.MESSAGES_MARK_READ: ("Invalid read data", "Failed to mark messages as read"),
}

Handler = Callable[[str, Any], Awaitable[Any]]


class SupportNamespace(socketio.AsyncNamespace):
    """
    Default namespace shared by the widget and the dashboard.

    Event names contain ``:`` and ``-`` so they cannot map to ``on_*``
    methods; ``trigger_event`` looks them up in the closed ``InboundEvent``
    table instead. Every event runs inside one failure boundary: whatever
    goes wrong, the sender gets ``message:error`` and the connection stays.
    """

    def __init__(self, hub: RealtimeHub, namespace: str = "/"):
        super().__init__(namespace)
        self._hub = hub
        self._handlers: dict[InboundEvent, Handler] = {
            InboundEvent.CUSTOMER_JOIN: self._customer_join,
            InboundEvent.CUSTOMER_MESSAGE: self._customer_message,
            InboundEvent.CUSTOMER_TYPING: self._typing,
            InboundEvent.AGENT_JOIN: self._agent_join,
            InboundEvent.AGENT_MESSAGE: self._agent_message,
            InboundEvent.AGENT_TYPING: self._typing,
            InboundEvent.AGENT_ONLINE: self._agent_online,
            InboundEvent.AGENT_OFFLINE: self._agent_offline,
            InboundEvent.MESSAGES_MARK_READ: self._mark_read,
        }

        events = set(InboundEvent)
        missing = (
            (events - self._handlers.keys())
            | (events - INBOUND_SCHEMAS.keys())
            | (events - ERROR_TEXT.keys())
        )
        if missing:
            raise RuntimeError(f"Unhandled socket events: {sorted(e.value for e in missing)}")

    async def on_connect(self, sid, environ, auth=None):
        logger.info(f"Client connected: {sid}")
        return True

    async def on_disconnect(self, sid, reason=None):
        logger.info(f"Client disconnected: {sid}, reason: {reason}")
        try:
            await self._hub.disconnect(sid)
        except Exception:
            logger.exception(f"Error during disconnect cleanup of {sid}")

    async def trigger_event(self, event, *args):
        if event in ("connect", "disconnect"):
            return await super().trigger_event(event, *args)

        try:
            inbound = InboundEvent(event)
        except ValueError:
            logger.warning(f"Ignoring unknown event '{event}'")
            return None

        sid = args[0]
        data = args[1] if len(args) > 1 else None
        try:
            async with self._hub.connection_locks.hold(sid):
                if self._hub.is_departed(sid):
                    logger.debug(f"Dropping {inbound.value} from disconnected {sid}")
                    return None
                return await self._dispatch(inbound, sid, data)
        finally:
            self._hub.forget_if_idle(sid)

    async def _dispatch(self, event: InboundEvent, sid: str, data: Any) -> Any:
        invalid_text, failure_text = ERROR_TEXT[event]
        temp_id = data.get("tempId") if isinstance(data, dict) else None
        if not isinstance(temp_id, str):
            temp_id = None

        try:
            payload = INBOUND_SCHEMAS[event].model_validate(data)
        except ValidationError as e:
            logger.info(f"Rejected {event.value} from {sid}: {e.error_count()} validation error(s)")
            return await self._reject(sid, temp_id, invalid_text)

        try:
            return await self._handlers[event](sid, payload)
        except PersistenceError:
            logger.exception(f"Storage failure in {event.value}")
            return await self._reject(sid, temp_id, failure_text)
        except AppException as e:
            logger.info(f"{event.value} from {sid} failed: {e.message}")
            return await self._reject(sid, temp_id, e.message)
        except Exception:
            logger.exception(f"Error in {event.value}")
            return await self._reject(sid, temp_id, failure_text)

    async def _reject(self, sid: str, temp_id: str | None, error: str) -> dict:
        try:
            await self._hub.router.send(
                sid,
                OutboundEvent.MESSAGE_ERROR,
                MessageErrorEvent(temp_id=temp_id, error=error).to_wire(),
            )
        except Exception:
            logger.exception(f"Failed to deliver message:error to {sid}")
        return {"success": False, "tempId": temp_id, "error": error}

    # ============================================
    # CUSTOMER EVENTS
    # ============================================

    async def _customer_join(self, sid: str, payload: CustomerJoinPayload) -> dict:
        hub = self._hub
        hub.registry.register(sid, payload.customer_id, UserType.CUSTOMER, payload.conversation_id)

        if payload.conversation_id:
            await hub.router.join(sid, get_conversation_room(payload.conversation_id))
        await hub.router.join(sid, get_customer_room(payload.customer_id))

        if payload.conversation_id:
            await hub.conversations.update_customer_info(
                payload.conversation_id, payload.customer_name, payload.customer_email
            )

        logger.info(
            f"Customer {payload.customer_id} joined (conversation {payload.conversation_id})"
        )
        return {"success": True}

    async def _customer_message(self, sid: str, payload: CustomerMessagePayload) -> dict:
        message = await self._hub.pipeline.handle_customer_message(sid, payload)
        return {"success": True, "tempId": payload.temp_id, "message": message.to_wire()}

    async def _typing(self, sid: str, payload: TypingPayload) -> None:
        await self._hub.typing.on_typing_signal(
            sid, payload.conversation_id, payload.sender_id, payload.sender_type
        )

    # ============================================
    # AGENT EVENTS
    # ============================================

    async def _agent_join(self, sid: str, payload: AgentJoinPayload) -> dict:
        hub = self._hub
        hub.registry.register(sid, payload.agent_id, UserType.AGENT, payload.conversation_id)

        await hub.router.join(sid, get_conversation_room(payload.conversation_id))
        await hub.router.join(sid, AGENTS_ROOM)
        await hub.router.join(sid, get_agent_room(payload.agent_id))

        logger.info(f"Agent {payload.agent_id} joined conversation {payload.conversation_id}")
        return {"success": True}

    async def _agent_message(self, sid: str, payload: AgentMessagePayload) -> dict:
        message = await self._hub.pipeline.handle_agent_message(sid, payload)
        return {"success": True, "tempId": payload.temp_id, "message": message.to_wire()}

    async def _agent_online(self, sid: str, payload: AgentPresencePayload) -> dict:
        hub = self._hub
        await hub.router.join(sid, AGENTS_ROOM)
        await hub.router.join(sid, get_agent_room(payload.agent_id))
        if sid not in hub.registry:
            hub.registry.register(sid, payload.agent_id, UserType.AGENT)

        await hub.presence.set_online(payload.agent_id)
        return {"success": True}

    async def _agent_offline(self, sid: str, payload: AgentPresencePayload) -> dict:
        await self._hub.presence.set_offline(payload.agent_id)
        return {"success": True}

    # ============================================
    # SHARED EVENTS
    # ============================================

    async def _mark_read(self, sid: str, payload: MarkReadPayload) -> dict:
        count = await self._hub.pipeline.handle_mark_read(sid, payload)
        return {"success": True, "readCount": count}
