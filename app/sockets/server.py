"""Socket.IO server configuration."""

import socketio

from app.core.config import settings
from app.sockets.hub import RealtimeHub
from app.sockets.namespace import SupportNamespace


def create_socket_server() -> socketio.AsyncServer:
    """Create the Socket.IO async server."""
    return socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=settings.cors_origins if settings.is_production else "*",
        logger=settings.is_development,
        engineio_logger=settings.is_development,
        ping_timeout=settings.socket_ping_timeout,
        ping_interval=settings.socket_ping_interval,
    )


def register_namespaces(sio: socketio.AsyncServer, hub: RealtimeHub) -> None:
    sio.register_namespace(SupportNamespace(hub, "/"))
