"""ASGI application with Socket.IO integration."""

import socketio

from app.main import create_app

# Create FastAPI app
fastapi_app = create_app()

# Socket.IO handles /socket.io/* routes, FastAPI handles the rest
# (lifespan events are forwarded to FastAPI)
app = socketio.ASGIApp(
    fastapi_app.state.sio,
    other_asgi_app=fastapi_app,
    socketio_path="/socket.io",
)
