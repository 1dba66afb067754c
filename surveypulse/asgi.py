"""ASGI application with Socket.IO integration."""

import socketio

from surveypulse.main import create_app
from surveypulse.sockets.server import sio

# Create FastAPI app
fastapi_app = create_app()

# Socket.IO handles /socket.io/*, FastAPI everything else
app = socketio.ASGIApp(
    sio,
    other_asgi_app=fastapi_app,
    socketio_path="/socket.io",
)
