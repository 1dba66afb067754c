"""Socket.IO server configuration and utilities."""

import logging

import socketio

from surveypulse.core.config import settings
from surveypulse.core.exceptions import AppException
from surveypulse.core.security import verify_access_token
from surveypulse.dependencies.auth import user_from_payload

logger = logging.getLogger(__name__)


# Create Socket.IO async server
sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins=settings.cors_origins if settings.is_production else "*",
    logger=settings.is_development,
    engineio_logger=settings.is_development,
    ping_timeout=60,
    ping_interval=25,
)


# Session storage for connected clients
# Maps sid -> member info
connected_members: dict[str, dict] = {}


class SocketAuth:
    """Socket authentication utilities."""

    @staticmethod
    async def authenticate_member(auth_data: dict) -> dict | None:
        """
        Authenticate a tenant member from a JWT.

        Args:
            auth_data: dict with 'token' key

        Returns:
            Member info dict or None if invalid
        """
        token = auth_data.get("token")
        if not token:
            return None

        try:
            return user_from_payload(verify_access_token(token))
        except AppException as e:
            logger.info(f"Socket authentication rejected: {e.message}")
            return None


# Import and register namespaces
from surveypulse.integrations.notifications import NOTIFICATIONS_NAMESPACE  # noqa: E402
from surveypulse.sockets.namespaces.notifications import NotificationNamespace  # noqa: E402

sio.register_namespace(NotificationNamespace(NOTIFICATIONS_NAMESPACE))
