"""Notifications namespace - pushes pipeline events to dashboard members."""

import logging

import socketio

from surveypulse.integrations.notifications import get_tenant_room, get_user_room
from surveypulse.sockets.server import SocketAuth, connected_members

logger = logging.getLogger(__name__)


class NotificationNamespace(socketio.AsyncNamespace):
    """
    Notification namespace for dashboard members.

    Every member joins the tenant room and a personal room; events such as
    action_assigned, action_escalated and repeated_complaint arrive there.
    """

    async def on_connect(self, sid, environ, auth):
        """Handle member connection."""
        if not auth:
            return False

        member = await SocketAuth.authenticate_member(auth)
        if not member:
            return False

        connected_members[sid] = member
        await self.enter_room(sid, get_tenant_room(member["tenant_id"]))
        await self.enter_room(sid, get_user_room(member["user_id"]))

        logger.info(
            f"Member connected: {sid} - {member['user_id']}",
            extra={"tenant_id": member["tenant_id"]},
        )
        return True

    async def on_disconnect(self, sid):
        """Handle member disconnection."""
        member = connected_members.pop(sid, None)
        if member:
            logger.info(f"Member disconnected: {sid} - {member['user_id']}")
