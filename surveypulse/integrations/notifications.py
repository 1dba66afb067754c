"""Notification sink - persists events and pushes them over Socket.IO."""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

import socketio
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, Field

from surveypulse.core.logging import log_context

logger = logging.getLogger(__name__)

NOTIFICATIONS_NAMESPACE = "/notifications"


def get_tenant_room(tenant_id: str) -> str:
    """Get room name for every connected member of a tenant."""
    return f"tenant:{tenant_id}"


def get_user_room(user_id: str) -> str:
    """Get room name for a single user."""
    return f"user:{user_id}"


class NotificationEvent(BaseModel):
    """Event published by the pipeline."""

    type: str
    tenant_id: str
    user_id: str | None = None
    action_id: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class NotificationSink(ABC):
    """Abstract notification sink."""

    @abstractmethod
    async def publish(self, event: NotificationEvent) -> None:
        """Publish an event. May raise; callers decide whether that is fatal."""
        pass


async def publish_safely(sink: NotificationSink | None, event: NotificationEvent) -> bool:
    """Publish an event, logging instead of raising on failure."""
    if sink is None:
        return False
    try:
        await sink.publish(event)
        return True
    except Exception as e:
        logger.warning(
            f"Notification '{event.type}' failed: {e}",
            extra=log_context(tenant_id=event.tenant_id, action_id=event.action_id),
        )
        return False


class SocketIONotificationSink(NotificationSink):
    """Stores notifications in MongoDB and emits them to Socket.IO rooms."""

    def __init__(self, sio: socketio.AsyncServer, db: AsyncIOMotorDatabase):
        self._sio = sio
        self._collection = db["notifications"]

    async def publish(self, event: NotificationEvent) -> None:
        doc = event.model_dump()
        doc["read"] = False
        await self._collection.insert_one(doc)

        data = event.model_dump(mode="json")
        await self._sio.emit(
            event.type,
            data,
            room=get_tenant_room(event.tenant_id),
            namespace=NOTIFICATIONS_NAMESPACE,
        )
        if event.user_id:
            await self._sio.emit(
                event.type,
                data,
                room=get_user_room(event.user_id),
                namespace=NOTIFICATIONS_NAMESPACE,
            )
