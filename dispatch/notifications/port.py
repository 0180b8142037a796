"""Notification port: what services call to push state changes."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal
from uuid import UUID

from dispatch.models.user import ROLE_ROOMS, Role
from dispatch.utils.logging import get_logger

logger = get_logger(__name__)


class EventType(str, Enum):
    """Push events clients can subscribe to."""

    ORDER_CREATED = "order-created"
    ORDER_STATUS_UPDATED = "order-status-updated"
    ORDER_ASSIGNED = "order-assigned"
    ORDER_UPDATED = "order-updated"
    ORDER_DELETED = "order-deleted"
    PARTNER_CREATED = "partner-created"
    PARTNER_UPDATED = "partner-updated"
    PARTNER_DELETED = "partner-deleted"
    PARTNER_AVAILABILITY_CHANGED = "partner-availability-changed"


@dataclass(frozen=True)
class Audience:
    """Who receives an event: everyone, a role room, or one user."""

    kind: Literal["broadcast", "role", "user"]
    key: str | None = None

    @classmethod
    def everyone(cls) -> "Audience":
        return cls("broadcast")

    @classmethod
    def role(cls, role: Role) -> "Audience":
        return cls("role", ROLE_ROOMS[role])

    @classmethod
    def user(cls, user_id: UUID | str) -> "Audience":
        return cls("user", user_room(user_id))


def user_room(user_id: UUID | str) -> str:
    return f"user:{user_id}"


class NotificationPort(ABC):
    """Abstract push channel."""

    @abstractmethod
    async def publish(
        self,
        event: EventType,
        audience: Audience,
        payload: dict[str, Any],
    ) -> None:
        """Deliver ``payload`` to ``audience``. Best effort."""
        pass


class NullNotifier(NotificationPort):
    """Drops every event. Used by scripts that run without clients."""

    async def publish(
        self,
        event: EventType,
        audience: Audience,
        payload: dict[str, Any],
    ) -> None:
        logger.debug("notification_dropped", notification=event.value, audience=audience.kind)


async def publish_safely(
    port: NotificationPort,
    event: EventType,
    payload: dict[str, Any],
    *audiences: Audience,
) -> None:
    """Publish to each audience; a failing push never reaches the caller."""
    for audience in audiences or (Audience.everyone(),):
        try:
            await port.publish(event, audience, payload)
        except Exception as e:
            logger.error(
                "notification_failed",
                notification=event.value,
                audience=audience.kind,
                room=audience.key,
                error=str(e),
            )
