"""WebSocket connection hub with room-style multicast."""

import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

from fastapi import WebSocket

from dispatch.models.user import ROLE_ROOMS, User
from dispatch.notifications.port import Audience, EventType, NotificationPort, user_room
from dispatch.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class Client:
    """A connected, authenticated socket."""

    websocket: WebSocket
    user_id: str
    rooms: set[str] = field(default_factory=set)


class ConnectionHub(NotificationPort):
    """Manages WebSocket connections and fans events out to rooms."""

    def __init__(self, send_timeout: float = 2.0) -> None:
        self.send_timeout = send_timeout
        self.clients: dict[int, Client] = {}
        self.rooms: dict[str, set[int]] = defaultdict(set)
        self._pending: set[asyncio.Task] = set()

    async def connect(self, websocket: WebSocket, user: User) -> Client:
        """Accept an authenticated socket and join its rooms."""
        await websocket.accept()
        client = Client(websocket=websocket, user_id=str(user.id))
        self.clients[id(websocket)] = client
        for room in (user_room(user.id), ROLE_ROOMS[user.role]):
            self.join(websocket, room)

        logger.info(
            "websocket_connected",
            user_id=client.user_id,
            role=user.role.value,
            connections=len(self.clients),
        )
        return client

    def join(self, websocket: WebSocket, room: str) -> None:
        client = self.clients[id(websocket)]
        client.rooms.add(room)
        self.rooms[room].add(id(websocket))

    def disconnect(self, websocket: WebSocket) -> None:
        """Remove a WebSocket connection from every room."""
        client = self.clients.pop(id(websocket), None)
        if client is None:
            return
        for room in client.rooms:
            members = self.rooms.get(room)
            if members is not None:
                members.discard(id(websocket))
                if not members:
                    del self.rooms[room]
        logger.info("websocket_disconnected", user_id=client.user_id)

    def targets(self, audience: Audience) -> list[Client]:
        if audience.kind == "broadcast":
            return list(self.clients.values())
        members = self.rooms.get(audience.key or "", set())
        return [self.clients[key] for key in members if key in self.clients]

    async def publish(
        self,
        event: EventType,
        audience: Audience,
        payload: dict[str, Any],
    ) -> None:
        """Schedule delivery and return immediately."""
        targets = self.targets(audience)
        if not targets:
            return

        message = {"event": event.value, "data": payload}
        task = asyncio.create_task(self._deliver(event, targets, message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(
        self,
        event: EventType,
        targets: list[Client],
        message: dict[str, Any],
    ) -> None:
        for client in targets:
            try:
                await asyncio.wait_for(
                    client.websocket.send_json(message), timeout=self.send_timeout
                )
            except Exception as e:
                logger.warning(
                    "notification_send_failed",
                    notification=event.value,
                    user_id=client.user_id,
                    error=str(e) or type(e).__name__,
                )
                self.disconnect(client.websocket)

    async def drain(self) -> None:
        """Wait for in-flight deliveries (shutdown and tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
