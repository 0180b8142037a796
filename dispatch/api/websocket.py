"""WebSocket handler for real-time dispatch updates."""

import json
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect, status
from pydantic import BaseModel, ValidationError

from dispatch.errors import AuthError
from dispatch.notifications.hub import ConnectionHub
from dispatch.services import Services
from dispatch.utils.logging import get_logger

logger = get_logger(__name__)


class WebSocketMessage(BaseModel):
    """Client -> server message format."""

    type: str  # "ping"
    metadata: dict[str, Any] = {}


def extract_token(websocket: WebSocket) -> str | None:
    """Bearer token from the ``token`` query parameter or Authorization header."""
    token = websocket.query_params.get("token")
    if token:
        return token
    header = websocket.headers.get("authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials
    return None


async def handle_websocket(
    websocket: WebSocket,
    hub: ConnectionHub,
    services: Services,
) -> None:
    """
    Authenticate a socket, register it with the hub, and serve pings.

    Server-pushed events arrive through the hub; the only thing clients
    send is a keepalive.

    Args:
        websocket: Incoming WebSocket connection
        hub: Connection hub the socket joins
        services: Service container used to verify the token
    """
    token = extract_token(websocket)
    try:
        if not token:
            raise AuthError("Access denied. No token provided")
        user = await services.identity.authenticate_token(token)
    except AuthError as e:
        logger.info("websocket_rejected", reason=e.message)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Authentication error")
        return

    await hub.connect(websocket, user)

    try:
        while True:
            data = await websocket.receive_text()

            try:
                ws_message = WebSocketMessage(**json.loads(data))
            except (json.JSONDecodeError, TypeError, ValidationError):
                await websocket.send_json({"type": "error", "message": "Invalid message format"})
                continue

            if ws_message.type == "ping":
                await websocket.send_json({"type": "pong"})

    except WebSocketDisconnect:
        logger.info("websocket_client_disconnected", user_id=str(user.id))

    except Exception as e:
        logger.error("websocket_error", user_id=str(user.id), error=str(e))

    finally:
        hub.disconnect(websocket)
