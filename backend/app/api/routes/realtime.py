"""
WebSocket endpoint for real-time notifications.

Protocol:
  client -> {"event": "authenticate", "token": "<jwt>"}   (within the auth timeout)
  server -> {"event": "authenticated", "data": {"user_id": ...}}
  server -> {"event": "new_notification", "data": {...}}
  server -> {"event": "unread_count_update", "data": {"count": n}}

Missing, late, or invalid credentials close the socket with 1008.
"""

import asyncio

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from app.core.config import get_settings
from app.core.exceptions import AuthenticationError
from app.core.logging import get_logger
from app.core.security import decode_access_token
from app.db.session import get_session_factory
from app.infrastructure.realtime import get_realtime_hub
from app.models.user import User

logger = get_logger(__name__)
router = APIRouter(tags=["Realtime"])


async def _reject(websocket: WebSocket, reason: str) -> None:
    logger.info("realtime_auth_rejected", reason=reason)
    await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=reason)


@router.websocket("/ws/notifications")
async def notifications_socket(websocket: WebSocket):
    await websocket.accept()
    timeout = get_settings().REALTIME_AUTH_TIMEOUT_SECONDS

    try:
        message = await asyncio.wait_for(websocket.receive_json(), timeout=timeout)
    except asyncio.TimeoutError:
        await _reject(websocket, "Authentication timeout")
        return
    except WebSocketDisconnect:
        return
    except ValueError:
        await _reject(websocket, "Malformed message")
        return

    if not isinstance(message, dict) or message.get("event") != "authenticate":
        await _reject(websocket, "Authentication required")
        return

    try:
        user_id = decode_access_token(str(message.get("token") or ""))
    except AuthenticationError:
        await _reject(websocket, "Invalid token")
        return

    async with get_session_factory()() as session:
        user = await session.get(User, user_id)
        if user is None or not user.is_active:
            await _reject(websocket, "Unknown user")
            return

    hub = get_realtime_hub()
    await websocket.send_json({"event": "authenticated", "data": {"user_id": user_id}})
    hub.connect(user_id, websocket)
    try:
        # Client frames after authentication carry nothing we act on
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("realtime_client_disconnected", user_id=user_id)
    finally:
        hub.disconnect(user_id, websocket)
