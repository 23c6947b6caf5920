"""
Real-time push channel for notifications.

Architecture:
  - ConnectionRegistry: process-local map user_id -> open WebSockets
    (a user may hold several tabs/devices). Owned by the hub, created at
    startup, emptied at shutdown; nothing here is persisted.
  - Backplane: how an emitted event reaches the process holding the socket.
      LocalBackplane  single process, deliver straight from the registry
      RedisBackplane  publish to one Redis channel; every instance listens
                      and delivers to the sockets it holds
  - RealtimeHub: the facade the rest of the app talks to.

Frames sent to clients are always {"event": <name>, "data": <payload>}.
Delivery is best-effort: a socket that fails to receive is dropped from the
registry, and the notification stays in the database for the next poll.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Optional

import redis.asyncio as redis
from starlette.websockets import WebSocket, WebSocketDisconnect

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import websocket_connections
from app.infrastructure.redis_client import get_redis

logger = get_logger(__name__)


class ConnectionRegistry:
    """User rooms of authenticated sockets held by this process."""

    def __init__(self):
        self._rooms: dict[int, set[WebSocket]] = defaultdict(set)

    def register(self, user_id: int, websocket: WebSocket) -> None:
        self._rooms[user_id].add(websocket)
        websocket_connections.inc()
        logger.info("realtime_session_registered", user_id=user_id, sessions=len(self._rooms[user_id]))

    def unregister(self, user_id: int, websocket: WebSocket) -> None:
        room = self._rooms.get(user_id)
        if not room or websocket not in room:
            return
        room.discard(websocket)
        websocket_connections.dec()
        if not room:
            del self._rooms[user_id]
        logger.info("realtime_session_unregistered", user_id=user_id)

    def has_sessions(self, user_id: int) -> bool:
        return bool(self._rooms.get(user_id))

    def session_count(self, user_id: int) -> int:
        return len(self._rooms.get(user_id, ()))

    async def deliver(self, user_id: int, event: str, data: dict) -> int:
        """Send one frame to every socket in the user's room; returns how many received it."""
        delivered = 0
        for websocket in list(self._rooms.get(user_id, ())):
            try:
                await websocket.send_json({"event": event, "data": data})
                delivered += 1
            except Exception as e:
                logger.warning("realtime_send_failed", user_id=user_id, event_name=event, error=str(e))
                self.unregister(user_id, websocket)
        return delivered

    async def close_all(self, code: int = 1001) -> None:
        for user_id, room in list(self._rooms.items()):
            for websocket in list(room):
                try:
                    await websocket.close(code=code)
                except (WebSocketDisconnect, RuntimeError) as e:
                    logger.debug("realtime_close_failed", user_id=user_id, error=str(e))
                self.unregister(user_id, websocket)


class Backplane(ABC):
    """
    Fan-out strategy between the process that emits an event and the
    process(es) holding the recipient's sockets.
    """

    def __init__(self, registry: ConnectionRegistry):
        self.registry = registry

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    @abstractmethod
    async def publish(self, user_id: int, event: str, data: dict) -> None:
        pass

    @abstractmethod
    def may_reach(self, user_id: int) -> bool:
        """False only when it is certain no session anywhere belongs to the user."""
        pass


class LocalBackplane(Backplane):
    async def publish(self, user_id: int, event: str, data: dict) -> None:
        await self.registry.deliver(user_id, event, data)

    def may_reach(self, user_id: int) -> bool:
        return self.registry.has_sessions(user_id)


class RedisBackplane(Backplane):
    """
    All instances publish to and listen on a single channel. Each message
    carries the recipient id; an instance without that user's sockets simply
    delivers to nobody.
    """

    def __init__(self, registry: ConnectionRegistry, channel: str):
        super().__init__(registry)
        self.channel = channel
        self._redis: Optional[redis.Redis] = None
        self._listener: Optional[asyncio.Task] = None

    async def start(self) -> None:
        self._redis = await get_redis()
        if self._redis is None:
            logger.warning("realtime_backplane_degraded", backplane="redis", reason="redis_unavailable")
            return
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self.channel)
        self._listener = asyncio.create_task(self._listen(pubsub), name="realtime:listener")
        logger.info("realtime_backplane_started", backplane="redis", channel=self.channel)

    async def stop(self) -> None:
        if self._listener is not None:
            self._listener.cancel()
            await asyncio.gather(self._listener, return_exceptions=True)
            self._listener = None
        self._redis = None

    async def _listen(self, pubsub) -> None:
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    envelope = json.loads(message["data"])
                    await self.registry.deliver(int(envelope["user_id"]), envelope["event"], envelope["data"])
                except (ValueError, KeyError, TypeError) as e:
                    logger.warning("realtime_bad_envelope", error=str(e))
        finally:
            await pubsub.unsubscribe(self.channel)
            await pubsub.aclose()

    async def publish(self, user_id: int, event: str, data: dict) -> None:
        if self._redis is None:
            await self.registry.deliver(user_id, event, data)
            return
        envelope = json.dumps({"user_id": user_id, "event": event, "data": data}, default=str)
        await self._redis.publish(self.channel, envelope)

    def may_reach(self, user_id: int) -> bool:
        if self._redis is None:
            return self.registry.has_sessions(user_id)
        return True


class RealtimeHub:
    """Entry point for the WebSocket endpoint and the notification service."""

    def __init__(self, registry: ConnectionRegistry, backplane: Backplane):
        self.registry = registry
        self.backplane = backplane

    async def start(self) -> None:
        await self.backplane.start()

    async def stop(self) -> None:
        await self.registry.close_all()
        await self.backplane.stop()

    def connect(self, user_id: int, websocket: WebSocket) -> None:
        self.registry.register(user_id, websocket)

    def disconnect(self, user_id: int, websocket: WebSocket) -> None:
        self.registry.unregister(user_id, websocket)

    def is_reachable(self, user_id: int) -> bool:
        return self.backplane.may_reach(user_id)

    async def emit(self, user_id: int, event: str, data: dict) -> None:
        await self.backplane.publish(user_id, event, data)


def build_realtime_hub() -> RealtimeHub:
    """
    Build the hub for the configured backplane.

    REALTIME_BACKPLANE:
    - local: single instance (default)
    - redis: multi-instance deployments sharing one Redis
    """
    settings = get_settings()
    registry = ConnectionRegistry()
    if settings.REALTIME_BACKPLANE == "redis":
        backplane: Backplane = RedisBackplane(registry, settings.REALTIME_REDIS_CHANNEL)
    else:
        backplane = LocalBackplane(registry)
    return RealtimeHub(registry, backplane)


# Singleton instance
_hub: Optional[RealtimeHub] = None


def get_realtime_hub() -> RealtimeHub:
    global _hub
    if _hub is None:
        _hub = build_realtime_hub()
    return _hub
