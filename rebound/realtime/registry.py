"""
Per-user rooms for real-time delivery.

A user may have several open sessions (tabs, devices); each one joins the
room named by its user id. Delivery is best effort: nothing is queued for
users that are offline, the notification rows are the durable record.
"""
import asyncio
import logging
from collections import defaultdict
from typing import Any, Dict, Protocol, Set

from fastapi import Request, WebSocket

logger = logging.getLogger(__name__)


class Session(Protocol):
    async def send_json(self, data: Any) -> None: ...


class ConnectionRegistry:
    def __init__(self):
        self._rooms: Dict[int, Set[Session]] = defaultdict(set)
        self._lock = asyncio.Lock()
        self._pending: Set[asyncio.Task] = set()

    async def join(self, user_id: int, session: Session):
        async with self._lock:
            self._rooms[user_id].add(session)
        logger.info(f"[WS] User {user_id} joined ({self.connected_count(user_id)} sessions)")

    async def leave(self, user_id: int, session: Session):
        async with self._lock:
            room = self._rooms.get(user_id)
            if room is None:
                return
            room.discard(session)
            if not room:
                del self._rooms[user_id]
        logger.info(f"[WS] User {user_id} left")

    async def publish(self, user_id: int, event: str, payload: Any):
        async with self._lock:
            sessions = list(self._rooms.get(user_id, ()))

        if not sessions:
            return

        frame = {"event": event, "data": payload}
        dead = []
        for session in sessions:
            try:
                await session.send_json(frame)
            except Exception as e:
                logger.warning(f"[WS] Dropping session for user {user_id}: {e}")
                dead.append(session)

        for session in dead:
            await self.leave(user_id, session)

    def publish_later(self, user_id: int, event: str, payload: Any) -> asyncio.Task:
        """Schedule a push on the running loop and return without waiting for delivery."""
        task = asyncio.create_task(push_safely(self, user_id, event, payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    def connected_count(self, user_id: int) -> int:
        return len(self._rooms.get(user_id, ()))


async def push_safely(registry: ConnectionRegistry, user_id: int, event: str, payload: Any):
    """Publish without ever failing the caller."""
    try:
        await registry.publish(user_id, event, payload)
    except Exception as e:
        logger.error(f"Realtime push of {event} to user {user_id} failed: {e}", exc_info=True)


def get_registry(request: Request) -> ConnectionRegistry:
    return request.app.state.registry


def get_ws_registry(websocket: WebSocket) -> ConnectionRegistry:
    return websocket.app.state.registry
