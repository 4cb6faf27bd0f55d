"""
Live WebSocket connections and the rooms they listen on.

Every connection sits in its user's room (``user:<id>``) and in each
conversation room (``conversation:<id>``) it has joined. Route handlers run
in the threadpool, so ``publish`` hands each send to the event loop that
owns the socket instead of awaiting it.
"""

import asyncio
import logging
import threading
from typing import Optional, Set

from starlette.websockets import WebSocket, WebSocketDisconnect

from flatmates.models.base import serialize_doc

logger = logging.getLogger("uvicorn.error")


def user_room(user_id) -> str:
    return f"user:{user_id}"


def conversation_room(conversation_id) -> str:
    return f"conversation:{conversation_id}"


class Connection:
    def __init__(self, websocket: WebSocket, user_id: str, loop: asyncio.AbstractEventLoop):
        self.websocket = websocket
        self.user_id = user_id
        self.loop = loop
        self.rooms: Set[str] = {user_room(user_id)}

    async def send(self, message: dict):
        try:
            await self.websocket.send_json(message)
        except (WebSocketDisconnect, RuntimeError) as e:
            # Socket went away between lookup and send
            logger.info("Dropping %s event for user %s: %s", message.get("event"), self.user_id, e)


class ConnectionManager:
    def __init__(self):
        self._connections: Set[Connection] = set()
        self._lock = threading.Lock()

    async def connect(self, websocket: WebSocket, user_id: str) -> Connection:
        connection = Connection(websocket, user_id, asyncio.get_running_loop())
        with self._lock:
            self._connections.add(connection)
        logger.info("User %s connected", user_id)
        return connection

    def disconnect(self, connection: Connection):
        with self._lock:
            self._connections.discard(connection)
        logger.info("User %s disconnected", connection.user_id)

    def join(self, connection: Connection, room: str):
        with self._lock:
            connection.rooms.add(room)

    def leave(self, connection: Connection, room: str):
        with self._lock:
            connection.rooms.discard(room)

    def members(self, room: str, exclude: Optional[Connection] = None):
        with self._lock:
            return [c for c in self._connections if room in c.rooms and c is not exclude]

    def publish(self, room: str, event: str, data, exclude: Optional[Connection] = None) -> int:
        """Queue ``event`` for every connection in ``room``; returns how many were queued."""
        message = {"event": event, "data": serialize_doc(data)}
        queued = 0
        for connection in self.members(room, exclude):
            if connection.loop.is_closed():
                self.disconnect(connection)
                continue
            asyncio.run_coroutine_threadsafe(connection.send(message), connection.loop)
            queued += 1
        return queued


manager = ConnectionManager()
