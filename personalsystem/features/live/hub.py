"""
WebSocket connection registry and event fan-out.

Messages are JSON objects ``{"event": str, "data": any}``. Entity changes
go out as ``<entity>:created``, ``<entity>:updated`` and ``<entity>:deleted``.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder
import ulid

from personalsystem.utils import get_logger


log = get_logger(__name__)


@dataclass
class Connection:
    websocket: WebSocket
    user_id: str
    username: str
    id: str = field(default_factory=lambda: str(ulid.new()))
    rooms: set = field(default_factory=set)


class LiveUpdateHub:
    def __init__(self) -> None:
        self._connections: Dict[str, Connection] = {}
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def online_user_ids(self) -> List[str]:
        return sorted({conn.user_id for conn in self._connections.values()})

    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, connection: Connection) -> None:
        async with self._lock:
            first = not any(c.user_id == connection.user_id for c in self._connections.values())
            self._connections[connection.id] = connection
        log.info("WebSocket connected: %s (%s)", connection.username, connection.id)
        if first:
            await self.emit_to_all("user:online", {"user_id": connection.user_id, "username": connection.username})
        await self._send(connection, "users:online", self.online_user_ids())

    async def disconnect(self, connection: Connection) -> None:
        async with self._lock:
            if self._connections.pop(connection.id, None) is None:
                return
            last = not any(c.user_id == connection.user_id for c in self._connections.values())
        log.info("WebSocket disconnected: %s (%s)", connection.username, connection.id)
        if last:
            await self.emit_to_all("user:offline", {"user_id": connection.user_id})

    def join_room(self, connection: Connection, room: str) -> None:
        connection.rooms.add(room)

    def leave_room(self, connection: Connection, room: str) -> None:
        connection.rooms.discard(room)

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def _send(self, connection: Connection, event: str, data: Any) -> bool:
        try:
            await connection.websocket.send_json({"event": event, "data": jsonable_encoder(data)})
            return True
        except Exception:
            log.debug("Dropping dead connection %s", connection.id)
            await self.disconnect(connection)
            return False

    async def _send_many(self, connections: List[Connection], event: str, data: Any) -> int:
        sent = 0
        for connection in connections:
            if await self._send(connection, event, data):
                sent += 1
        return sent

    async def emit_to_all(self, event: str, data: Any) -> int:
        return await self._send_many(list(self._connections.values()), event, data)

    async def emit_to_room(self, room: str, event: str, data: Any) -> int:
        targets = [c for c in self._connections.values() if room in c.rooms]
        return await self._send_many(targets, event, data)

    async def emit_to_user(self, user_id: str, event: str, data: Any) -> int:
        targets = [c for c in self._connections.values() if c.user_id == user_id]
        return await self._send_many(targets, event, data)

    async def broadcast_create(self, entity: str, data: Any) -> int:
        return await self.emit_to_all(f"{entity}:created", data)

    async def broadcast_update(self, entity: str, data: Any) -> int:
        return await self.emit_to_all(f"{entity}:updated", data)

    async def broadcast_delete(self, entity: str, entity_id: str) -> int:
        return await self.emit_to_all(f"{entity}:deleted", {"id": entity_id})

    async def send_notification(self, user_id: str, notification: Dict[str, Any]) -> int:
        return await self.emit_to_user(user_id, "notification", notification)

    async def broadcast_notification(self, notification: Dict[str, Any], room: Optional[str] = None) -> int:
        if room:
            return await self.emit_to_room(room, "notification", notification)
        return await self.emit_to_all("notification", notification)


hub = LiveUpdateHub()
