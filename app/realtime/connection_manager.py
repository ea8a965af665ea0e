"""Tracks live WebSockets per user and per conversation room."""

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Set

from fastapi import WebSocket
from starlette.requests import HTTPConnection

from app.logging_config import get_logger
from app.models.api.events import Event
from app.models.api.messages import PresenceStatus

logger = get_logger(__name__)


class ConnectionManager:
    """In-process fan-out for one API worker.

    A user may hold several sockets (tabs, devices); presence flips to online
    on the first and to offline when the last one goes away.
    """

    def __init__(self) -> None:
        self.active_connections: Dict[str, List[WebSocket]] = {}
        self.rooms: Dict[str, Set[WebSocket]] = {}
        self.last_seen: Dict[str, datetime] = {}

    async def connect(self, user_id: str, websocket: WebSocket) -> bool:
        """Accept and register a socket. Returns True if the user just came online."""
        await websocket.accept()
        first = user_id not in self.active_connections
        self.active_connections.setdefault(user_id, []).append(websocket)
        self.last_seen[user_id] = datetime.now(timezone.utc)
        logger.info("User %s connected (%d sockets)", user_id, self.count(user_id))
        return first

    def disconnect(self, user_id: str, websocket: WebSocket) -> bool:
        """Forget a socket. Returns True if the user has no sockets left."""
        for members in self.rooms.values():
            members.discard(websocket)
        self.rooms = {room: members for room, members in self.rooms.items() if members}

        sockets = self.active_connections.get(user_id)
        if sockets is None:
            return False
        if websocket in sockets:
            sockets.remove(websocket)
        self.last_seen[user_id] = datetime.now(timezone.utc)
        if sockets:
            return False
        del self.active_connections[user_id]
        logger.info("User %s went offline", user_id)
        return True

    def join(self, conversation_id: str, websocket: WebSocket) -> None:
        self.rooms.setdefault(conversation_id, set()).add(websocket)

    def leave(self, conversation_id: str, websocket: WebSocket) -> None:
        members = self.rooms.get(conversation_id)
        if members is None:
            return
        members.discard(websocket)
        if not members:
            del self.rooms[conversation_id]

    def in_room(self, conversation_id: str, websocket: WebSocket) -> bool:
        return websocket in self.rooms.get(conversation_id, ())

    def count(self, user_id: str) -> int:
        return len(self.active_connections.get(user_id, []))

    def is_online(self, user_id: str) -> bool:
        return self.count(user_id) > 0

    def presence(self, user_ids: Iterable[str]) -> Dict[str, PresenceStatus]:
        return {
            user_id: PresenceStatus(
                online=self.is_online(user_id), last_seen=self.last_seen.get(user_id)
            )
            for user_id in user_ids
        }

    async def send(self, websocket: WebSocket, event: Event) -> None:
        await websocket.send_json(event.to_wire())

    async def deliver(
        self,
        event: Event,
        conversation_id: Optional[str] = None,
        user_ids: Iterable[str] = (),
        exclude: Optional[WebSocket] = None,
    ) -> int:
        """Send ``event`` once to every socket in the room or owned by ``user_ids``.

        Returns the number of sockets written to.
        """
        targets: List[WebSocket] = []
        seen: Set[int] = set()
        candidates: List[WebSocket] = list(self.rooms.get(conversation_id or "", ()))
        for user_id in user_ids:
            candidates.extend(self.active_connections.get(user_id, []))

        for websocket in candidates:
            if websocket is exclude or id(websocket) in seen:
                continue
            seen.add(id(websocket))
            targets.append(websocket)

        return await self._send_all(targets, event)

    async def broadcast(self, event: Event, exclude: Optional[WebSocket] = None) -> int:
        targets = [
            websocket
            for sockets in self.active_connections.values()
            for websocket in sockets
            if websocket is not exclude
        ]
        return await self._send_all(targets, event)

    async def _send_all(self, targets: List[WebSocket], event: Event) -> int:
        payload = event.to_wire()
        sent = 0
        for websocket in targets:
            try:
                await websocket.send_json(payload)
                sent += 1
            except Exception as e:
                # A peer that vanished mid fan-out is cleaned up by its own handler
                logger.warning("Dropping %s for a closed socket: %s", event.type, e)
        return sent


def get_connection_manager(connection: HTTPConnection) -> ConnectionManager:
    """FastAPI dependency: the hub owned by the running application."""
    return connection.app.state.connections
