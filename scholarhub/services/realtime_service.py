import logging
from collections import defaultdict
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger("scholarhub.realtime")


def room_for(user_id: str) -> str:
    return f"user_{user_id}"


class ConnectionManager:
    """Per-user rooms of live WebSocket connections.

    Membership is in-process and ephemeral; clients rejoin after reconnecting.
    """

    def __init__(self):
        self._rooms: dict[str, set[WebSocket]] = defaultdict(set)
        self._connections: set[WebSocket] = set()

    def register(self, websocket: WebSocket):
        self._connections.add(websocket)

    def join(self, user_id: str, websocket: WebSocket):
        self._connections.add(websocket)
        self._rooms[room_for(user_id)].add(websocket)
        logger.info("User %s joined room %s", user_id, room_for(user_id))

    def leave(self, websocket: WebSocket):
        self._connections.discard(websocket)
        for room in list(self._rooms):
            self._rooms[room].discard(websocket)
            if not self._rooms[room]:
                del self._rooms[room]

    def is_online(self, user_id: str) -> bool:
        return bool(self._rooms.get(room_for(user_id)))

    async def emit(self, user_id: str, event: str, payload: Any) -> int:
        """Send `event` to every connection in the user's room. Returns deliveries."""
        sockets = list(self._rooms.get(room_for(user_id), ()))
        return await self._send(sockets, event, payload)

    async def broadcast(self, event: str, payload: Any) -> int:
        return await self._send(list(self._connections), event, payload)

    async def _send(self, sockets: list[WebSocket], event: str, payload: Any) -> int:
        delivered = 0
        for websocket in sockets:
            try:
                await websocket.send_json({"event": event, "data": payload})
                delivered += 1
            except Exception as exc:
                logger.warning("Dropping dead connection on %s emit: %s", event, exc)
                self.leave(websocket)
        return delivered


connection_manager = ConnectionManager()
