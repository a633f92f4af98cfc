import logging
import threading
from typing import Dict, Iterable, List, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


def ride_room(ride_id) -> str:
    return f"ride:{ride_id}"


class ConnectionManager:
    """Thread-safe registry of live websockets and the rooms they joined."""

    def __init__(self):
        self.connections: Set[WebSocket] = set()
        self.rooms: Dict[str, Set[WebSocket]] = {}
        self.lock = threading.Lock()

    # --- Connection Management ---
    def add_connection(self, websocket: WebSocket):
        with self.lock:
            self.connections.add(websocket)
            total = len(self.connections)
        logger.info("[WS] Client connected. Total connections: %d", total)

    def remove_connection(self, websocket: WebSocket):
        with self.lock:
            self.connections.discard(websocket)
            for room in [name for name, members in self.rooms.items() if websocket in members]:
                self._discard(room, websocket)
        logger.info("[WS] Client disconnected.")

    def join(self, websocket: WebSocket, room: str):
        with self.lock:
            self.rooms.setdefault(room, set()).add(websocket)
        logger.debug("[WS] Joined room %s", room)

    def leave(self, websocket: WebSocket, room: str):
        with self.lock:
            self._discard(room, websocket)
        logger.debug("[WS] Left room %s", room)

    def _discard(self, room: str, websocket: WebSocket):
        members = self.rooms.get(room)
        if members is None:
            return
        members.discard(websocket)
        if not members:
            del self.rooms[room]

    def members(self, room: str) -> List[WebSocket]:
        with self.lock:
            return list(self.rooms.get(room, ()))

    def rooms_of(self, websocket: WebSocket) -> List[str]:
        with self.lock:
            return sorted(name for name, members in self.rooms.items() if websocket in members)

    # --- Message Sending ---
    def _targets(self, rooms: Iterable[str], broadcast: bool) -> List[WebSocket]:
        with self.lock:
            if broadcast:
                return list(self.connections)
            targets: Set[WebSocket] = set()
            for room in rooms:
                targets.update(self.rooms.get(room, ()))
            return list(targets)

    async def _send(self, sockets: List[WebSocket], event: str, payload) -> int:
        message = {"event": event, "payload": payload}
        delivered = 0
        for ws in sockets:
            try:
                await ws.send_json(message)
                delivered += 1
            except Exception as e:
                # Peer went away mid-send; it resyncs over HTTP when it reconnects
                logger.warning("[WS] Dropping connection after failed %s send: %s", event, e)
                self.remove_connection(ws)
        return delivered

    async def send_to_room(self, room: str, event: str, payload) -> int:
        """Send an event to every socket that joined ``room``."""
        return await self._send(self._targets([room], False), event, payload)

    async def broadcast(self, event: str, payload) -> int:
        """Send an event to every connected socket."""
        sockets = self._targets((), True)
        logger.debug("[WS] Broadcasting %s to %d clients", event, len(sockets))
        return await self._send(sockets, event, payload)

    async def deliver(self, message: dict) -> int:
        """Deliver a published message; each socket receives it at most once."""
        sockets = self._targets(message.get("rooms") or (), bool(message.get("broadcast")))
        return await self._send(sockets, message["event"], message.get("payload"))
