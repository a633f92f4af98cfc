import json
import logging
from typing import Optional

import jwt
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from .auth import decode_token_for_ws
from .config import get_settings
from .ws_manager import ConnectionManager, ride_room

logger = logging.getLogger(__name__)

router = APIRouter()


def _room_name(payload, *keys) -> Optional[str]:
    """Clients send either the bare room key or an object holding it."""
    if isinstance(payload, dict):
        for key in keys:
            if payload.get(key) is not None:
                payload = payload[key]
                break
        else:
            return None
    if isinstance(payload, (str, int)) and not isinstance(payload, bool):
        value = str(payload).strip()
        return value or None
    return None


async def _error(websocket: WebSocket, message: str):
    await websocket.send_json({"event": "error", "payload": {"message": message}})


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: Optional[str] = None):
    """
    Realtime channel for passengers and drivers.
    Clients join rooms named after their email (or ``ride:<id>``) and receive
    newRide, rideUpdated and driverLocationUpdated pushes.
    """
    settings = get_settings()
    manager: ConnectionManager = websocket.app.state.ws_manager

    identity = None
    if token:
        try:
            identity = decode_token_for_ws(token)["sub"]
        except jwt.InvalidTokenError:
            await websocket.close(code=4001, reason="Unauthorized")
            return
    elif settings.ws_require_auth:
        await websocket.close(code=4001, reason="Unauthorized")
        return

    await websocket.accept()
    manager.add_connection(websocket)
    await websocket.send_json({"event": "connected", "payload": {"email": identity}})

    try:
        while True:
            msg = await websocket.receive_text()

            try:
                data = json.loads(msg)
            except json.JSONDecodeError:
                await _error(websocket, "Invalid message format")
                continue
            if not isinstance(data, dict):
                await _error(websocket, "Invalid message format")
                continue

            event = data.get("event")
            payload = data.get("payload")

            if event == "ping":
                await websocket.send_json({"event": "pong"})

            elif event in ("joinRoom", "leaveRoom"):
                room = _room_name(payload, "email", "room")
                if not room:
                    await _error(websocket, "Missing room email")
                    continue
                room = room.lower()
                if event == "joinRoom":
                    if settings.ws_require_auth and room != identity.lower():
                        await _error(websocket, "Cannot join another user's room")
                        continue
                    manager.join(websocket, room)
                    await websocket.send_json({"event": "joinedRoom", "payload": room})
                else:
                    manager.leave(websocket, room)
                    await websocket.send_json({"event": "leftRoom", "payload": room})

            elif event in ("joinRideRoom", "leaveRideRoom"):
                ride_id = _room_name(payload, "rideId", "ride_id")
                if not ride_id:
                    await _error(websocket, "Missing ride id")
                    continue
                room = ride_room(ride_id)
                if event == "joinRideRoom":
                    manager.join(websocket, room)
                    await websocket.send_json({"event": "joinedRoom", "payload": room})
                else:
                    manager.leave(websocket, room)
                    await websocket.send_json({"event": "leftRoom", "payload": room})

            else:
                await _error(websocket, f"Unknown event: {event}")

    except WebSocketDisconnect:
        logger.info("[WS] WebSocket disconnected")
    finally:
        manager.remove_connection(websocket)
