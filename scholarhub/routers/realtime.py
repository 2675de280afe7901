import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from scholarhub.schemas.auth import CurrentUser
from scholarhub.services.realtime_service import connection_manager, room_for
from scholarhub.utils.security import decode_access_token

logger = logging.getLogger("scholarhub.realtime")

router = APIRouter(tags=["realtime"])


async def _send_error(websocket: WebSocket, message: str):
    await websocket.send_json({"event": "error", "data": {"error": message}})


async def _handle(websocket: WebSocket, user: CurrentUser, message: dict):
    event = message.get("event")
    if event == "join":
        connection_manager.join(user.id, websocket)
        await websocket.send_json({"event": "joined", "data": {"room": room_for(user.id)}})
    elif event in ("broadcast", "send_notification"):
        if not user.is_admin:
            await _send_error(websocket, "Admin access required")
            return
        if event == "broadcast":
            await connection_manager.broadcast("broadcast", message.get("data"))
            return
        target = message.get("user_id")
        if not target:
            await _send_error(websocket, "user_id is required")
            return
        await connection_manager.emit(target, "notification", message.get("data"))
    else:
        await _send_error(websocket, f"Unknown event: {event}")


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket, token: str | None = None):
    payload = decode_access_token(token) if token else None
    if payload is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    user = CurrentUser(id=payload["sub"], role=payload.get("role", "student"))

    await websocket.accept()
    connection_manager.register(websocket)
    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                await _send_error(websocket, "Invalid JSON")
                continue
            if not isinstance(message, dict):
                await _send_error(websocket, "Invalid message")
                continue
            await _handle(websocket, user, message)
    except WebSocketDisconnect:
        logger.info("User %s disconnected", user.id)
    finally:
        connection_manager.leave(websocket)
