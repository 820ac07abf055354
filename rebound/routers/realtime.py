import logging
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from rebound.db.session import SessionLocal
from rebound.core.security import get_websocket_user
from rebound.realtime.registry import ConnectionRegistry, get_ws_registry

router = APIRouter()


async def _send_error(websocket: WebSocket, message: str):
    await websocket.send_json({"event": "error", "data": {"message": message}})


# Clients connect, then send {"event": "join", "user_id": <own id>} to get pushes
@router.websocket("/ws")
async def realtime_events(
    websocket: WebSocket,
    token: str,
    registry: ConnectionRegistry = Depends(get_ws_registry),
):
    # Short-lived session so an idle socket does not pin a pooled connection
    with SessionLocal() as db:
        user = get_websocket_user(token, db)
        user_id = user.id if user else None

    await websocket.accept()
    if user_id is None:
        await _send_error(websocket, "Invalid token")
        await websocket.close(code=1008)
        return

    joined = False
    try:
        while True:
            try:
                data = await websocket.receive_json()
            except ValueError:
                await _send_error(websocket, "Invalid message format")
                continue

            event = data.get("event") if isinstance(data, dict) else None

            if event == "join":
                if data.get("user_id") != user_id:
                    await _send_error(websocket, "Cannot join another user's room")
                    continue
                if not joined:
                    await registry.join(user_id, websocket)
                    joined = True
                await websocket.send_json({"event": "joined", "data": {"user_id": user_id}})
            elif event == "leave":
                if joined:
                    await registry.leave(user_id, websocket)
                    joined = False
                await websocket.send_json({"event": "left", "data": {"user_id": user_id}})
            elif event == "ping":
                await websocket.send_json({"event": "pong", "data": None})
            else:
                await _send_error(websocket, "Unknown event")

    except WebSocketDisconnect:
        logging.info(f"User {user_id} disconnected")
    finally:
        if joined:
            await registry.leave(user_id, websocket)
