from __future__ import annotations

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.services.auth import account_from_headers, can_subscribe
from app.services.ws_manager import ws_manager

router = APIRouter(tags=["websocket"])


@router.websocket("/api/ws/{channel}")
async def websocket_endpoint(websocket: WebSocket, channel: str):
    # Channels: order:{id} | account:{role}:{id}
    auth = account_from_headers(websocket.headers)
    if auth is None:
        await websocket.close(code=4001, reason="Unauthorized")
        return
    if not can_subscribe(auth, channel):
        await websocket.close(code=4003, reason="Forbidden")
        return

    await ws_manager.connect(channel, websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        ws_manager.disconnect(channel, websocket)
