"""WebSocket connection manager that fans domain events out to listeners."""

from __future__ import annotations

import json
from fastapi import WebSocket

from app.schemas.ws_messages import WSMessage
from app.services.events import event_payload


class ConnectionManager:
    def __init__(self):
        self._connections: dict[str, list[WebSocket]] = {}

    async def connect(self, channel: str, websocket: WebSocket):
        await websocket.accept()
        self._connections.setdefault(channel, []).append(websocket)

    def disconnect(self, channel: str, websocket: WebSocket):
        conns = self._connections.get(channel, [])
        if websocket in conns:
            conns.remove(websocket)

    async def broadcast(self, channel: str, message: dict):
        """Send a JSON message to all clients listening on a channel."""
        conns = self._connections.get(channel, [])
        dead = []
        for ws in conns:
            try:
                await ws.send_text(json.dumps(message))
            except Exception:
                dead.append(ws)
        for ws in dead:
            conns.remove(ws)

    async def handle_event(self, event) -> None:
        """EventBus subscriber: forward an event to its channel."""
        msg = WSMessage(event=event.name, channel=event.channel, data=event_payload(event))
        await self.broadcast(event.channel, msg.model_dump())


ws_manager = ConnectionManager()
