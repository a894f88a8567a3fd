"""
ws.py - WebSocket connection manager for real-time dashboard pushes.
"""

import asyncio
import json
import logging
from enum import Enum
from typing import Any, List

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from .errors import utc_now_iso

logger = logging.getLogger("ws")

SEND_TIMEOUT = 2.0
WELCOME_MESSAGE = "Connected to Mining Dashboard WebSocket"


class ClientMessageType(str, Enum):
    PING = "ping"
    SUBSCRIBE = "subscribe"


class ServerMessageType(str, Enum):
    CONNECTION = "connection"
    PONG = "pong"
    SUBSCRIPTION_CONFIRMED = "subscription_confirmed"
    POOL_UPDATE = "pool_update"
    NETWORK_UPDATE = "network_update"
    NEW_BLOCK = "new_block"
    ALERT = "alert"


def _is_open(ws: WebSocket) -> bool:
    return (ws.client_state == WebSocketState.CONNECTED
            and ws.application_state == WebSocketState.CONNECTED)


class BroadcastManager:
    """Keeps connected sockets in connection order and fans out tagged events."""

    def __init__(self):
        self._clients: List[WebSocket] = []
        self._lock = asyncio.Lock()

    async def connect(self, ws: WebSocket):
        await ws.accept()
        async with self._lock:
            self._clients.append(ws)
            total = len(self._clients)
        logger.info("WebSocket client connected (%d total)", total)
        await self._send(ws, {
            "type": ServerMessageType.CONNECTION.value,
            "message": WELCOME_MESSAGE,
            "timestamp": utc_now_iso(),
        })

    async def disconnect(self, ws: WebSocket):
        async with self._lock:
            try:
                self._clients.remove(ws)
            except ValueError:
                pass
            total = len(self._clients)
        logger.info("WebSocket client disconnected (%d total)", total)

    async def handle_message(self, ws: WebSocket, raw: str):
        """Dispatch one inbound text frame; bad JSON and unknown types are ignored."""
        try:
            message = json.loads(raw)
        except ValueError as e:
            logger.error("Invalid JSON received from client: %s", e)
            return
        if not isinstance(message, dict):
            logger.warning("Ignoring non-object message from client")
            return

        try:
            kind = ClientMessageType(message.get("type"))
        except ValueError:
            logger.info("Unknown message type: %s", message.get("type"))
            return

        if kind is ClientMessageType.PING:
            await self._send(ws, {"type": ServerMessageType.PONG.value,
                                  "timestamp": utc_now_iso()})
        elif kind is ClientMessageType.SUBSCRIBE:
            logger.info("Client subscribed to: %s", message.get("data"))
            await self._send(ws, {
                "type": ServerMessageType.SUBSCRIPTION_CONFIRMED.value,
                "data": message.get("data"),
                "timestamp": utc_now_iso(),
            })

    async def handle_connection(self, ws: WebSocket):
        await self.connect(ws)
        try:
            while True:
                raw = await ws.receive_text()
                await self.handle_message(ws, raw)
        except WebSocketDisconnect:
            pass
        except Exception as e:
            logger.error("WebSocket client error: %s", e)
        finally:
            await self.disconnect(ws)

    async def _send(self, ws: WebSocket, payload: dict):
        if not _is_open(ws):
            return
        try:
            await ws.send_text(json.dumps(payload))
        except Exception as e:
            logger.error("Failed to send message to client: %s", e)

    async def broadcast(self, event_type: str, data: Any = None):
        async with self._lock:
            clients = list(self._clients)
        if not clients:
            return
        msg = json.dumps({"type": event_type, "data": data, "timestamp": utc_now_iso()},
                         default=str)
        stale: List[WebSocket] = []
        await asyncio.gather(*(self._safe_send(ws, msg, stale) for ws in clients))
        if stale:
            async with self._lock:
                for ws in stale:
                    try:
                        self._clients.remove(ws)
                    except ValueError:
                        pass
            logger.info("Pruned %d dead WebSocket clients", len(stale))

    async def _safe_send(self, ws: WebSocket, msg: str, stale: List[WebSocket]):
        if not _is_open(ws):
            stale.append(ws)
            return
        try:
            await asyncio.wait_for(ws.send_text(msg), timeout=SEND_TIMEOUT)
        except Exception as e:
            logger.error("Failed to broadcast to client: %s", e)
            stale.append(ws)

    async def broadcast_pool_update(self, data: Any):
        await self.broadcast(ServerMessageType.POOL_UPDATE.value, data)

    async def broadcast_network_update(self, data: Any):
        await self.broadcast(ServerMessageType.NETWORK_UPDATE.value, data)

    async def broadcast_new_block(self, data: Any):
        await self.broadcast(ServerMessageType.NEW_BLOCK.value, data)

    async def broadcast_alert(self, data: Any):
        await self.broadcast(ServerMessageType.ALERT.value, data)

    def connection_count(self) -> int:
        return len(self._clients)

    def health_check(self) -> dict:
        return {"status": "healthy", "connections": len(self._clients)}
