#!/usr/bin/env python3
"""
Realtime Hub: WebSocket fan-out for dashboard clients.

The hub owns the set of open connections. It is created once per app,
started from the lifespan (which binds it to the running event loop) and
stopped on shutdown. publish() may be called from any thread: the scanner's
scheduler thread and the sync request threadpool both hop onto the loop.

Every event is JSON ``{type, data, timestamp}``.
"""

import asyncio
import json
import logging
import threading
from typing import Dict, Optional, Set

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from database import isoformat, utcnow

logger = logging.getLogger(__name__)

GREETING = "Connected to DeFi Risk Sentinel"


def _timestamp() -> str:
    return isoformat(utcnow())


class RealtimeHub:
    def __init__(self):
        self._clients: Set[WebSocket] = set()
        self._lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def client_count(self) -> int:
        with self._lock:
            return len(self._clients)

    @property
    def running(self) -> bool:
        return self._loop is not None

    def start(self, loop: asyncio.AbstractEventLoop = None):
        self._loop = loop or asyncio.get_running_loop()
        logger.info("✓ Realtime hub started on /ws")

    async def stop(self):
        with self._lock:
            clients = list(self._clients)
            self._clients.clear()
        for ws in clients:
            try:
                await ws.close()
            except Exception as e:
                logger.debug(f"Error closing WebSocket client: {e}")
        self._loop = None
        logger.info(f"Realtime hub stopped ({len(clients)} clients closed)")

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        with self._lock:
            self._clients.add(websocket)
        logger.info("New WebSocket client connected")
        await websocket.send_json({
            "type": "connected",
            "message": GREETING,
            "timestamp": _timestamp(),
        })

    def disconnect(self, websocket: WebSocket):
        with self._lock:
            self._clients.discard(websocket)
        logger.info("WebSocket client disconnected")

    async def handle_message(self, websocket: WebSocket, raw: str):
        """Answer pings; anything unparsable is logged and ignored"""
        try:
            message = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Error parsing WebSocket message: {e}")
            return

        logger.debug(f"WebSocket message received: {message}")
        if isinstance(message, dict) and message.get("type") == "ping":
            await websocket.send_json({"type": "pong", "timestamp": _timestamp()})

    async def broadcast(self, message: Dict):
        with self._lock:
            clients = list(self._clients)

        for ws in clients:
            try:
                await ws.send_json(message)
            except Exception as e:
                logger.warning(f"Dropping WebSocket client after failed send: {e}")
                self.disconnect(ws)

        logger.info(f"Broadcasted {message['type']} to {len(clients)} clients")

    def publish(self, event_type: str, data: Dict):
        """Schedule a broadcast from any thread; never blocks on delivery"""
        if self._loop is None:
            logger.warning(f"Realtime hub not started, cannot broadcast {event_type}")
            return

        message = {"type": event_type, "data": data, "timestamp": _timestamp()}
        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None

        if current is self._loop:
            self._loop.create_task(self.broadcast(message))
        else:
            asyncio.run_coroutine_threadsafe(self.broadcast(message), self._loop)

    def notify_protocol_update(self, protocol_id: str, data: Dict):
        self.publish("protocol_update", {"protocolId": protocol_id, **data})

    def notify_risk_alert(self, protocol_id: str, risk_score: int, message: str):
        self.publish("risk_alert", {"protocolId": protocol_id, "riskScore": risk_score, "message": message})

    def notify_new_insight(self, insight_id: str, wallet_address: str, severity: str):
        self.publish("new_insight", {"insightId": insight_id, "walletAddress": wallet_address, "severity": severity})

    def notify_position_change(self, wallet_address: str, change: Dict):
        self.publish("position_change", {"walletAddress": wallet_address, **change})


router = APIRouter()


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    hub: RealtimeHub = websocket.app.state.hub
    await hub.connect(websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            await hub.handle_message(websocket, raw)
    except WebSocketDisconnect:
        pass
    finally:
        hub.disconnect(websocket)
