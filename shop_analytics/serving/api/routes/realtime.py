"""
Real-Time WebSocket Endpoint

Clients connect to ``/ws/realtime`` and receive every broadcaster tick as
``{"type": "real-time-metrics", "data": {...}}``. A snapshot is sent
immediately on connect so new dashboards don't wait a full interval.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict
import uuid

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
import structlog

from shop_analytics.analytics.models import utcnow
from shop_analytics.analytics.realtime import REALTIME_CHANNEL, Publisher

router = APIRouter()
logger = structlog.get_logger(__name__)


@dataclass
class WebSocketClient:
    websocket: WebSocket
    client_id: str
    connected_at: datetime = field(default_factory=utcnow)


class ConnectionManager(Publisher):
    """
    Tracks connected WebSocket clients and fans channel messages out to them.

    A client whose send fails is dropped; the broadcast carries on for the rest.
    """

    def __init__(self) -> None:
        self._clients: Dict[str, WebSocketClient] = {}
        self._lock = asyncio.Lock()

    @property
    def active_connections(self) -> int:
        return len(self._clients)

    async def connect(self, websocket: WebSocket) -> WebSocketClient:
        await websocket.accept()
        client = WebSocketClient(websocket=websocket, client_id=uuid.uuid4().hex)
        async with self._lock:
            self._clients[client.client_id] = client
        logger.info("WebSocket client connected", client_id=client.client_id, clients=len(self._clients))
        return client

    async def disconnect(self, client_id: str) -> None:
        async with self._lock:
            if self._clients.pop(client_id, None) is not None:
                logger.info("WebSocket client disconnected", client_id=client_id, clients=len(self._clients))

    async def send(self, client: WebSocketClient, channel: str, payload: Dict[str, Any]) -> bool:
        try:
            await client.websocket.send_json({"type": channel, "data": payload})
            return True
        except Exception as e:
            logger.warning("Failed to send to WebSocket client", client_id=client.client_id, error=str(e))
            await self.disconnect(client.client_id)
            return False

    async def publish(self, channel: str, payload: Dict[str, Any]) -> int:
        async with self._lock:
            clients = list(self._clients.values())
        if not clients:
            return 0
        results = await asyncio.gather(*[self.send(client, channel, payload) for client in clients])
        return sum(1 for delivered in results if delivered)


@router.websocket("/ws/realtime")
async def realtime_feed(websocket: WebSocket) -> None:
    manager: ConnectionManager = websocket.app.state.connections
    service = websocket.app.state.analytics

    client = await manager.connect(websocket)
    try:
        try:
            metrics = await service.realtime_metrics()
            await manager.send(client, REALTIME_CHANNEL, metrics.model_dump(mode="json", by_alias=True))
        except Exception as e:
            logger.error("Initial real-time snapshot failed", client_id=client.client_id, error=str(e))

        # Inbound messages are ignored; receiving keeps disconnects observable
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        await manager.disconnect(client.client_id)
