# site_sentinel/api/websocket.py
import asyncio
import json
import logging
from typing import Set
from fastapi import WebSocket

from ..services.sites import stats_overview
from ..state import app_state

logger = logging.getLogger(__name__)

METRICS_INTERVAL_SECONDS = 5


class ConnectionManager:
    """Manages active WebSocket connections."""

    def __init__(self):
        self.active_connections: Set[WebSocket] = set()

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.add(websocket)
        logger.info(
            f"WebSocket client connected: {websocket.client} (Total: {len(self.active_connections)})")

    def disconnect(self, websocket: WebSocket):
        self.active_connections.discard(websocket)
        logger.info(
            f"WebSocket client disconnected: {websocket.client} (Total: {len(self.active_connections)})")

    async def broadcast(self, message: dict):
        if not self.active_connections:
            return
        try:
            message_json = json.dumps(message, default=str)
        except TypeError as e:
            logger.error(f"Msg serialization failed: {e} - Msg: {message}")
            return

        disconnected_clients = set()
        for client in list(self.active_connections):
            try:
                await client.send_text(message_json)
            except Exception as e:
                logger.warning(
                    f"WS send failed for {client.client}: {type(e).__name__} - {e}. Removing.")
                disconnected_clients.add(client)

        self.active_connections -= disconnected_clients


manager = ConnectionManager()


async def broadcast_metrics_periodically():
    """Periodically pushes the dashboard overview to connected clients."""
    logger.info("Starting metrics broadcasting task...")
    while True:
        try:
            await asyncio.sleep(METRICS_INTERVAL_SECONDS)
            if not manager.active_connections:
                continue
            metrics = {"type": "metrics_update", **stats_overview(app_state.sites),
                       "scans_in_progress": len(app_state.scans_in_progress),
                       "active_ws_clients": len(manager.active_connections)}
            await manager.broadcast(metrics)
        except asyncio.CancelledError:
            logger.info("Metrics broadcasting task cancelled.")
            break
        except Exception as e:
            logger.error(f"Error in metrics loop: {e}", exc_info=True)
            await asyncio.sleep(30)
