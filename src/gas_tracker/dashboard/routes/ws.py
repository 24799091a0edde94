"""WebSocket hub pushing telemetry snapshots to dashboard clients."""

from __future__ import annotations

import asyncio

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from gas_tracker.dashboard.serializers import dashboard_payload

log = structlog.get_logger(__name__)

router = APIRouter()


class DashboardHub:
    """Tracks dashboard sockets and fans each snapshot out to all of them.

    Sends run concurrently so one slow browser does not hold up the others;
    a socket whose send fails is dropped from the hub.
    """

    def __init__(self) -> None:
        self.connections: list[WebSocket] = []

    async def connect(self, ws: WebSocket, initial: dict | None = None) -> None:
        """Accept a socket, send it the current snapshot, then register it.

        Args:
            ws: Incoming dashboard socket.
            initial: Snapshot to send before the first change-driven push.
        """
        await ws.accept()
        if initial is not None:
            await ws.send_json(initial)
        self.connections.append(ws)
        log.info("dashboard_ws_connected", total=len(self.connections))

    def disconnect(self, ws: WebSocket) -> None:
        if ws in self.connections:
            self.connections.remove(ws)
        log.info("dashboard_ws_disconnected", total=len(self.connections))

    async def broadcast(self, payload: dict) -> None:
        """Send one payload to every client concurrently."""
        targets = self.connections.copy()
        results = await asyncio.gather(*(self._send(ws, payload) for ws in targets))
        for ws, ok in zip(targets, results):
            if not ok and ws in self.connections:
                self.connections.remove(ws)
                log.warning("dashboard_ws_send_failed", remaining=len(self.connections))

    @staticmethod
    async def _send(ws: WebSocket, payload: dict) -> bool:
        try:
            await ws.send_json(payload)
        except Exception:
            return False
        return True


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """Dashboard push channel. Client messages are read and ignored."""
    state = websocket.app.state
    hub: DashboardHub = state.hub
    try:
        await hub.connect(websocket, dashboard_payload(state.store, state.simulator))
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        hub.disconnect(websocket)
