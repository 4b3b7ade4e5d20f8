import logging
from typing import Dict

from fastapi import WebSocket

from app.services.route_monitor import RouteIncidentMonitor

logger = logging.getLogger("app.route_monitor")


class RouteMonitorManager:
    """
    Tracks the route monitor running for each connected WebSocket.
    """
    def __init__(self):
        self.monitors: Dict[WebSocket, RouteIncidentMonitor] = {}

    def get(self, websocket: WebSocket) -> RouteIncidentMonitor:
        return self.monitors.get(websocket)

    async def attach(self, websocket: WebSocket, monitor: RouteIncidentMonitor) -> None:
        """
        Register and start a monitor, replacing any previous one.
        """
        await self.detach(websocket)
        self.monitors[websocket] = monitor
        monitor.start()
        logger.info(f"Route monitor started ({len(self.monitors)} active)")

    async def detach(self, websocket: WebSocket) -> None:
        monitor = self.monitors.pop(websocket, None)
        if monitor is not None:
            await monitor.stop()
            logger.info(f"Route monitor stopped ({len(self.monitors)} active)")

    async def send_message(self, websocket: WebSocket, message: dict) -> None:
        await websocket.send_json(message)

    async def stop_all(self) -> None:
        for websocket in list(self.monitors):
            await self.detach(websocket)


# Create a singleton instance
route_monitor_manager = RouteMonitorManager()
