"""
Periodic re-evaluation of incidents along a route.

A RouteIncidentMonitor owns one background asyncio task. Each tick awaits the
fetch to completion before sleeping, so polls never overlap. `stop()` wakes
the sleeper immediately and lets a poll that is already running finish;
`poll_once()` runs a single tick directly, which is what tests use.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Hashable, List, Optional, Sequence, Tuple

from app.core.clock import utcnow

logger = logging.getLogger("app.route_monitor")

LatLon = Tuple[float, float]

DEFAULT_INTERVAL_SECONDS = 10.0


@dataclass
class MonitorUpdate:
    incidents: List[Any] = field(default_factory=list)
    added: List[Hashable] = field(default_factory=list)
    removed: List[Hashable] = field(default_factory=list)
    last_updated: Optional[datetime] = None
    error: Optional[str] = None


class RouteIncidentMonitor:
    def __init__(
        self,
        fetch: Callable[[Sequence[LatLon]], Awaitable[List[Any]]],
        route_points: Sequence[LatLon],
        on_update: Optional[Callable[[MonitorUpdate], Awaitable[None]]] = None,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        clock: Callable[[], datetime] = utcnow,
        key: Callable[[Any], Hashable] = lambda item: item.id,
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.fetch = fetch
        self.route_points = list(route_points)
        self.on_update = on_update
        self.interval = interval
        self.clock = clock
        self.key = key

        self.incidents: List[Any] = []
        self.last_updated: Optional[datetime] = None
        self.error: Optional[str] = None
        self.polls = 0

        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self._poll_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def set_route(self, route_points: Sequence[LatLon]) -> None:
        """Takes effect on the next poll."""
        self.route_points = list(route_points)

    async def poll_once(self) -> MonitorUpdate:
        async with self._poll_lock:
            update = await self._poll()
        if self.on_update is not None:
            try:
                await self.on_update(update)
            except Exception:
                logger.exception("Route monitor update callback failed")
        return update

    async def _poll(self) -> MonitorUpdate:
        self.polls += 1
        route_points = self.route_points

        if not route_points:
            incidents = []
        else:
            try:
                incidents = list(await self.fetch(route_points))
            except Exception as e:
                logger.exception("Route monitor poll failed")
                self.error = str(e) or e.__class__.__name__
                return MonitorUpdate(
                    incidents=list(self.incidents),
                    last_updated=self.last_updated,
                    error=self.error,
                )

        previous = [self.key(item) for item in self.incidents]
        current = [self.key(item) for item in incidents]
        previous_keys, current_keys = set(previous), set(current)

        self.incidents = incidents
        self.last_updated = self.clock()
        self.error = None
        logger.debug(f"Route monitor found {len(incidents)} incidents on {len(route_points)} route points")

        return MonitorUpdate(
            incidents=list(incidents),
            added=[k for k in current if k not in previous_keys],
            removed=[k for k in previous if k not in current_keys],
            last_updated=self.last_updated,
        )

    def start(self) -> None:
        if self.is_running:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        self._stop_event.set()
        if self._task is not None:
            await self._task
            self._task = None

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            await self.poll_once()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
