from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from .aggregator import failed_listeners
from .configmanager import DEFAULT_STATS_INTERVAL_S, ConfigManager
from .gateway import PFError, PFGateway
from .models import ListenerStats
from .record_store import ListenerStore, record_sort_key

logger = ConfigManager.get_logger(__name__)


@dataclass
class StatsView:
    stats: list[ListenerStats] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)
    listeners: ListenerStore = field(default_factory=ListenerStore)
    updated_at: datetime | None = None
    cycles: int = 0

    def bind_of(self, name: str) -> str:
        listener = self.listeners.get(name)
        return listener.bind if listener is not None else ""


class StatsMonitor:
    """Periodic refresh of listener statistics, statuses and definitions.

    The next cycle is scheduled before the current cycle's reads finish, so
    cycles may overlap. Each read overwrites its part of the view; a later
    completion simply wins.
    """

    def __init__(
        self,
        gateway: PFGateway,
        *,
        interval_s: float = DEFAULT_STATS_INTERVAL_S,
        on_update: Callable[[StatsView], None] | None = None,
    ) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        self.gateway = gateway
        self.interval_s = interval_s
        self.on_update = on_update
        self.view = StatsView()
        self._handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._tick()

    async def stop(self) -> None:
        self._running = False
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        pending = list(self._tasks)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    async def refresh_once(self) -> StatsView:
        await asyncio.gather(*self._launch())
        return self.view

    def _tick(self) -> None:
        if not self._running:
            return
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.interval_s, self._tick)
        self._launch()

    def _launch(self) -> list[asyncio.Task[None]]:
        self.view.cycles += 1
        logger.debug("Refreshing statistics (cycle %s)", self.view.cycles)
        tasks = [
            asyncio.create_task(self._refresh_stats()),
            asyncio.create_task(self._refresh_statuses()),
            asyncio.create_task(self._refresh_listeners()),
        ]
        for task in tasks:
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return tasks

    def _publish(self) -> None:
        if self.on_update is not None:
            self.on_update(self.view)

    async def _refresh_stats(self) -> None:
        try:
            stats = await self.gateway.get_listener_stats()
        except PFError as e:
            logger.warning("Fetching listener stats failed: %s", e)
            return
        self.view.stats = sorted(stats.values(), key=lambda s: record_sort_key(s.name))
        self.view.updated_at = datetime.now(timezone.utc)
        self._publish()

    async def _refresh_statuses(self) -> None:
        try:
            statuses = await self.gateway.get_listener_statuses()
        except PFError as e:
            logger.warning("Fetching listener status failed: %s", e)
            return
        self.view.failed = failed_listeners(statuses)
        self._publish()

    async def _refresh_listeners(self) -> None:
        try:
            listeners = await self.gateway.get_listeners()
        except PFError as e:
            logger.warning("Fetching listeners failed: %s", e)
            return
        self.view.listeners.replace_all(listeners)
        self._publish()
