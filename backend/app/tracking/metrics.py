"""Periodic recompute of distance and active duration for a running session.

The cadence is independent of fix arrival. Each tick derives the numbers from
scratch (full path length, wall clock minus paused time), so a missed tick or
a suspended process never skews the totals.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from typing import Callable

from app.core.constants import METRICS_INTERVAL_S
from app.tracking.clock import Clock
from app.tracking.geo import path_distance_km
from app.tracking.models import MetricsSnapshot, RunState
from app.tracking.session import RunSession

logger = logging.getLogger(__name__)


class MetricsUpdater:
    def __init__(
        self,
        session: RunSession,
        clock: Clock,
        interval_s: float = METRICS_INTERVAL_S,
        lock: threading.RLock | None = None,
        on_update: Callable[[MetricsSnapshot], None] | None = None,
    ):
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        self.session = session
        self.clock = clock
        self.interval_s = interval_s
        self._lock = lock or threading.RLock()
        self._on_update = on_update
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def tick(self) -> MetricsSnapshot | None:
        """Recompute and write metrics; None when the session is not running."""
        with self._lock:
            if self.session.state is not RunState.running:
                return None
            distance_km = path_distance_km(self.session.points)
            elapsed = self.session.elapsed_active_sec(self.clock.now_ms())
            self.session.update_metrics(distance_km, elapsed)
            snapshot = self.session.snapshot()
        if self._on_update is not None:
            self._on_update(snapshot)
        return snapshot

    def start(self) -> bool:
        """Schedule ticking on the running event loop.

        Returns False if already scheduled. Raises RuntimeError without a
        running loop.
        """
        if self.running:
            return False
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run())
        logger.debug("Metrics timer started (%.2fs)", self.interval_s)
        return True

    def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            logger.debug("Metrics timer cancelled")

    async def aclose(self) -> None:
        """Cancel and wait for the timer task to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_s)
            if self.tick() is None:
                logger.debug("Session left running; metrics timer exits")
                return
