"""Periodic background syncs.

``SyncScheduler`` owns an asyncio task that triggers a background run
every ``frequency`` minutes.  A frequency of ``0`` disables the timer.
Runs are only started while the outline store holds the configured graph,
so a scheduler left running against another graph never writes into it.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

from .engine import SyncEngine
from .models import SyncReport

logger = logging.getLogger(__name__)


class SyncScheduler:
    """Run ``engine`` on a fixed interval.

    Args:
        engine: Engine to run.
        frequency_minutes: Interval between runs; ``0`` disables.
        graph: Graph the syncs are meant for (empty matches any).
        store_name: Name of the graph the store currently holds.
    """

    def __init__(
        self,
        engine: SyncEngine,
        frequency_minutes: int,
        graph: str = "",
        store_name: str = "",
    ) -> None:
        self.engine = engine
        self.frequency = frequency_minutes
        self.graph = graph
        self.store_name = store_name
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def graph_matches(self) -> bool:
        return not self.graph or self.graph == self.store_name

    async def run_once(self) -> SyncReport | None:
        """Start a background run if the graph matches; ``None`` otherwise."""
        if not self.graph_matches():
            logger.debug(
                "Skipping scheduled sync: store holds %r, configured %r",
                self.store_name,
                self.graph,
            )
            return None
        return await self.engine.run(in_background=True)

    async def run_startup_sync(self) -> SyncReport | None:
        """Sync once when the process starts."""
        logger.info("Running startup sync")
        return await self.run_once()

    def start(self) -> None:
        if self.frequency <= 0:
            logger.info("Periodic sync disabled")
            return
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.info("Periodic sync every %d minutes", self.frequency)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def reschedule(self, frequency_minutes: int) -> None:
        """Restart the timer with a new interval."""
        await self.stop()
        self.frequency = frequency_minutes
        self.start()

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.frequency * 60)
            try:
                report = await self.run_once()
            except Exception:
                logger.exception("Scheduled sync raised")
                continue
            if report is not None:
                logger.info("Scheduled sync: %s", report.status.value)
