"""Tests for periodic background syncs."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

from omnivore_sync.sync.models import SyncReport, SyncStatus
from omnivore_sync.sync.scheduler import SyncScheduler


def _engine() -> MagicMock:
    engine = MagicMock()
    engine.run = AsyncMock(
        return_value=SyncReport(
            graph="notes",
            status=SyncStatus.COMPLETED,
            started_at="2026-03-14T09:00:00+00:00",
        )
    )
    return engine


class TestGraphMatching:
    def test_runs_in_background_when_graph_matches(self):
        engine = _engine()
        scheduler = SyncScheduler(engine, 60, graph="notes", store_name="notes")

        report = asyncio.run(scheduler.run_once())

        assert report.status == SyncStatus.COMPLETED
        engine.run.assert_awaited_once_with(in_background=True)

    def test_skips_other_graph(self):
        engine = _engine()
        scheduler = SyncScheduler(engine, 60, graph="notes", store_name="work")

        assert asyncio.run(scheduler.run_once()) is None
        engine.run.assert_not_awaited()

    def test_empty_graph_matches_any_store(self):
        scheduler = SyncScheduler(_engine(), 60, graph="", store_name="work")
        assert scheduler.graph_matches()

    def test_startup_sync_uses_same_check(self):
        engine = _engine()
        scheduler = SyncScheduler(engine, 0, graph="notes", store_name="notes")
        asyncio.run(scheduler.run_startup_sync())
        engine.run.assert_awaited_once()


class TestTimer:
    def test_zero_frequency_disables_timer(self):
        scheduler = SyncScheduler(_engine(), 0)

        async def _run():
            scheduler.start()
            return scheduler.running

        assert asyncio.run(_run()) is False

    def test_loop_runs_each_interval(self):
        engine = _engine()
        scheduler = SyncScheduler(engine, 5)
        sleeps: list[float] = []
        real_sleep = asyncio.sleep

        async def fake_sleep(seconds):
            sleeps.append(seconds)
            await real_sleep(0)

        async def _run():
            with patch(
                "omnivore_sync.sync.scheduler.asyncio.sleep", fake_sleep
            ):
                scheduler.start()
                while engine.run.await_count < 3:
                    await real_sleep(0)
                await scheduler.stop()

        asyncio.run(_run())
        assert engine.run.await_count >= 3
        assert sleeps[0] == 300
        assert not scheduler.running

    def test_loop_survives_errors(self):
        engine = _engine()
        engine.run.side_effect = [RuntimeError("boom"), engine.run.return_value]
        scheduler = SyncScheduler(engine, 1)
        real_sleep = asyncio.sleep

        async def fake_sleep(seconds):
            await real_sleep(0)

        async def _run():
            with patch(
                "omnivore_sync.sync.scheduler.asyncio.sleep", fake_sleep
            ):
                scheduler.start()
                while engine.run.await_count < 2:
                    await real_sleep(0)
                await scheduler.stop()

        asyncio.run(_run())
        assert engine.run.await_count >= 2

    def test_reschedule_restarts_with_new_frequency(self):
        scheduler = SyncScheduler(_engine(), 10)

        async def _run():
            scheduler.start()
            first = scheduler._task
            await scheduler.reschedule(20)
            second = scheduler._task
            running = scheduler.running
            await scheduler.stop()
            return first, second, running

        first, second, running = asyncio.run(_run())
        assert first is not second
        assert first.cancelled()
        assert running
        assert scheduler.frequency == 20

    def test_stop_without_start_is_noop(self):
        asyncio.run(SyncScheduler(_engine(), 10).stop())
