"""
Tests for async_utils module.

Covers run_sync argument forwarding, thread offloading and error
propagation.
"""

import asyncio
import threading

import pytest

from omnivore_sync.core.async_utils import run_sync


def _sync_add(a: int, b: int) -> int:
    """Simple sync function for testing."""
    return a + b


def test_run_sync_calls_function():
    """run_sync delegates to asyncio.to_thread with correct args."""
    assert asyncio.run(run_sync(_sync_add, 3, 4)) == 7


def test_run_sync_passes_kwargs():
    """run_sync forwards keyword arguments."""

    def _kw_func(*, name: str) -> str:
        return f"hello {name}"

    assert asyncio.run(run_sync(_kw_func, name="world")) == "hello world"


def test_run_sync_runs_off_the_event_loop_thread():
    """The wrapped call executes in a worker thread."""
    main_thread = threading.get_ident()

    worker_thread = asyncio.run(run_sync(threading.get_ident))

    assert worker_thread != main_thread


def test_run_sync_propagates_exceptions():
    """Exceptions raised by the wrapped call reach the awaiting coroutine."""

    def _boom():
        raise RuntimeError("request failed")

    with pytest.raises(RuntimeError, match="request failed"):
        asyncio.run(run_sync(_boom))


def test_run_sync_calls_are_sequential_when_awaited_in_order():
    """Awaiting one call after another preserves ordering."""
    seen: list[int] = []

    async def _run():
        for i in range(5):
            await run_sync(seen.append, i)

    asyncio.run(_run())
    assert seen == [0, 1, 2, 3, 4]
