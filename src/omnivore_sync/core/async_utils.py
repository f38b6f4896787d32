"""Async utilities for bridging blocking I/O into the sync engine."""

import asyncio
import logging
from typing import Any, Callable, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    Used to wrap blocking HTTP requests and outline file writes so the
    reconciler suspends at each remote fetch and store mutation.  Calls
    are awaited one at a time, so ordering is strictly sequential.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Example:
        client = OmnivoreClient(config)
        articles, has_more = await run_sync(client.search, 0, 50, "")
    """
    return await asyncio.to_thread(func, *args, **kwargs)
