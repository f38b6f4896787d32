"""Lifespan management for MCP server startup and shutdown."""

import asyncio
import contextlib
import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from ..config import Config
from ..config_loader import load_runtime_config
from ..core.client import OmnivoreClient
from ..outline.store import JsonOutlineStore
from ..sync.engine import RunState, SyncEngine
from ..sync.notifier import RecordingNotifier
from ..sync.scheduler import SyncScheduler
from ..sync.state import MemorySyncState, SyncState

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@dataclass
class SyncContext:
    """Everything a tool handler needs, built once per process."""

    config: Config
    engine: SyncEngine
    notifier: RecordingNotifier
    scheduler: SyncScheduler | None = None


def build_context(config: Config) -> SyncContext:
    """Wire client, outline store, engine and scheduler for *config*."""
    outline_path = (
        Path(config.outline_path).expanduser() if config.outline_path else None
    )
    if outline_path is None:
        logger.warning(
            "No outline file configured (OMNIVORE_OUTLINE_PATH); "
            "synced blocks and the watermark are kept in memory only"
        )
        store = JsonOutlineStore(name=config.graph_name)
        state_store: SyncState | None = MemorySyncState()
    else:
        store = JsonOutlineStore(outline_path)
        state_store = None
    notifier = RecordingNotifier()
    engine = SyncEngine(
        OmnivoreClient(config),
        store,
        config,
        run_state=RunState(),
        notifier=notifier,
        state_store=state_store,
    )
    scheduler = SyncScheduler(
        engine,
        config.frequency,
        graph=config.graph,
        store_name=store.name,
    )
    if not scheduler.graph_matches():
        logger.warning(
            "Outline %s holds graph %r, not %r; scheduled syncs are skipped",
            outline_path,
            store.name,
            config.graph,
        )
    return SyncContext(
        config=config, engine=engine, notifier=notifier, scheduler=scheduler
    )


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
    startup_sync: bool = True,
) -> AsyncIterator[SyncContext]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load .env file (so values are available for env var lookups and YAML interpolation)
    - Merge all sources via load_runtime_config(): CLI > env vars > .env > YAML > defaults
    - Build the sync context and start the periodic scheduler
    - Kick off a background sync, like the outline plugin does on load

    A missing API key does not stop the server: the sync tool reports it.

    On shutdown:
    - Stop the scheduler and any startup sync still running

    Raises:
        RuntimeError: If configuration is invalid.
    """
    logger.info("MCP server starting...")
    _stderr_print("Omnivore Sync MCP Server starting...")

    try:
        load_dotenv()
        config, sources = load_runtime_config(config_overrides)
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        raise RuntimeError(f"Configuration error: {e}") from e

    source_desc = ", ".join(sources) if sources else "defaults"
    logger.info("Configuration loaded from: %s", source_desc)
    _stderr_print(f"  Configuration loaded from: {source_desc}")
    _stderr_print(
        f"  Graph: {config.graph_name}, page: {config.page_name}"
    )
    if not config.api_key:
        logger.warning("OMNIVORE_API_KEY is not set; syncs will be refused")
        _stderr_print("  WARNING: OMNIVORE_API_KEY is not set.")

    context = build_context(config)
    startup_task: asyncio.Task | None = None
    if startup_sync and config.api_key:
        startup_task = asyncio.create_task(
            context.scheduler.run_startup_sync()
        )
    context.scheduler.start()
    _stderr_print("Server ready. Waiting for MCP client connection...")

    try:
        yield context
    finally:
        logger.info("MCP server shutting down")
        await context.scheduler.stop()
        if startup_task is not None and not startup_task.done():
            startup_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await startup_task
        _stderr_print("Omnivore Sync MCP Server shutting down.")
