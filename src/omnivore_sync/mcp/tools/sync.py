"""MCP tool handlers for Omnivore sync.

Defines three tools:

- ``omnivore_sync`` -- run a sync now.
- ``omnivore_sync_status`` -- watermark, run state and recent notices.
- ``omnivore_sync_reset`` -- clear the watermark (next run is a full refresh).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import mcp.types as types

from ...core.async_utils import run_sync
from ...sync.models import SyncStatus
from ...sync.reporter import format_sync_report, report_to_json
from .errors import build_error_response
from .registry import ToolSpec

if TYPE_CHECKING:
    from ..lifespan import SyncContext

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_sync(
    context: SyncContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``omnivore_sync`` tool."""
    report = await context.engine.run(in_background=False)

    match report.status:
        case SyncStatus.CONFIG_ERROR:
            return build_error_response(
                "config_error",
                report.error or "Missing Omnivore api key",
                "Set OMNIVORE_API_KEY (or omnivore.api_key in the config file) and restart the server.",
            )
        case SyncStatus.BUSY:
            return build_error_response(
                "busy",
                "A sync is already in progress.",
                "Wait for it to finish; check omnivore_sync_status.",
            )

    return types.CallToolResult(
        content=[
            types.TextContent(type="text", text=format_sync_report(report))
        ],
        structuredContent=report_to_json(report),
        isError=report.status == SyncStatus.FAILED,
    )


async def _handle_sync_status(
    context: SyncContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``omnivore_sync_status`` tool."""
    engine = context.engine
    watermark = await run_sync(engine.watermark)
    last = engine.run_state.last_report

    lines = [
        f"Sync status for graph '{engine.profile}'",
        f"Page: {context.config.page_name}",
        f"Watermark: {watermark or '(none, next run is a full refresh)'}",
        f"Running: {'yes' if engine.run_state.active else 'no'}",
    ]
    if context.scheduler is not None and context.scheduler.frequency > 0:
        lines.append(
            f"Schedule: every {context.scheduler.frequency} minutes"
        )
    else:
        lines.append("Schedule: disabled")
    if last is not None:
        lines.append(
            f"Last run: {last.status.value} at {last.completed_at}"
        )
        if last.error:
            lines.append(f"Last error: {last.error}")

    notices = list(context.notifier.notices)
    if notices:
        lines.append("")
        lines.append("Recent notices:")
        for notice in notices:
            lines.append(f"  [{notice.level}] {notice.message}")

    structured = {
        "graph": engine.profile,
        "watermark": watermark,
        "running": engine.run_state.active,
        "frequency": context.scheduler.frequency
        if context.scheduler is not None
        else 0,
        "last_report": report_to_json(last) if last is not None else None,
        "notices": [
            {"message": n.message, "level": n.level, "at": n.at}
            for n in notices
        ],
    }

    return types.CallToolResult(
        content=[types.TextContent(type="text", text="\n".join(lines))],
        structuredContent=structured,
    )


async def _handle_sync_reset(
    context: SyncContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``omnivore_sync_reset`` tool."""
    if not await context.engine.reset():
        return build_error_response(
            "busy",
            "Cannot clear the watermark while a sync is running.",
            "Wait for the current sync to finish, then retry.",
        )
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text",
                text=(
                    f"Watermark cleared for graph '{context.engine.profile}'. "
                    "The next sync will fetch all articles."
                ),
            )
        ],
    )


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


_EMPTY_SCHEMA = {"type": "object", "properties": {}, "required": []}

SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=types.Tool(
            name="omnivore_sync",
            description=(
                "Fetch articles changed since the last sync from Omnivore "
                "and merge them, with highlights and notes, into the "
                "outline page. Safe to re-run: existing blocks are "
                "updated in place, never duplicated or deleted."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=False,
                idempotentHint=True,
                openWorldHint=True,
            ),
            inputSchema=_EMPTY_SCHEMA,
        ),
        handler=_handle_sync,
    ),
    ToolSpec(
        tool=types.Tool(
            name="omnivore_sync_status",
            description=(
                "Show the sync watermark, whether a sync is running, the "
                "last run's outcome and recent notices."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=True,
                destructiveHint=False,
                idempotentHint=True,
                openWorldHint=False,
            ),
            inputSchema=_EMPTY_SCHEMA,
        ),
        handler=_handle_sync_status,
    ),
    ToolSpec(
        tool=types.Tool(
            name="omnivore_sync_reset",
            description=(
                "Clear the last-sync watermark so the next sync fetches "
                "every article again. Does not touch the outline."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=False,
                idempotentHint=True,
                openWorldHint=False,
            ),
            inputSchema=_EMPTY_SCHEMA,
        ),
        handler=_handle_sync_reset,
    ),
]
