"""Command-line entry point: ``omnivore-sync``.

Runs one sync and prints the report, or keeps syncing on the configured
schedule with ``--watch``.  Exit status is 1 when a run fails or the
configuration is incomplete.
"""

import argparse
import asyncio
import json
import logging
import sys

from dotenv import load_dotenv

from . import __version__
from .config_loader import (
    ensure_config,
    load_logging_config,
    load_runtime_config,
)
from .logger import setup_logging
from .mcp.lifespan import SyncContext, build_context
from .sync.models import SyncStatus
from .sync.reporter import format_sync_report, report_to_json

logger = logging.getLogger(__name__)


def _status(context: SyncContext, as_json: bool) -> int:
    engine = context.engine
    watermark = engine.watermark()
    if as_json:
        print(json.dumps({"graph": engine.profile, "watermark": watermark}))
    else:
        print(f"Graph: {engine.profile}")
        print(f"Watermark: {watermark or '(none, next run is a full refresh)'}")
    return 0


def _reset(context: SyncContext) -> int:
    asyncio.run(context.engine.reset())
    print(
        f"Watermark cleared for graph '{context.engine.profile}'.",
        file=sys.stderr,
    )
    return 0


async def _sync_once(context: SyncContext, as_json: bool) -> int:
    report = await context.engine.run(in_background=False)
    if as_json:
        print(json.dumps(report_to_json(report), indent=2))
    else:
        print(format_sync_report(report))
    if report.status in (SyncStatus.FAILED, SyncStatus.CONFIG_ERROR):
        return 1
    return 0


async def _watch(context: SyncContext) -> int:
    scheduler = context.scheduler
    if scheduler.frequency <= 0:
        print(
            "Periodic sync is disabled (frequency 0); set OMNIVORE_FREQUENCY.",
            file=sys.stderr,
        )
        return 1
    report = await scheduler.run_startup_sync()
    if report is not None and report.status == SyncStatus.CONFIG_ERROR:
        return 1
    scheduler.start()
    print(
        f"Syncing every {scheduler.frequency} minutes. Press Ctrl+C to stop.",
        file=sys.stderr,
    )
    try:
        await asyncio.Event().wait()
    finally:
        await scheduler.stop()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="omnivore-sync",
        description="Sync Omnivore articles, highlights and notes into an outline",
    )
    parser.add_argument("--api-key", help="Omnivore API key")
    parser.add_argument("--outline", help="Outline JSON file to sync into")
    parser.add_argument(
        "--filter",
        choices=["all", "highlights", "advanced"],
        help="Which articles to fetch",
    )
    parser.add_argument(
        "--query", help="Search query used with --filter advanced"
    )
    parser.add_argument(
        "--order",
        choices=["location", "time"],
        help="Highlight ordering inside an article",
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--watch",
        action="store_true",
        help="Keep running and sync on the configured schedule",
    )
    mode.add_argument(
        "--status", action="store_true", help="Show the sync watermark"
    )
    mode.add_argument(
        "--reset",
        action="store_true",
        help="Clear the watermark so the next sync fetches everything",
    )
    mode.add_argument(
        "--init",
        action="store_true",
        help="Write a starter config file if none exists",
    )

    parser.add_argument(
        "--json", action="store_true", help="Print machine-readable output"
    )
    parser.add_argument("--log-file", help="Also log to this file")
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"omnivore-sync version {__version__}",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    log_config = load_logging_config()
    setup_logging(
        mode="cli",
        debug=args.debug,
        log_file=args.log_file,
        level=log_config.level,
        config_file=log_config.file,
    )

    if args.init:
        path = ensure_config()
        print(f"Config file: {path}")
        return 0

    load_dotenv()
    try:
        config, _ = load_runtime_config(
            {
                "api_key": args.api_key,
                "outline_path": args.outline,
                "filter": args.filter,
                "custom_query": args.query,
                "highlight_order": args.order,
                "debug": args.debug or None,
            }
        )
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    context = build_context(config)

    if args.status:
        return _status(context, args.json)
    if args.reset:
        return _reset(context)
    if args.watch:
        return asyncio.run(_watch(context))
    return asyncio.run(_sync_once(context, args.json))


def run() -> None:
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run()
