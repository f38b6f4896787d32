"""MCP Server for Omnivore sync using stdio transport.

This module implements the Model Context Protocol server that lets an
agent trigger Omnivore syncs, inspect the sync state and clear the
watermark.  A periodic scheduler keeps syncing in the background while
the server runs.

Transport: stdio
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..config_loader import load_logging_config
from ..logger import setup_logging
from .lifespan import SyncContext, server_lifespan
from .tools import ALL_SPECS, ToolRegistry, build_error_response

logger = logging.getLogger(__name__)

# Initialize server instance
server = Server("omnivore-sync")

# Global context (initialized in main)
_context: SyncContext | None = None

# Global registry instance (initialized in main)
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_context() -> SyncContext:
    """Get the global SyncContext.

    Raises:
        RuntimeError: If the context is not initialized
    """
    if _context is None:
        raise RuntimeError(
            "Sync context not initialized. Server lifespan not started."
        )
    return _context


def set_context(context: SyncContext | None) -> None:
    global _context
    _context = context


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry instance.

    Raises:
        RuntimeError: If registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """List registered sync tools."""
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution via ToolRegistry dispatch."""
    context = get_context()
    try:
        return await get_registry().call_tool(name, arguments, context)
    except ValueError as e:
        # Unknown or filtered-out tool name
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


async def main(
    config_overrides: dict | None = None,
    log_file: str | None = None,
    read_only: bool = False,
    startup_sync: bool = True,
):
    """Run the MCP server with stdio transport.

    Logging is set up for MCP mode (file only, never stdout) before the
    stdio transport starts.
    """
    # CRITICAL: must run before stdio_server to keep stdout clean
    log_config = load_logging_config()
    setup_logging(
        mode="mcp",
        log_file=log_file,
        level=log_config.level,
        config_file=log_config.file,
        debug=bool(config_overrides and config_overrides.get("debug")),
    )

    registry = ToolRegistry(ALL_SPECS, read_only=read_only)
    logger.info(
        "Registered %d tools (of %d total)",
        registry.tool_count(),
        len(ALL_SPECS),
    )
    set_registry(registry)

    # The context is installed here rather than inside the lifespan so that
    # running this file as __main__ does not set a duplicate module's global.
    async with server_lifespan(
        config_overrides=config_overrides, startup_sync=startup_sync
    ) as context:
        set_context(context)
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="omnivore-sync",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(
                    read_stream, write_stream, init_options
                )
        finally:
            set_context(None)
            set_registry(None)


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Omnivore Sync MCP Server - sync Omnivore highlights into an outline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (from .env or .omnivore_sync/config.yml)
  omnivore-sync-mcp

  # Sync into a specific outline file
  omnivore-sync-mcp --outline ~/notes/graph.json

  # Only expose the status tool
  omnivore-sync-mcp --read-only

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr. Do not pipe stdin/stdout manually.
        """,
    )
    parser.add_argument(
        "--api-key",
        help="Override Omnivore API key (prefer the OMNIVORE_API_KEY env var)",
    )
    parser.add_argument(
        "--outline",
        help="Outline JSON file to sync into (overrides OMNIVORE_OUTLINE_PATH)",
    )
    parser.add_argument(
        "--log-file",
        help="Log file path (default: LOG_FILE, then /tmp/omnivore-sync.log)",
    )
    parser.add_argument(
        "--read-only",
        action="store_true",
        help="Only register tools that do not modify anything",
    )
    parser.add_argument(
        "--no-startup-sync",
        action="store_true",
        help="Do not sync when the server starts",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"omnivore-sync-mcp version {__version__}",
    )

    args = parser.parse_args()

    config_overrides = {}
    if args.api_key:
        config_overrides["api_key"] = args.api_key
    if args.outline:
        config_overrides["outline_path"] = args.outline
    if args.debug:
        config_overrides["debug"] = True

    if config_overrides:
        override_keys = [k for k in config_overrides if k != "api_key"]
        if override_keys:
            print(
                f"Config overrides from CLI: {', '.join(override_keys)}",
                file=sys.stderr,
            )

    try:
        asyncio.run(
            main(
                config_overrides=config_overrides or None,
                log_file=args.log_file,
                read_only=args.read_only,
                startup_sync=not args.no_startup_sync,
            )
        )
    except RuntimeError:
        # Error already printed to stderr by lifespan manager
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
