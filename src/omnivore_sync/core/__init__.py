"""Omnivore API client and async helpers shared by the CLI and MCP server.

The client lives in ``core.client``; it is not re-exported here because it
depends on ``sync.models`` and this package is imported by the outline
store.
"""

from .async_utils import run_sync

__all__ = ["run_sync"]
