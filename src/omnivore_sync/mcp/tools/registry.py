"""ToolSpec and ToolRegistry for MCP tool dispatch.

Key concepts:
- ToolSpec: Immutable dataclass linking a Tool definition to an async
  handler with standardized signature (context, args) -> CallToolResult.
- ToolRegistry: Optionally drops tools that modify anything (read-only
  mode) at construction time, then provides list_tools() and call_tool()
  dispatch with error translation.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import mcp.types as types

from ...core.client import OmnivoreError
from ...outline.store import OutlineStoreError
from .errors import build_error_response

if TYPE_CHECKING:
    from ..lifespan import SyncContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Immutable specification for a single MCP tool.

    Attributes:
        tool: The MCP Tool definition (name, description, inputSchema).
        handler: Async handler with signature (context, args) -> CallToolResult.
    """

    tool: types.Tool
    handler: Callable[[SyncContext, dict], Awaitable[types.CallToolResult]]

    @property
    def read_only(self) -> bool:
        annotations = self.tool.annotations
        return bool(annotations and annotations.readOnlyHint)


class ToolRegistry:
    """Registry of ToolSpecs.

    With ``read_only=True`` only tools annotated ``readOnlyHint`` are
    registered, so an operator can expose sync status without letting an
    agent trigger runs or clear the watermark.
    """

    def __init__(self, specs: list[ToolSpec], read_only: bool = False):
        self._specs: dict[str, ToolSpec] = {}
        for spec in specs:
            if not read_only or spec.read_only:
                self._specs[spec.tool.name] = spec

    def list_tools(self) -> list[types.Tool]:
        """Return list of types.Tool for all registered specs."""
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        context: SyncContext,
    ) -> types.CallToolResult:
        """Dispatch tool call to registered handler.

        Translates remote, store, validation and unexpected errors into
        structured ``CallToolResult`` responses with corrective actions.

        Raises:
            ValueError: If tool name is not registered (unknown or filtered out).
        """
        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown tool: {name}")
        args = arguments or {}
        try:
            return await spec.handler(context, args)
        except OmnivoreError as e:
            logger.warning("Omnivore error in %s: %s", name, e)
            return build_error_response(
                "remote_error",
                str(e),
                "Check OMNIVORE_API_KEY and the Omnivore endpoint, then retry.",
            )
        except OutlineStoreError as e:
            logger.warning("Outline store error in %s: %s", name, e)
            return build_error_response(
                "store_error",
                str(e),
                "Check OMNIVORE_OUTLINE_PATH points at a writable outline file.",
            )
        except ValueError as e:
            return build_error_response(
                "validation_error",
                str(e),
                "Check parameter values and retry.",
            )
        except Exception as e:
            logger.exception("Unexpected error in tool %s", name)
            return build_error_response(
                "server_error",
                str(e),
                "Check the server log and retry later.",
            )
