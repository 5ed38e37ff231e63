"""ToolSpec and ToolRegistry for MCP tool dispatch.

Key concepts:
- ToolSpec: Immutable dataclass linking a Tool definition, whether the
  tool writes to Notion, and an async handler with signature
  (context, args) -> CallToolResult.
- ToolRegistry: Drops writing tools in read-only mode at construction
  time, then provides list_tools() and call_tool() dispatch with error
  translation.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import mcp.types as types

from ...core.client import NotionAPIError
from ..context import ServerContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Immutable specification for a single MCP tool.

    Attributes:
        tool: The MCP Tool definition (name, description, inputSchema).
        writes: True if the tool modifies the Notion workspace.
        handler: Async handler with signature (context, args) -> CallToolResult.
    """

    tool: types.Tool
    writes: bool
    handler: Callable[[ServerContext, dict], Awaitable[types.CallToolResult]]


class ToolRegistry:
    """Registry of ToolSpecs, optionally restricted to read-only tools."""

    def __init__(self, specs: list[ToolSpec], read_only: bool = False):
        self.read_only = read_only
        self._specs: dict[str, ToolSpec] = {
            spec.tool.name: spec
            for spec in specs
            if not (read_only and spec.writes)
        }

    def list_tools(self) -> list[types.Tool]:
        """Return list of types.Tool for all registered specs."""
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        context: ServerContext,
    ) -> types.CallToolResult:
        """Dispatch tool call to registered handler.

        Notion API errors, validation errors and unexpected exceptions are
        translated into structured CallToolResult responses.

        Raises:
            ValueError: If tool name is not registered (unknown or filtered out).
        """
        from .errors import build_error_response, translate_notion_error

        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown tool: {name}")
        args = arguments or {}
        try:
            return await spec.handler(context, args)
        except NotionAPIError as e:
            logger.warning("Notion API error in %s: %s", name, e)
            return translate_notion_error(e)
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
                "Check the server log, then retry.",
            )
