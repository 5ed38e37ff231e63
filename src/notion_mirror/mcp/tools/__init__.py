"""MCP tool handlers for the vault mirror.

Each tool is a ``ToolSpec`` whose handler receives the shared
``ServerContext`` and returns a structured ``CallToolResult``.
"""

from .errors import build_error_response, translate_notion_error
from .registry import ToolRegistry, ToolSpec
from .sync import SYNC_SPECS

ALL_SPECS: list[ToolSpec] = list(SYNC_SPECS)

__all__ = [
    "ALL_SPECS",
    "SYNC_SPECS",
    "ToolRegistry",
    "ToolSpec",
    "build_error_response",
    "translate_notion_error",
]
