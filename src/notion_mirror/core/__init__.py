"""Notion API access shared between the CLI and the MCP server."""

from .async_utils import run_sync
from .client import NotionAPIError, NotionClient, is_retryable_error
from .remote import ChildPage, ChildSummary, RemoteClient

__all__ = [
    "ChildPage",
    "ChildSummary",
    "NotionAPIError",
    "NotionClient",
    "RemoteClient",
    "is_retryable_error",
    "run_sync",
]
