"""MCP tool handlers for the vault mirror.

Defines three tools:

- ``mirror_sync`` -- upload documents changed since the last pass.
- ``mirror_full_resync`` -- archive the mirrored tree and upload everything.
- ``mirror_status`` -- show what the mirror currently tracks.

Passes run in a worker thread and never overlap: a pass requested while
another is running is refused with a ``busy`` error.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import mcp.types as types

from ...core.async_utils import run_sync
from ...sync.models import SyncReport
from ...sync.reporter import format_sync_report, report_to_json
from ..context import ServerContext
from .errors import build_error_response
from .registry import ToolSpec

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _run_pass(
    ctx: ServerContext, run: Callable[[], SyncReport]
) -> types.CallToolResult:
    if ctx.pass_lock.locked():
        return build_error_response(
            "busy",
            "A sync pass is already running.",
            "Wait for it to finish, then check mirror_status.",
        )

    async with ctx.pass_lock:
        report = await run_sync(run)

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=format_sync_report(report))],
        structuredContent=report_to_json(report),
        isError=report.is_fatal,
    )


async def _handle_mirror_sync(
    ctx: ServerContext, args: dict[str, Any]
) -> types.CallToolResult:
    return await _run_pass(ctx, ctx.engine.run_incremental_sync)


async def _handle_mirror_full_resync(
    ctx: ServerContext, args: dict[str, Any]
) -> types.CallToolResult:
    if args.get("confirm") is not True:
        return build_error_response(
            "validation_error",
            "Full resync archives every page under the root page before re-uploading.",
            "Ask the user to confirm, then call again with confirm=true.",
        )
    logger.info("Full resync requested via MCP")
    return await _run_pass(ctx, ctx.engine.run_full_resync)


async def _handle_mirror_status(
    ctx: ServerContext, args: dict[str, Any]
) -> types.CallToolResult:
    status = ctx.engine.status()
    status["pass_running"] = ctx.pass_lock.locked()

    excluded = ", ".join(status["excluded_folders"]) or "(none)"
    lines = [
        "Mirror status",
        f"  Vault:        {status['vault_path']}",
        f"  Root page:    {status['root_page_id']}",
        f"  Last sync:    {status['last_sync'] or 'never'}",
        f"  Tracked documents: {status['tracked_documents']}",
        f"  Cached pages:      {status['cached_nodes']}",
        f"  Excluded folders:  {excluded}",
    ]
    if status["pass_running"]:
        lines.append("  A sync pass is running.")

    return types.CallToolResult(
        content=[types.TextContent(type="text", text="\n".join(lines))],
        structuredContent=status,
    )


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=types.Tool(
            name="mirror_sync",
            description=(
                "Mirror the local Markdown vault into Notion. Only documents "
                "changed since the last pass are uploaded; their Notion pages "
                "are overwritten."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=False,
                idempotentHint=True,
                openWorldHint=True,
            ),
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        writes=True,
        handler=_handle_mirror_sync,
    ),
    ToolSpec(
        tool=types.Tool(
            name="mirror_full_resync",
            description=(
                "Archive every page under the Notion root page, then upload "
                "the whole vault again. Requires confirm=true."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=True,
                idempotentHint=False,
                openWorldHint=True,
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "confirm": {
                        "type": "boolean",
                        "description": "Must be true to run the resync",
                    },
                },
                "required": ["confirm"],
            },
        ),
        writes=True,
        handler=_handle_mirror_full_resync,
    ),
    ToolSpec(
        tool=types.Tool(
            name="mirror_status",
            description=(
                "Show mirror state: vault path, root page, last sync time, "
                "tracked documents and whether a pass is running."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=True,
                destructiveHint=False,
                idempotentHint=True,
                openWorldHint=False,
            ),
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        writes=False,
        handler=_handle_mirror_status,
    ),
]
