"""MCP server for the Notion vault mirror using stdio transport.

Exposes the mirror's sync passes as Model Context Protocol tools so an
agent can push the local vault to Notion on request.

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
from ..core.async_utils import run_sync
from ..logger import DEFAULT_MCP_LOG_FILE, setup_logging
from .context import ServerContext
from .lifespan import server_lifespan
from .tools import ALL_SPECS, ToolRegistry, build_error_response
from .tools.registry import ToolSpec

logger = logging.getLogger(__name__)

server = Server("notion-mirror")

# Initialized in main() from the lifespan
_context: ServerContext | None = None

_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Ping tool (always available)
# ---------------------------------------------------------------------------


async def _handle_ping(ctx: ServerContext, args: dict) -> types.CallToolResult:
    """Handle ping tool -- test Notion connectivity."""
    try:
        bot_name = await run_sync(ctx.client.verify_connection)
        return types.CallToolResult(
            content=[
                types.TextContent(
                    type="text",
                    text=f"Notion mirror connected successfully as {bot_name}.",
                )
            ]
        )
    except Exception as e:
        return types.CallToolResult(
            content=[
                types.TextContent(
                    type="text",
                    text=f"Notion connection failed: {e}. Check NOTION_TOKEN.",
                )
            ],
            isError=True,
        )


PING_SPEC = ToolSpec(
    tool=types.Tool(
        name="ping",
        description="Test Notion connectivity and return the integration's name",
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    writes=False,
    handler=_handle_ping,
)


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_context() -> ServerContext:
    """Get the global ServerContext.

    Raises:
        RuntimeError: If the server lifespan has not started.
    """
    if _context is None:
        raise RuntimeError(
            "ServerContext not initialized. Server lifespan not started."
        )
    return _context


def set_context(context: ServerContext | None) -> None:
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
    """List the registered mirror tools."""
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


def build_registry(read_only: bool = False) -> ToolRegistry:
    all_specs = [PING_SPEC] + ALL_SPECS
    registry = ToolRegistry(all_specs, read_only=read_only)
    logger.info(
        "Registered %d tools (of %d total)",
        registry.tool_count(),
        len(all_specs),
    )
    return registry


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Args:
        config_overrides: Optional dict with config values to override
            (token, root_page, vault_path, log_file, read_only)
    """
    overrides = dict(config_overrides or {})
    log_file = overrides.pop("log_file", None)
    read_only = overrides.pop("read_only", False)

    # Must run before stdio_server so nothing reaches stdout
    setup_logging(mode="mcp", log_file=log_file, debug=overrides.get("debug", False))

    registry = build_registry(read_only)
    if read_only:
        print(
            f"Read-only mode: {registry.tool_count()} tools enabled",
            file=sys.stderr,
        )
    set_registry(registry)

    # set_context() is called here, not in the lifespan, so that running
    # this file as __main__ updates the same module the handlers read.
    async with server_lifespan(config_overrides=overrides) as ctx:
        set_context(ctx)
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="notion-mirror",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(read_stream, write_stream, init_options)
        finally:
            set_context(None)
            set_registry(None)


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Notion Mirror MCP Server - mirror a Markdown vault into Notion",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (from .env or .notion_mirror/config.yml)
  notion-mirror-mcp

  # Override the vault and root page
  notion-mirror-mcp --vault ~/Vault --root-page https://www.notion.so/Vault-0123...

  # Expose only read-only tools (ping, mirror_status)
  notion-mirror-mcp --read-only

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr.
        """,
    )

    parser.add_argument(
        "--token",
        help="Override Notion token (visible in process list -- prefer NOTION_TOKEN)",
    )
    parser.add_argument(
        "--root-page",
        help="Override root page id or URL (takes precedence over NOTION_ROOT_PAGE)",
    )
    parser.add_argument(
        "--vault",
        help="Override vault directory (takes precedence over NOTION_VAULT_PATH)",
    )
    parser.add_argument(
        "--log-file",
        default=DEFAULT_MCP_LOG_FILE,
        help=f"Log file path (default: {DEFAULT_MCP_LOG_FILE})",
    )
    parser.add_argument(
        "--read-only",
        action="store_true",
        help="Only expose tools that do not write to Notion",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"notion-mirror-mcp version {__version__}",
    )

    args = parser.parse_args()

    config_overrides: dict = {}
    if args.token:
        config_overrides["token"] = args.token
    if args.root_page:
        config_overrides["root_page"] = args.root_page
    if args.vault:
        config_overrides["vault_path"] = args.vault
    if args.debug:
        config_overrides["debug"] = True
    if args.log_file:
        config_overrides["log_file"] = args.log_file
    if args.read_only:
        config_overrides["read_only"] = True

    try:
        asyncio.run(main(config_overrides=config_overrides))
    except RuntimeError:
        # Error already printed to stderr by lifespan manager
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
