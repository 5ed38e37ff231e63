"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from ..config import load_layered_config
from ..core.async_utils import run_sync
from ..core.client import NotionClient
from ..sync.engine import SyncEngine
from ..vault import FileSystemVault
from .context import ServerContext

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[ServerContext]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Resolve config: CLI > env vars (.env loaded first) > YAML > defaults
    - Create NotionClient and verify the token
    - Build the SyncEngine (loads persisted state once for the server's lifetime)

    Args:
        config_overrides: Optional dict with config values from CLI
            (token, root_page, vault_path, debug)

    Yields:
        ServerContext shared by all tool handlers

    Raises:
        RuntimeError: If configuration is invalid or Notion is unreachable.
    """
    logger.info("MCP server starting...")
    _stderr_print("Notion Mirror MCP Server starting...")

    try:
        config, sources = load_layered_config(config_overrides)
        source_desc = ", ".join(sources)
        logger.info("Configuration loaded from: %s", source_desc)
        _stderr_print(f"  Configuration loaded from: {source_desc}")
        logger.info("Vault: %s", config.vault_path)
        _stderr_print(f"  Vault: {config.vault_path}")
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        _stderr_print(
            "  Ensure NOTION_TOKEN, NOTION_ROOT_PAGE, NOTION_VAULT_PATH are set."
        )
        raise RuntimeError(
            f"Configuration error: {e}. Ensure NOTION_TOKEN, NOTION_ROOT_PAGE, NOTION_VAULT_PATH are set."
        ) from e

    logger.info("Validating Notion connection...")
    _stderr_print("  Validating Notion connection...")
    try:
        client = NotionClient(config)
        bot_name = await run_sync(client.verify_connection)
        logger.info("Connected to Notion as %s", bot_name)
        _stderr_print(f"  Connected to Notion as {bot_name}")
    except Exception as e:
        logger.error("Failed to connect to Notion: %s", e)
        _stderr_print("ERROR: Notion connection failed.")
        _stderr_print(f"  {e}")
        _stderr_print("  Check NOTION_TOKEN.")
        raise RuntimeError(
            f"Notion connection failed: {e}. Check NOTION_TOKEN."
        ) from e

    engine = SyncEngine(client, FileSystemVault(config.vault_path), config)
    _stderr_print("Server ready. Waiting for MCP client connection...")

    yield ServerContext(client=client, engine=engine, config=config)

    logger.info("MCP server shutting down")
    _stderr_print("Notion Mirror MCP Server shutting down.")
