"""Unified configuration schema for notion_mirror.

Pydantic models for the YAML config file, one per top-level section
(``notion``, ``sync``, ``logging``), plus the adapter that turns a parsed
file into the runtime ``Config`` dataclass.

Usage:
    from notion_mirror.config_schema import build_config, to_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = to_config(unified, cli_overrides={"vault_path": "~/Vault"})
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from .config import Config

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class NotionConfig(BaseModel):
    """Notion connection settings.

    All fields are optional; env vars and CLI args can supply them instead.
    """

    token: str | None = Field(
        default=None, description="Notion integration token"
    )
    root_page: str | None = Field(
        default=None,
        description="Root page id or URL the vault is mirrored under",
    )
    notion_version: str = Field(
        default="2022-06-28", description="Notion-Version API header"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {"frozen": True}


class SyncConfig(BaseModel):
    """Vault location and sync tuning."""

    vault_path: str | None = Field(
        default=None, description="Local vault directory"
    )
    exclude_folders: list[str] = Field(
        default_factory=list,
        description="Vault folders skipped by the mirror (exact or prefix match)",
    )
    state_dir: str | None = Field(
        default=None, description="Directory holding sync_state.json"
    )
    batch_size: int = Field(
        default=30,
        ge=1,
        le=100,
        description="Blocks per append request (1-100)",
    )
    max_block_chars: int = Field(
        default=2000,
        ge=100,
        le=2000,
        description="Maximum characters per block (100-2000)",
    )
    request_delay: float = Field(
        default=0.2,
        ge=0,
        description="Seconds to wait between write requests",
    )
    max_attempts: int = Field(
        default=3, ge=1, le=10, description="Attempts per batch (1-10)"
    )
    initial_backoff: float = Field(
        default=0.5, ge=0, description="First retry delay in seconds"
    )
    sync_frontmatter_properties: bool = Field(
        default=False,
        description=(
            "Attach frontmatter key/value pairs as page properties on create. "
            "Pages under a page parent only accept a title, so Notion rejects "
            "them and the create is retried without them."
        ),
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


class UnifiedConfig(BaseModel):
    """Top-level configuration file model.

    Every section has defaults, so ``UnifiedConfig()`` is always valid.
    """

    notion: NotionConfig = Field(default_factory=NotionConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


def build_config(raw_data: dict) -> UnifiedConfig:
    """Validate the merged dict from ``load_hierarchical_config()``.

    Missing sections get defaults.
    """
    if not raw_data:
        return UnifiedConfig()
    return UnifiedConfig(**raw_data)


def yaml_fallbacks(unified: UnifiedConfig) -> dict[str, Any]:
    """Flatten the ``notion`` and ``sync`` sections for ``load_config()``.

    Unset (None) values are omitted so they do not mask defaults.
    """
    merged = {
        **unified.notion.model_dump(),
        **unified.sync.model_dump(),
    }
    return {k: v for k, v in merged.items() if v is not None}


def to_config(
    unified: UnifiedConfig,
    cli_overrides: dict | None = None,
) -> Config:
    """Build the runtime ``Config`` from a file model plus CLI overrides.

    Precedence: CLI override > config file value > built-in default.
    Override keys: token, root_page, vault_path, debug.

    The result is NOT validated; call ``validate_config()`` on it.
    """
    from .config import Config, parse_folder_list

    overrides = cli_overrides or {}
    notion = unified.notion
    sync = unified.sync

    return Config(
        token=overrides.get("token") or notion.token or "",
        root_page_id=overrides.get("root_page") or notion.root_page or "",
        vault_path=overrides.get("vault_path") or sync.vault_path or "",
        exclude_folders=parse_folder_list(sync.exclude_folders),
        state_dir=sync.state_dir or "",
        batch_size=sync.batch_size,
        max_block_chars=sync.max_block_chars,
        request_delay=sync.request_delay,
        max_attempts=sync.max_attempts,
        initial_backoff=sync.initial_backoff,
        sync_frontmatter_properties=sync.sync_frontmatter_properties,
        notion_version=notion.notion_version,
        debug=overrides.get("debug", False) or notion.debug,
    )
