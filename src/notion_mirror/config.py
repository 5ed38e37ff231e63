"""Runtime configuration for the mirror engine.

Reads Notion connection and sync settings from CLI args, environment
variables, .env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    NOTION_TOKEN: Notion integration token (required)
    NOTION_ROOT_PAGE: Root page id or URL under which the vault is mirrored (required)
    NOTION_VAULT_PATH: Local vault directory (required)
    NOTION_EXCLUDE_FOLDERS: Comma-separated vault folders to skip (optional)
    NOTION_STATE_DIR: Directory for sync_state.json (optional, default: <vault>/.notion_mirror)
    NOTION_BATCH_SIZE: Blocks per append request (optional, default: 30)
    NOTION_MAX_BLOCK_CHARS: Per-block character limit (optional, default: 2000)
    NOTION_DEBUG: Enable debug logging (optional, default: false)
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from .validators import normalize_page_id

logger = logging.getLogger(__name__)

DEFAULT_NOTION_VERSION = "2022-06-28"
STATE_DIR_NAME = ".notion_mirror"


@dataclass
class Config:
    token: str
    root_page_id: str
    vault_path: str
    exclude_folders: list[str] = field(default_factory=list)
    state_dir: str = ""
    batch_size: int = 30
    max_block_chars: int = 2000
    request_delay: float = 0.2
    max_attempts: int = 3
    initial_backoff: float = 0.5
    # Pages parented by a page only accept a title property; Notion rejects
    # frontmatter properties there and the create is retried without them.
    sync_frontmatter_properties: bool = False
    notion_version: str = DEFAULT_NOTION_VERSION
    debug: bool = False


def parse_folder_list(raw: str | list[str] | None) -> list[str]:
    """Normalise an exclusion list given as CSV text or a YAML list.

    Entries are trimmed, use forward slashes, and lose leading/trailing
    slashes; empty entries are dropped.
    """
    if raw is None:
        return []
    items = raw.split(",") if isinstance(raw, str) else list(raw)
    folders = []
    for item in items:
        folder = str(item).strip().replace("\\", "/").strip("/")
        if folder:
            folders.append(folder)
    return folders


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Normalises the root page id and fills in the default state directory.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the token is empty, the root page id is malformed,
            the vault is not a directory, or a numeric limit is out of range.
    """
    config.token = config.token.strip()
    if not config.token:
        raise ValueError(
            "Notion token cannot be empty. Set NOTION_TOKEN environment variable."
        )

    config.root_page_id = normalize_page_id(config.root_page_id)

    vault = Path(config.vault_path).expanduser()
    if not vault.is_dir():
        raise ValueError(
            f"Invalid vault path '{config.vault_path}': not a directory"
        )
    config.vault_path = str(vault)

    if not config.state_dir:
        config.state_dir = str(vault / STATE_DIR_NAME)

    if not (1 <= config.batch_size <= 100):
        raise ValueError(
            f"Invalid batch size {config.batch_size}: must be between 1 and 100"
        )
    if not (100 <= config.max_block_chars <= 2000):
        raise ValueError(
            f"Invalid max block chars {config.max_block_chars}: must be between 100 and 2000"
        )
    if config.max_attempts < 1:
        raise ValueError(
            f"Invalid max attempts {config.max_attempts}: must be at least 1"
        )


def _get_int_env(key: str, low: int, high: int) -> int | None:
    raw = os.getenv(key)
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(
            f"Invalid {key} '{raw}': must be a number between {low} and {high}"
        ) from None
    if not (low <= value <= high):
        raise ValueError(
            f"Invalid {key} '{raw}': must be a number between {low} and {high}"
        )
    return value


def load_config(
    token: str | None = None,
    root_page: str | None = None,
    vault_path: str | None = None,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        token: Override integration token.
        root_page: Override root page (id, dashed UUID or notion.so URL).
        vault_path: Override vault directory.
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Flat dict of values from the YAML ``notion`` and
            ``sync`` sections. Used when CLI arg and env var are unset.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If required config (token, root page, vault) is missing
            after checking all sources, or a value is invalid.
    """
    fb = yaml_fallbacks or {}

    # --- Required string fields: CLI > env > YAML > error ---

    final_token = token or os.getenv("NOTION_TOKEN") or fb.get("token")
    if not final_token:
        raise ValueError(
            "Notion token not found. Set NOTION_TOKEN environment variable, "
            "pass --token CLI argument, or add 'token' to config.yml."
        )

    final_root = (
        root_page or os.getenv("NOTION_ROOT_PAGE") or fb.get("root_page")
    )
    if not final_root:
        raise ValueError(
            "Notion root page not found. Set NOTION_ROOT_PAGE environment variable, "
            "pass --root-page CLI argument, or add 'root_page' to config.yml."
        )

    final_vault = (
        vault_path or os.getenv("NOTION_VAULT_PATH") or fb.get("vault_path")
    )
    if not final_vault:
        raise ValueError(
            "Vault path not found. Set NOTION_VAULT_PATH environment variable, "
            "pass --vault CLI argument, or add 'vault_path' to config.yml."
        )

    # --- Optional fields: env > YAML > default ---

    env_exclude = os.getenv("NOTION_EXCLUDE_FOLDERS")
    exclude = parse_folder_list(
        env_exclude if env_exclude is not None else fb.get("exclude_folders")
    )

    state_dir = os.getenv("NOTION_STATE_DIR") or fb.get("state_dir") or ""

    if debug:
        final_debug = True
    else:
        env_debug = os.getenv("NOTION_DEBUG")
        if env_debug is not None:
            final_debug = env_debug.lower() in ("true", "1", "yes", "on")
        else:
            final_debug = bool(fb.get("debug", False))

    batch_size = _get_int_env("NOTION_BATCH_SIZE", 1, 100)
    if batch_size is None:
        batch_size = int(fb.get("batch_size", 30))

    max_block_chars = _get_int_env("NOTION_MAX_BLOCK_CHARS", 100, 2000)
    if max_block_chars is None:
        max_block_chars = int(fb.get("max_block_chars", 2000))

    config = Config(
        token=final_token,
        root_page_id=final_root,
        vault_path=final_vault,
        exclude_folders=exclude,
        state_dir=state_dir,
        batch_size=batch_size,
        max_block_chars=max_block_chars,
        request_delay=float(fb.get("request_delay", 0.2)),
        max_attempts=int(fb.get("max_attempts", 3)),
        initial_backoff=float(fb.get("initial_backoff", 0.5)),
        sync_frontmatter_properties=bool(
            fb.get("sync_frontmatter_properties", False)
        ),
        notion_version=fb.get("notion_version") or DEFAULT_NOTION_VERSION,
        debug=final_debug,
    )

    validate_config(config)

    return config


def load_layered_config(
    overrides: dict | None = None,
) -> tuple[Config, list[str]]:
    """Resolve the runtime config from every source.

    Loads ``.env`` first so YAML ``${VAR}`` interpolation and env lookups
    see its values, then applies YAML fallbacks, env vars and CLI
    *overrides* (keys: token, root_page, vault_path, debug).

    Returns:
        ``(config, sources)`` where *sources* describes what contributed.

    Raises:
        ValueError: If required settings are missing or invalid.
    """
    from dotenv import load_dotenv

    from .config_loader import discover_config_files, load_hierarchical_config
    from .config_schema import build_config, yaml_fallbacks

    load_dotenv()

    sources: list[str] = []
    fallbacks: dict | None = None
    config_files = discover_config_files()
    if config_files:
        fallbacks = yaml_fallbacks(build_config(load_hierarchical_config()))
        sources.append(f"config file: {config_files[0]}")

    overrides = overrides or {}
    config = load_config(
        token=overrides.get("token"),
        root_page=overrides.get("root_page"),
        vault_path=overrides.get("vault_path"),
        debug=overrides.get("debug", False),
        yaml_fallbacks=fallbacks,
    )

    if any(v for v in overrides.values()):
        sources.append("CLI arguments")
    sources.append("environment variables")
    return config, sources
