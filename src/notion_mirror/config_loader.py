"""
YAML config file discovery and loading for notion_mirror.

Config files are optional.  When present they supply fallback values for
everything the environment and CLI do not set.  Supports ``!include`` for
splitting secrets out of the main file, ``${VAR}``/``${VAR:-default}``
interpolation, and a "project wins" shallow merge across discovered files.

Usage:
    from notion_mirror.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "NOTION_MIRROR_CONFIG"
PROJECT_CONFIG_DIR = ".notion_mirror"

# ---------------------------------------------------------------------------
# 1. Env var interpolation
# ---------------------------------------------------------------------------

# ${VAR} or ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def _env_substitution(match: re.Match) -> str:
    value = os.environ.get(match.group(1))
    if value:
        return value
    return match.group(2) or ""


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` references in *value*.

    An unset or empty variable yields its default, or ``""`` without one.
    A ``${`` with no closing brace is left as-is.
    """
    return _ENV_VAR_PATTERN.sub(_env_substitution, value)


def _interpolate_recursive(obj: Any) -> Any:
    match obj:
        case str():
            return interpolate_env_vars(obj)
        case dict():
            return {k: _interpolate_recursive(v) for k, v in obj.items()}
        case list():
            return [_interpolate_recursive(item) for item in obj]
        case _:
            return obj


# ---------------------------------------------------------------------------
# 2. YAML !include support
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """SafeLoader with an ``!include`` tag.

    A subclass keeps the tag off the global ``yaml.SafeLoader``.  Each
    loader carries the chain of files being loaded so include cycles can
    be reported instead of recursing forever.
    """

    include_chain: tuple[Path, ...] = ()


def _include_constructor(loader: ConfigLoader, node: yaml.ScalarNode) -> Any:
    """Load the file named by ``!include <path>`` relative to the includer."""
    target = Path(loader.construct_scalar(node))
    including_file = Path(loader.name).resolve()
    if not target.is_absolute():
        target = including_file.parent / target
    target = target.resolve()

    if target in loader.include_chain:
        chain = " -> ".join(str(p) for p in (*loader.include_chain, target))
        raise ValueError(f"Circular include detected: {chain}")
    if not target.exists():
        raise FileNotFoundError(
            f"Include file not found: {target} (referenced from {including_file})"
        )

    return load_yaml_file(target, include_chain=(*loader.include_chain, target))


ConfigLoader.add_constructor("!include", _include_constructor)


def load_yaml_file(
    path: Path, *, include_chain: tuple[Path, ...] | None = None
) -> Any:
    """Parse one YAML file with ``!include`` support."""
    path = path.resolve()
    with open(path, "r", encoding="utf-8") as fh:
        loader = ConfigLoader(fh)
        loader.include_chain = include_chain or (path,)
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# 3. Discovery and bootstrapping
# ---------------------------------------------------------------------------


def discover_config_files() -> list[Path]:
    """Return existing config files, highest precedence first.

    Search order:
        1. ``NOTION_MIRROR_CONFIG`` env var (explicit path)
        2. ``.notion_mirror/config.yml`` in CWD
        3. ``.notion_mirror/config.yaml`` in CWD
        4. ``~/.config/notion_mirror/config.yml``
    """
    candidates: list[Path] = []

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        candidates.append(Path(env_path).expanduser().resolve())

    project_dir = Path.cwd() / PROJECT_CONFIG_DIR
    candidates.append(project_dir / "config.yml")
    candidates.append(project_dir / "config.yaml")
    candidates.append(Path.home() / ".config" / "notion_mirror" / "config.yml")

    return [p for p in candidates if p.exists()]


_STARTER_CONFIG = """\
# notion-mirror configuration
#
# Every setting can also come from the environment:
#   NOTION_TOKEN, NOTION_ROOT_PAGE, NOTION_VAULT_PATH,
#   NOTION_EXCLUDE_FOLDERS, NOTION_STATE_DIR, NOTION_BATCH_SIZE
#
# notion:
#   token: ${NOTION_TOKEN}
#   root_page: https://www.notion.so/My-Vault-0123456789abcdef0123456789abcdef
#   notion_version: "2022-06-28"
#
# sync:
#   vault_path: ~/Documents/Vault
#   exclude_folders:
#     - Templates
#     - Archive/Old
#   batch_size: 30
#   max_block_chars: 2000
#   request_delay: 0.2
#   # Pages under a page parent only accept a title property
#   sync_frontmatter_properties: false
#
# logging:
#   level: INFO
#   file: null
"""


def resolve_config_path() -> Path:
    """Return the active config file, or the project default if none exists."""
    existing = discover_config_files()
    if existing:
        return existing[0]
    return Path.cwd() / PROJECT_CONFIG_DIR / "config.yml"


def ensure_config(target: Path | None = None) -> Path:
    """Return the active config file, writing a commented starter if needed.

    Args:
        target: Where to create the starter file. Defaults to
            ``resolve_config_path()``.

    Returns:
        Path to the existing or newly created config file.
    """
    existing = discover_config_files()
    if existing:
        logger.debug("Config file already exists: %s", existing[0])
        return existing[0]

    config_path = target or resolve_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", config_path)
    return config_path


# ---------------------------------------------------------------------------
# 4. Hierarchical merge
# ---------------------------------------------------------------------------


def load_hierarchical_config() -> dict[str, Any]:
    """Load and merge all discovered config files.

    Files are applied from lowest precedence to highest; a higher file's
    top-level section replaces the same section from a lower one.  Env var
    interpolation runs on the merged result.

    Returns an empty dict when no config files exist.
    """
    paths = discover_config_files()
    if not paths:
        logger.debug("No config files found, using defaults")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading config: %s", path)
        try:
            data = load_yaml_file(path)
        except Exception:
            logger.exception("Failed to load config file %s", path)
            raise

        if isinstance(data, dict):
            merged.update(data)
        elif data is not None:
            logger.warning(
                "Config file %s has non-dict root (%s), skipping",
                path,
                type(data).__name__,
            )

    return _interpolate_recursive(merged)
