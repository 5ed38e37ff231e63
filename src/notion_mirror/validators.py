"""
Input validation and normalisation helpers for Notion identifiers.

Root page ids reach the tool from config files, environment variables and
CLI flags in several shapes: bare 32-char hex ids, dashed UUIDs, or full
``notion.so`` URLs copied from the browser.
"""

import re

_HEX_ID_PATTERN = re.compile(
    r"[0-9a-fA-F]{8}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{4}-?"
    r"[0-9a-fA-F]{4}-?[0-9a-fA-F]{12}"
)
_NOTION_URL_PATTERN = re.compile(
    r"notion\.(?:so|site)/(?:[^/?#]+/)?([^/?#]+)"
)

NOTION_PAGE_URL = "https://www.notion.so/"


# ---------------------------------------------------------------------------
# Error message formatting helpers
# ---------------------------------------------------------------------------


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Root page id")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def extract_page_id_from_url(url: str) -> str | None:
    """
    Extract the page id from a Notion page URL.

    Notion URLs end in a slug that carries the id as its last 32 hex
    characters, e.g. ``https://www.notion.so/acme/Team-Notes-0123...cdef``.

    Returns:
        The undashed 32-char id, or None if the URL carries no id.
    """
    match = _NOTION_URL_PATTERN.search(url)
    if not match:
        return None
    slug = match.group(1)
    ids = _HEX_ID_PATTERN.findall(slug)
    if not ids:
        return None
    return ids[-1].replace("-", "").lower()


def normalize_page_id(value: str) -> str:
    """
    Normalise a Notion page id or URL to the dashed UUID form.

    Args:
        value: Raw id, dashed UUID, or notion.so URL.

    Returns:
        Dashed lowercase UUID (8-4-4-4-12).

    Raises:
        ValueError: If no 32-char hex id can be found in *value*.
    """
    if not value or not value.strip():
        raise ValueError(
            format_validation_error("Root page id", "cannot be empty")
        )

    raw = value.strip()
    if "notion." in raw:
        page_id = extract_page_id_from_url(raw)
    else:
        match = _HEX_ID_PATTERN.fullmatch(raw)
        page_id = match.group(0).replace("-", "").lower() if match else None

    if page_id is None:
        raise ValueError(
            format_validation_error(
                "Root page id",
                f"'{value}' is not a Notion page id or page URL",
            )
        )

    return (
        f"{page_id[0:8]}-{page_id[8:12]}-{page_id[12:16]}-"
        f"{page_id[16:20]}-{page_id[20:32]}"
    )


def page_url(node_id: str) -> str:
    """Return the browser URL for a Notion page id."""
    return NOTION_PAGE_URL + node_id.replace("-", "")
