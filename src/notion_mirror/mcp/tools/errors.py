"""Error response builders for MCP tool handlers.

Responses carry a corrective action so an agent can recover from the
error without human intervention.
"""

import mcp.types as types

from ...core.client import NotionAPIError


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_found, unauthorized, rate_limited,
            busy, validation_error, server_error)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("busy", "A sync pass is already running", "Wait for it to finish.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


def translate_notion_error(error: NotionAPIError) -> types.CallToolResult:
    """Translate a Notion API error into a structured error response."""
    match error.status:
        case 401:
            return build_error_response(
                "unauthorized",
                error.message,
                "Check NOTION_TOKEN; the integration token may be revoked or mistyped.",
            )
        case 403 | 404:
            return build_error_response(
                "not_found",
                error.message,
                "Share the root page with the integration (page menu > Connections) "
                "and check NOTION_ROOT_PAGE.",
            )
        case 429:
            return build_error_response(
                "rate_limited",
                error.message,
                "Wait a minute, then retry.",
            )
        case 400 | 409:
            return build_error_response(
                "validation_error",
                error.message,
                "The request was rejected by Notion; retry with mirror_sync.",
            )
        case _:
            return build_error_response(
                "server_error",
                error.message,
                "Notion is having trouble; retry later.",
            )
