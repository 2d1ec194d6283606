"""Error response builders for MCP tool handlers.

This module provides structured error responses with corrective actions
to help AI agents recover from errors without human intervention.
"""

import mcp.types as types


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_found, busy, validation_error, io_error, server_error)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("not_found", "Note 12 is not under sync", "Use note_sync_status to list synced notes.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


# ---------------------------------------------------------------------------
# Corrective action messages
# ---------------------------------------------------------------------------

CORRECTIVE_ACTIONS: dict[str, str] = {
    "not_found": "Use note_sync_status to list the notes under sync.",
    "busy": "A sync run is in progress. Retry in a few seconds.",
    "validation": "Check parameter values and retry.",
    "io": "Check that the Markdown directory and the note library are accessible, then retry.",
    "server": "Check the server log file for details or retry later.",
}


def translate_exception(error: Exception) -> types.CallToolResult:
    """Translate an exception raised by a tool handler to an error response.

    Args:
        error: Exception raised while handling a tool call

    Returns:
        CallToolResult with isError=True and corrective action
    """
    match error:
        case KeyError():
            message = error.args[0] if error.args else str(error)
            return build_error_response(
                "not_found", str(message), CORRECTIVE_ACTIONS["not_found"]
            )
        case ValueError():
            return build_error_response(
                "validation_error", str(error), CORRECTIVE_ACTIONS["validation"]
            )
        case OSError():
            return build_error_response(
                "io_error", str(error), CORRECTIVE_ACTIONS["io"]
            )
        case _:
            return build_error_response(
                "server_error", str(error), CORRECTIVE_ACTIONS["server"]
            )
