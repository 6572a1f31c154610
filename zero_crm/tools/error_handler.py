"""
zero_crm/tools/error_handler.py
===============================

User-friendly, actionable error handling for Zero API failures.

Design Strategy
---------------
``ZeroAPIClient`` raises ``ZeroAPIError`` with the HTTP status attached.
``ErrorHandler`` maps that status onto a fixed taxonomy and returns:

1. A user-friendly ``message`` (what went wrong in plain English).
2. Concrete ``suggestions`` (what the user or agent should do next).

Backend validation messages (422) are passed through, truncated to 200
characters. Unrecognised exceptions become a generic message without
internal details.
"""

from typing import Dict, List, Optional, Tuple

from .exceptions import NoWorkspacesError, WorkspaceNotFoundError, ZeroAPIError

MAX_DETAIL_LENGTH = 200


class ErrorHandler:
    """Translates raw exceptions into user-friendly messages with suggestions.

    Attributes
    ----------
    STATUS_ERRORS:
        Map of HTTP status → ``{type, message, suggestions}``.
    """

    STATUS_ERRORS: Dict[int, dict] = {
        401: {
            "type": "AuthenticationError",
            "message": "The Zero API rejected the API key.",
            "suggestions": [
                "Check ZERO_API_KEY in your .env file",
                "Make sure the key has not been revoked",
            ],
        },
        403: {
            "type": "AccessDenied",
            "message": "The API key is not allowed to access this resource.",
            "suggestions": [
                "Verify the key belongs to the selected workspace",
                "Use zero_list_workspaces to see which workspaces are available",
            ],
        },
        404: {
            "type": "NotFound",
            "message": "The requested record was not found.",
            "suggestions": [
                "Check the record ID",
                "The record may have been deleted or archived",
            ],
        },
        422: {
            "type": "ValidationError",
            "message": "The request was rejected as invalid.",
            "suggestions": [
                "Check field names and filter operators",
                "Dates must be ISO-8601 strings",
            ],
        },
        429: {
            "type": "RateLimited",
            "message": "Too many requests were sent to the Zero API.",
            "suggestions": [
                "Wait a moment before trying again",
                "Narrow the query or lower the limit",
            ],
        },
    }

    SERVER_ERROR: dict = {
        "type": "ServerError",
        "message": "The Zero API had an internal problem.",
        "suggestions": ["Try the operation again in a few minutes"],
    }

    REQUEST_FAILED: dict = {
        "type": "RequestFailed",
        "message": "The request to the Zero API failed.",
        "suggestions": [
            "Check ZERO_API_URL and your network connection",
            "Try the operation again",
        ],
    }

    @staticmethod
    def classify_status(status_code: Optional[int]) -> dict:
        """Return the taxonomy entry for an HTTP status (``None`` = transport failure)."""
        if status_code in ErrorHandler.STATUS_ERRORS:
            return ErrorHandler.STATUS_ERRORS[status_code]
        if status_code is not None and status_code >= 500:
            return ErrorHandler.SERVER_ERROR
        return ErrorHandler.REQUEST_FAILED

    @staticmethod
    def handle_api_error(error: Exception) -> Tuple[str, str, List[str]]:
        """Match an exception to a known error category.

        Returns
        -------
        Tuple[str, str, List[str]]
            ``(error_type, user_message, suggestions)``
        """
        if isinstance(error, ZeroAPIError):
            info = ErrorHandler.classify_status(error.status_code)
            message = info["message"]
            if error.status_code == 422 and error.detail:
                message = f"{message} {error.detail[:MAX_DETAIL_LENGTH]}"
            return info["type"], message, info["suggestions"]

        if isinstance(error, WorkspaceNotFoundError):
            return (
                "WorkspaceNotFound",
                str(error),
                ["Use zero_list_workspaces to see the exact workspace names"],
            )

        if isinstance(error, NoWorkspacesError):
            return (
                "NoWorkspaces",
                str(error),
                ["Create a workspace in Zero or use a key from an existing one"],
            )

        if isinstance(error, ValueError):
            return "InvalidInput", str(error), ["Check the tool arguments"]

        return (
            "UnexpectedError",
            "An error occurred while processing your request.",
            ["Try the operation again", "Check the server logs for details"],
        )

    @staticmethod
    def format_error_response(
        error: Exception,
        error_type: str,
        message: str,
        suggestions: List[str],
        operation: Optional[str] = None,
    ) -> str:
        """Render a user-facing error response string.

        Parameters
        ----------
        error:
            Original exception. Only ``ZeroAPIError`` messages, which are
            sanitised at the source, are shown as technical details.
        error_type:
            Short error category label.
        message:
            User-friendly description of what went wrong.
        suggestions:
            Ordered list of things to try.
        operation:
            Optional description of what was attempted (``"listing records"``).
        """
        response = f"❌ **{error_type}**\n\n"
        if operation:
            response += f"Error {operation}: "
        response += f"{message}\n\n"

        response += "**💡 Suggestions:**\n"
        for i, suggestion in enumerate(suggestions, 1):
            response += f"{i}. {suggestion}\n"

        if isinstance(error, ZeroAPIError):
            response += f"\n**Technical Details:**\n{error}"
        return response
