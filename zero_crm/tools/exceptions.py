"""
zero_crm/tools/exceptions.py
============================

Exception types raised by the Zero API client and the workspace session.

``ZeroAPIError`` carries the HTTP status and a coarse ``error_type`` so that
``ErrorHandler`` can map it to a user-facing message without parsing strings.
"""

from typing import List, Optional


class ZeroError(Exception):
    """Base class for every error raised by this package."""


class ZeroAPIError(ZeroError):
    """A request to the Zero API failed.

    Parameters
    ----------
    message:
        Short, already sanitised description.
    status_code:
        HTTP status, or ``None`` for transport failures (timeouts, DNS, ...).
    error_type:
        Coarse category (``"AuthenticationError"``, ``"NotFound"``, ...).
    detail:
        Message reported by the backend, if any.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_type: str = "RequestFailed",
        detail: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_type = error_type
        self.detail = detail


class NoWorkspacesError(ZeroError):
    """The API key has access to no workspace at all."""

    def __init__(self):
        super().__init__("No workspaces found for this API key")


class WorkspaceNotFoundError(ZeroError):
    """No workspace matches the requested name."""

    def __init__(self, name: str, available: List[str]):
        self.name = name
        self.available = available
        listed = ", ".join(available) if available else "none"
        super().__init__(f'Workspace "{name}" not found. Available workspaces: {listed}')
