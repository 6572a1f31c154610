"""
zero_crm/tool_definitions/registry.py
=====================================

Single ``FastMCP`` server instance shared across all tool definition modules,
plus the lazily created ``Toolkit`` every tool uses.

Tool modules define plain ``async`` functions and hand them to ``register``.
FastMCP builds each tool's JSON Schema from the function signature
(``Annotated[..., Field(description=...)]``) and docstring, while the module
keeps the plain function so it can be awaited directly.
"""

from typing import Callable

from fastmcp import FastMCP

from ..config import Config
from ..tools.toolkit import Toolkit

mcp = FastMCP("Zero CRM")

_toolkit: Toolkit | None = None


def get_toolkit() -> Toolkit:
    """Return the shared Toolkit instance, creating it on first call."""
    global _toolkit
    if _toolkit is None:
        _toolkit = Toolkit(Config.from_env())
    return _toolkit


def register(*tools: Callable) -> None:
    for tool in tools:
        mcp.tool()(tool)


# Importing the tool modules runs their register() calls
from . import workspace_tools     # noqa: E402, F401
from . import record_tools        # noqa: E402, F401
from . import calendar_tools      # noqa: E402, F401
from . import active_deal_tools   # noqa: E402, F401
