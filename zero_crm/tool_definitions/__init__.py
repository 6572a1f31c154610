"""
zero_crm/tool_definitions
=========================

Every MCP tool the server exposes.

- ``workspace_tools.py``  : active workspace, workspace switching, pipeline stages
- ``record_tools.py``     : generic list/get/create/update/delete, contact resolution
- ``calendar_tools.py``   : calendar events with de-duplication and relations
- ``active_deal_tools.py``: deals ranked by recent cross-source activity
"""

from .registry import mcp  # noqa: F401
