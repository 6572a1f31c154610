"""
zero_crm
========

MCP server for the Zero CRM API.

Run it with ``python -m zero_crm`` (or the ``zero-crm-mcp`` script). The
FastMCP server instance lives in ``zero_crm.tool_definitions.registry``::

    from zero_crm.tool_definitions import mcp
"""

__version__ = "0.3.0"
