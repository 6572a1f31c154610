"""
zero_crm/tools
==============

Internal building blocks used by the MCP tool functions in
``tool_definitions/``. Nothing here is exposed to the client directly.

Modules
-------
- ``api_client.py``   : async HTTP client for the Zero REST API.
- ``filters.py``      : ``$between`` normalisation and query encoding.
- ``models.py``       : ``Record`` / ``ListPage`` models.
- ``session.py``      : workspace id and pipeline stage name cache.
- ``relations.py``    : inline vs. fallback loading of related records.
- ``pagination.py``   : bounded fetch-all.
- ``dedup.py``        : merging of duplicate calendar events.
- ``enrichment.py``   : bulk company name/location lookup.
- ``correlation.py``  : cross-source activity → deals.
- ``error_handler.py``: user-facing error messages.
- ``formatters.py``   : Markdown output helpers.
- ``toolkit.py``      : dependency container passed to every tool.
"""

from .toolkit import Toolkit  # noqa: F401
from .formatters import format_as_table  # noqa: F401
