"""
zero_crm/tools/toolkit.py
=========================

Dependency container for everything the MCP tools share.

Tool functions (in ``tool_definitions/``) receive one ``Toolkit`` through
``get_toolkit()`` in ``tool_definitions/registry.py``. Tests replace it with
a mock by patching ``get_toolkit`` in the tool module under test.
"""

import logging

from ..config import Config
from .api_client import ZeroAPIClient
from .error_handler import ErrorHandler
from .session import WorkspaceSession

logger = logging.getLogger(__name__)


class Toolkit:
    """Wires the API client, workspace session and error handler together.

    Attributes
    ----------
    config:
        Application configuration.
    client:
        Lazily connected ``ZeroAPIClient``.
    session:
        Workspace id and stage-name cache for this process.
    error_handler:
        Stateless error classification and formatting utility.
    """

    def __init__(self, config: Config):
        self.config = config
        self.client = ZeroAPIClient(config)
        self.session = WorkspaceSession(self.client, preferred_workspace=config.workspace_name)
        self.error_handler = ErrorHandler()
        logger.debug("Toolkit initialised for %s", config.api_url)
