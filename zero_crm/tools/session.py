"""
zero_crm/tools/session.py
=========================

Per-process reference data that nearly every tool needs: the active
workspace id and the pipeline stage id → name map.

Both are filled lazily on first use and replaced together when the
workspace changes. Concurrent first reads may fetch the same data more than
once; whichever response lands last wins, which is harmless because the data
is identical.
"""

import logging
from typing import Dict, List, Optional

from .api_client import ZeroAPIClient
from .exceptions import NoWorkspacesError, WorkspaceNotFoundError
from .filters import ListQuery
from .models import Record

logger = logging.getLogger(__name__)

STAGE_FETCH_LIMIT = 500


class WorkspaceSession:
    """Holds the workspace id and stage-name cache for one API key."""

    def __init__(self, client: ZeroAPIClient, preferred_workspace: Optional[str] = None):
        self.client = client
        self.preferred_workspace = preferred_workspace
        self.workspace_id: Optional[str] = None
        self._stage_names: Optional[Dict[str, str]] = None

    async def ensure_workspace(self) -> str:
        """Return the active workspace id, choosing one on first call.

        The workspace named by ``ZERO_WORKSPACE_NAME`` wins when present,
        otherwise the first workspace the key can see.
        """
        if self.workspace_id:
            return self.workspace_id

        workspaces = await self.client.list_workspaces()
        if not workspaces:
            raise NoWorkspacesError()

        chosen = workspaces[0]
        if self.preferred_workspace:
            wanted = self.preferred_workspace.strip().lower()
            for workspace in workspaces:
                if (workspace.name or "").strip().lower() == wanted:
                    chosen = workspace
                    break
            else:
                logger.warning(
                    "Workspace %r not found, using %r", self.preferred_workspace, chosen.name
                )

        self.set_workspace(chosen.id)
        logger.info("Using workspace %s (%s)", chosen.name, chosen.id)
        return chosen.id

    def set_workspace(self, workspace_id: str) -> None:
        """Make ``workspace_id`` current and drop workspace-scoped caches."""
        self.workspace_id = workspace_id
        self._stage_names = None

    async def switch_workspace(self, name: str) -> Record:
        """Switch to the workspace called ``name`` (case-insensitive)."""
        workspaces = await self.client.list_workspaces()
        wanted = name.strip().lower()
        for workspace in workspaces:
            if (workspace.name or "").strip().lower() == wanted:
                self.set_workspace(workspace.id)
                logger.info("Switched to workspace %s (%s)", workspace.name, workspace.id)
                return workspace
        raise WorkspaceNotFoundError(name, [w.name for w in workspaces if w.name])

    def remember_stage_names(self, stages: List[Record]) -> None:
        """Prime the stage cache from an already fetched stage list."""
        self._stage_names = {stage.id: stage.name or stage.id for stage in stages if stage.id}

    async def resolve_stage_name(self, stage_id: Optional[str]) -> str:
        """Return the display name for ``stage_id``.

        Falls back to the id itself when the stage is unknown or the lookup
        fails; never raises.
        """
        if not stage_id:
            return "N/A"

        if self._stage_names is None:
            try:
                workspace_id = await self.ensure_workspace()
                page = await self.client.list_records(
                    "pipelineStages",
                    ListQuery(workspace_id=workspace_id, fields="id,name", limit=STAGE_FETCH_LIMIT),
                )
            except Exception as e:
                logger.warning("Could not load pipeline stages: %s", e)
                return stage_id
            self.remember_stage_names(page.data)
            logger.info("Cached %d pipeline stage names", len(self._stage_names))

        return self._stage_names.get(stage_id, stage_id)
