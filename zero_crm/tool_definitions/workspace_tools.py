"""
zero_crm/tool_definitions/workspace_tools.py
============================================

Workspace selection and pipeline stage listing.

Switching workspace clears the cached stage names so the next stage lookup
reloads them for the new workspace.
"""

import logging
from typing import Annotated

from pydantic import Field

from .registry import get_toolkit, register
from ..tools.filters import ListQuery
from ..tools.formatters import format_as_table

logger = logging.getLogger(__name__)


async def zero_get_workspace() -> str:
    """Show the workspace all other tools currently operate on."""
    toolkit = get_toolkit()
    try:
        workspace_id = await toolkit.session.ensure_workspace()
        workspaces = await toolkit.client.list_workspaces()
        current = next((w for w in workspaces if w.id == workspace_id), None)
        name = current.name if current else "Unknown"
        return f"## Current Workspace\n\n- **Name:** {name}\n- **ID:** {workspace_id}"
    except Exception as e:
        logger.error("zero_get_workspace failed: %s", e)
        error_type, message, suggestions = toolkit.error_handler.handle_api_error(e)
        return toolkit.error_handler.format_error_response(
            e, error_type, message, suggestions, operation="getting workspace"
        )


async def zero_list_workspaces() -> str:
    """List every workspace the API key can access, marking the active one."""
    toolkit = get_toolkit()
    try:
        workspaces = await toolkit.client.list_workspaces()
        if not workspaces:
            return "No workspaces found."
        current_id = toolkit.session.workspace_id
        rows = [
            {
                "name": workspace.name,
                "id": workspace.id,
                "active": "✓" if workspace.id == current_id else "",
            }
            for workspace in workspaces
        ]
        return f"## Workspaces ({len(workspaces)})\n\n" + format_as_table(rows)
    except Exception as e:
        logger.error("zero_list_workspaces failed: %s", e)
        error_type, message, suggestions = toolkit.error_handler.handle_api_error(e)
        return toolkit.error_handler.format_error_response(
            e, error_type, message, suggestions, operation="listing workspaces"
        )


async def zero_switch_workspace(
    name: Annotated[str, Field(description="Workspace name (case-insensitive)")],
) -> str:
    """Switch the active workspace by name. Cached pipeline stages are reloaded afterwards."""
    toolkit = get_toolkit()
    try:
        workspace = await toolkit.session.switch_workspace(name)
        return f"Switched to workspace **{workspace.name}** ({workspace.id})."
    except Exception as e:
        logger.error("zero_switch_workspace failed: %s", e)
        error_type, message, suggestions = toolkit.error_handler.handle_api_error(e)
        return toolkit.error_handler.format_error_response(
            e, error_type, message, suggestions, operation="switching workspace"
        )


async def zero_list_pipeline_stages() -> str:
    """List the deal pipeline stages of the active workspace.

    Deals store their stage as an id; use these ids in deal filters such as
    ``{"stage": "<stage id>"}``.
    """
    toolkit = get_toolkit()
    try:
        workspace_id = await toolkit.session.ensure_workspace()
        page = await toolkit.client.list_records(
            "pipelineStages",
            ListQuery(workspace_id=workspace_id, limit=500),
        )
        if not page.data:
            return "No pipeline stages found."
        toolkit.session.remember_stage_names(page.data)
        stages = sorted(page.data, key=lambda stage: stage.get("position") or 0)
        rows = [{"name": stage.name, "id": stage.id} for stage in stages]
        return f"## Pipeline Stages ({len(rows)})\n\n" + format_as_table(rows)
    except Exception as e:
        logger.error("zero_list_pipeline_stages failed: %s", e)
        error_type, message, suggestions = toolkit.error_handler.handle_api_error(e)
        return toolkit.error_handler.format_error_response(
            e, error_type, message, suggestions, operation="listing pipeline stages"
        )


register(zero_get_workspace, zero_list_workspaces, zero_switch_workspace, zero_list_pipeline_stages)
