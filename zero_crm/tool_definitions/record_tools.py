"""
zero_crm/tool_definitions/record_tools.py
=========================================

Generic record tools that work for every entity type, plus bulk contact
resolution.

``zero_list_records`` is the general query entry point. It combines the
query-layer pieces in the order they apply:

1. ``where`` ranges are rewritten to ``$between`` (``filters.normalize_where``).
2. ``include`` relations are loaded inline or, when the query is filtered or
   sorted, by follow-up bulk lookups (``relations.select_strategy``).
3. ``fetchAll`` pages through everything up to the safety cap
   (``pagination.fetch_all``).
"""

import asyncio
import logging
from typing import Annotated, Any, Dict, List, Optional

from pydantic import Field

from .registry import get_toolkit, register
from ..tools.api_client import ENTITY_TYPES
from ..tools.enrichment import fetch_companies_by_ids
from ..tools.filters import ListQuery
from ..tools.formatters import contact_display_name, format_as_table, format_company
from ..tools.models import Record
from ..tools.pagination import FETCH_ALL_CAP, fetch_all
from ..tools.relations import (
    ENTITY_TYPE_BY_ENDPOINT,
    FetchStrategy,
    build_include_fields,
    resolve_relations,
    select_strategy,
)

logger = logging.getLogger(__name__)

MAX_LIMIT = 500
MAX_CONTACT_IDS = 500
CONTACT_FIELDS = "id,firstName,lastName,email,title,companyId"

_ENTITY_HELP = ", ".join(ENTITY_TYPES)


def _display(value: Dict[str, Any]) -> str:
    if any(key in value for key in ("firstName", "lastName", "email")):
        return contact_display_name(value)
    return str(value.get("name") or value.get("title") or value.get("subject") or value.get("id") or "")


def _cell(value: Any) -> Any:
    if isinstance(value, dict):
        return _display(value)
    if isinstance(value, list):
        return ", ".join(_display(item) if isinstance(item, dict) else str(item) for item in value)
    return value


def record_row(record: Record) -> Dict[str, Any]:
    """Flatten a record into one table row; relations become display names."""
    data = record.to_dict()
    data.pop("workspaceId", None)
    data.pop("custom", None)
    return {key: _cell(value) for key, value in data.items()}


def _format_details(title: str, record: Record) -> str:
    lines = [f"## {title}", ""]
    for key, value in record_row(record).items():
        lines.append(f"- **{key}:** {value if value not in (None, '') else 'N/A'}")
    if record.custom:
        lines.append("")
        lines.append("### Custom Properties")
        for key, value in record.custom.items():
            lines.append(f"- **{key}:** {value}")
    return "\n".join(lines)


async def enrich_deals(toolkit, workspace_id: str, deals: List[Record]) -> List[Record]:
    """Add ``stageName`` and ``companyName`` (with location) to deal records.

    Stage ids that cannot be resolved stay as they are, and a failed company
    lookup renders as "N/A".
    """
    if not deals:
        return deals
    stage_ids = list(dict.fromkeys(deal.get("stage") for deal in deals if deal.get("stage")))
    stage_names, companies = await asyncio.gather(
        asyncio.gather(*(toolkit.session.resolve_stage_name(stage_id) for stage_id in stage_ids)),
        fetch_companies_by_ids(toolkit.client, workspace_id, (deal.get("companyId") for deal in deals)),
    )
    enriched = []
    names_by_stage = dict(zip(stage_ids, stage_names))
    for deal in deals:
        values = {}
        if deal.get("stage"):
            values["stageName"] = names_by_stage[deal.get("stage")]
        if deal.get("companyId"):
            values["companyName"] = format_company(companies.get(deal.get("companyId")))
        enriched.append(deal.with_values(values) if values else deal)
    return enriched


async def zero_list_records(
    entity: Annotated[str, Field(description=f"Entity type: {_ENTITY_HELP}")],
    where: Annotated[
        Optional[Dict[str, Any]],
        Field(description='Filter, e.g. {"name": {"$contains": "Acme"}} or {"value": {"$gte": 1000, "$lte": 5000}}'),
    ] = None,
    limit: Annotated[int, Field(description="Max records to return (1-500)")] = 20,
    offset: Annotated[int, Field(description="Records to skip for pagination")] = 0,
    order_by: Annotated[
        Optional[Dict[str, str]], Field(description='Sort, e.g. {"createdAt": "desc"}')
    ] = None,
    fields: Annotated[Optional[str], Field(description="Comma-separated fields to return")] = None,
    include: Annotated[
        Optional[List[str]],
        Field(description="Related records to load for companies, contacts, deals and calendarEvents, e.g. ['contacts', 'company']"),
    ] = None,
    fetch_all_pages: Annotated[
        bool, Field(description=f"Fetch every matching record (up to {FETCH_ALL_CAP}); ignores limit/offset")
    ] = False,
) -> str:
    """List records of any entity type with filtering, sorting, relations and pagination."""
    toolkit = get_toolkit()
    try:
        if entity not in ENTITY_TYPES:
            raise ValueError(f"Unknown entity type '{entity}'. Expected one of: {_ENTITY_HELP}")
        if not 1 <= limit <= MAX_LIMIT:
            raise ValueError(f"limit must be between 1 and {MAX_LIMIT}")

        workspace_id = await toolkit.session.ensure_workspace()
        entity_type = ENTITY_TYPE_BY_ENDPOINT.get(entity)
        strategy = select_strategy(has_filter=bool(where), has_sort=bool(order_by))
        if include and entity_type and strategy is FetchStrategy.INLINE:
            fields = build_include_fields(entity_type, include, fields)

        query = ListQuery(
            workspace_id=workspace_id,
            where=where,
            fields=fields,
            order_by=order_by,
            limit=limit,
            offset=offset,
        )

        notes = []
        if fetch_all_pages:
            result = await fetch_all(toolkit.client, entity, query)
            records = result.records
            if result.truncated:
                notes.append(
                    f"⚠️ Results truncated at {FETCH_ALL_CAP} records. Narrow the filter to see the rest."
                )
        else:
            page = await toolkit.client.list_records(entity, query)
            records = page.data
            if page.has_more:
                notes.append(
                    f"Showing {offset + 1}-{offset + len(records)} of {page.total}. "
                    f"Use offset={offset + len(records)} for the next page."
                )

        if include and entity_type and strategy is FetchStrategy.FALLBACK:
            records = await resolve_relations(toolkit.client, workspace_id, entity_type, records, include)
        if entity == "deals":
            records = await enrich_deals(toolkit, workspace_id, records)

        if not records:
            return f"No {entity} found."

        output = f"## {entity} ({len(records)})\n\n" + format_as_table([record_row(r) for r in records])
        if notes:
            output += "\n\n" + "\n".join(notes)
        return output
    except Exception as e:
        logger.error("zero_list_records failed for %s: %s", entity, e)
        error_type, message, suggestions = toolkit.error_handler.handle_api_error(e)
        return toolkit.error_handler.format_error_response(
            e, error_type, message, suggestions, operation="listing records"
        )


async def zero_get_record(
    entity: Annotated[str, Field(description=f"Entity type: {_ENTITY_HELP}")],
    record_id: Annotated[str, Field(description="Record ID")],
    fields: Annotated[Optional[str], Field(description="Comma-separated fields to return")] = None,
    include: Annotated[Optional[List[str]], Field(description="Related records to load inline")] = None,
) -> str:
    """Fetch a single record by ID."""
    toolkit = get_toolkit()
    try:
        workspace_id = await toolkit.session.ensure_workspace()
        entity_type = ENTITY_TYPE_BY_ENDPOINT.get(entity)
        if include and entity_type:
            fields = build_include_fields(entity_type, include, fields)
        record = await toolkit.client.get_record(entity, record_id, fields=fields, workspace_id=workspace_id)
        if entity == "deals":
            record = (await enrich_deals(toolkit, workspace_id, [record]))[0]
        return _format_details(record.name or record.get("title") or record_id, record)
    except Exception as e:
        logger.error("zero_get_record failed for %s/%s: %s", entity, record_id, e)
        error_type, message, suggestions = toolkit.error_handler.handle_api_error(e)
        return toolkit.error_handler.format_error_response(
            e, error_type, message, suggestions, operation="getting record"
        )


async def zero_create_record(
    entity: Annotated[str, Field(description=f"Entity type: {_ENTITY_HELP}")],
    data: Annotated[Dict[str, Any], Field(description="Field values for the new record")],
) -> str:
    """Create a record in the active workspace."""
    toolkit = get_toolkit()
    try:
        workspace_id = await toolkit.session.ensure_workspace()
        record = await toolkit.client.create_record(entity, workspace_id, data)
        return f"Created {entity} record **{record.name or record.id}** (ID: {record.id})."
    except Exception as e:
        logger.error("zero_create_record failed for %s: %s", entity, e)
        error_type, message, suggestions = toolkit.error_handler.handle_api_error(e)
        return toolkit.error_handler.format_error_response(
            e, error_type, message, suggestions, operation="creating record"
        )


async def zero_update_record(
    entity: Annotated[str, Field(description=f"Entity type: {_ENTITY_HELP}")],
    record_id: Annotated[str, Field(description="Record ID")],
    data: Annotated[Dict[str, Any], Field(description="Fields to change; others are left as they are")],
) -> str:
    """Partially update a record."""
    toolkit = get_toolkit()
    try:
        workspace_id = await toolkit.session.ensure_workspace()
        record = await toolkit.client.update_record(entity, record_id, workspace_id, data)
        return f"Updated {entity} record **{record.name or record_id}** ({', '.join(data)})."
    except Exception as e:
        logger.error("zero_update_record failed for %s/%s: %s", entity, record_id, e)
        error_type, message, suggestions = toolkit.error_handler.handle_api_error(e)
        return toolkit.error_handler.format_error_response(
            e, error_type, message, suggestions, operation="updating record"
        )


async def zero_delete_record(
    entity: Annotated[str, Field(description=f"Entity type: {_ENTITY_HELP}")],
    record_id: Annotated[str, Field(description="Record ID")],
    archive: Annotated[bool, Field(description="Archive (soft delete) instead of deleting permanently")] = True,
) -> str:
    """Delete or archive a record."""
    toolkit = get_toolkit()
    try:
        await toolkit.client.delete_record(entity, record_id, archive=archive)
        action = "Archived" if archive else "Permanently deleted"
        return f"{action} {entity} record {record_id}."
    except Exception as e:
        logger.error("zero_delete_record failed for %s/%s: %s", entity, record_id, e)
        error_type, message, suggestions = toolkit.error_handler.handle_api_error(e)
        return toolkit.error_handler.format_error_response(
            e, error_type, message, suggestions, operation="deleting record"
        )


async def zero_resolve_contacts(
    contact_ids: Annotated[List[str], Field(description=f"Contact IDs to resolve (max {MAX_CONTACT_IDS})")],
) -> str:
    """Resolve contact IDs (e.g. a calendar event's contactIds) to names and emails in one request."""
    toolkit = get_toolkit()
    try:
        unique_ids = list(dict.fromkeys(contact_id for contact_id in contact_ids if contact_id))
        if not unique_ids:
            return "No contact IDs given."
        if len(unique_ids) > MAX_CONTACT_IDS:
            raise ValueError(f"At most {MAX_CONTACT_IDS} contact IDs can be resolved at once")

        workspace_id = await toolkit.session.ensure_workspace()
        page = await toolkit.client.list_records(
            "contacts",
            ListQuery(
                workspace_id=workspace_id,
                where={"id": {"$in": unique_ids}},
                fields=CONTACT_FIELDS,
                limit=len(unique_ids),
            ),
        )
        found = {contact.id for contact in page.data}
        rows = [
            {
                "name": contact_display_name(contact.to_dict()),
                "email": contact.get("email"),
                "title": contact.get("title"),
                "id": contact.id,
            }
            for contact in page.data
        ]

        output = f"## Contacts ({len(rows)} of {len(unique_ids)} resolved)\n\n"
        output += format_as_table(rows) if rows else "No contacts found."
        unresolved = [contact_id for contact_id in unique_ids if contact_id not in found]
        if unresolved:
            output += "\n\n**Unresolved IDs:** " + ", ".join(unresolved)
        return output
    except Exception as e:
        logger.error("zero_resolve_contacts failed: %s", e)
        error_type, message, suggestions = toolkit.error_handler.handle_api_error(e)
        return toolkit.error_handler.format_error_response(
            e, error_type, message, suggestions, operation="resolving contacts"
        )


register(
    zero_list_records,
    zero_get_record,
    zero_create_record,
    zero_update_record,
    zero_delete_record,
    zero_resolve_contacts,
)
