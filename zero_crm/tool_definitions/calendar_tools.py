"""
zero_crm/tool_definitions/calendar_tools.py
===========================================

Calendar event listing.

Synced calendars produce one copy of a meeting per attendee calendar, and
many imported events carry no start time at all. By default this tool hides
undated events and merges duplicate copies (same name, same minute) into one
event whose contact/company/deal ids are the union of every copy. To still
return ``limit`` distinct events after merging, it asks the API for twice as
many and trims afterwards.
"""

import logging
from typing import Annotated, Any, Dict, List, Optional

from pydantic import Field

from .registry import get_toolkit, register
from ..tools.dedup import CALENDAR_ARRAY_FIELDS, CALENDAR_RELATION_FIELDS, deduplicate
from ..tools.filters import ListQuery
from ..tools.formatters import contact_display_name, format_date
from ..tools.models import Record
from ..tools.pagination import FETCH_ALL_CAP, fetch_all
from ..tools.relations import FetchStrategy, build_include_fields, resolve_relations, select_strategy

logger = logging.getLogger(__name__)

# Undated events sort first under {"startTime": "asc"}; this floor hides them
NULL_DATE_FLOOR = "2000-01-01"
OVERFETCH_FACTOR = 2
MAX_LIMIT = 250


def _format_event(index: int, event: Record) -> str:
    title = event.name or event.get("title") or "Untitled"
    start = format_date(event.get("startTime"), with_time=True)
    end = event.get("endTime")
    lines = [
        f"### {index}. {title}",
        f"- **ID:** {event.id}",
        f"- **When:** {start}" + (f" to {format_date(end, with_time=True)}" if end else ""),
    ]
    if event.get("location"):
        lines.append(f"- **Location:** {event.get('location')}")

    contacts = event.get("contacts")
    if isinstance(contacts, list) and contacts:
        lines.append("- **Contacts:** " + ", ".join(contact_display_name(c) for c in contacts))
    elif event.get("contactIds"):
        lines.append(f"- **Contact IDs:** {', '.join(event.get('contactIds'))}")

    companies = event.get("companies")
    if isinstance(companies, list) and companies:
        lines.append("- **Companies:** " + ", ".join(c.get("name") or c.get("id", "") for c in companies))

    tasks = event.get("tasks")
    if isinstance(tasks, list) and tasks:
        for task in tasks:
            check = "[x]" if task.get("done") else "[ ]"
            lines.append(f"  - {check} {task.get('name') or 'N/A'}")
    return "\n".join(lines)


def _unique_contacts(events: List[Record]) -> List[Dict[str, Any]]:
    seen: Dict[str, Dict[str, Any]] = {}
    for event in events:
        for contact in event.get("contacts") or []:
            if isinstance(contact, dict):
                key = contact.get("id") or contact.get("email")
                if key and key not in seen:
                    seen[key] = contact
    return list(seen.values())


async def zero_list_calendar_events(
    where: Annotated[
        Optional[Dict[str, Any]],
        Field(description='Filter, e.g. {"startTime": {"$gte": "2026-02-01", "$lt": "2026-03-01"}}'),
    ] = None,
    limit: Annotated[int, Field(description="Max events to return")] = 20,
    offset: Annotated[int, Field(description="Events to skip for pagination")] = 0,
    order_by: Annotated[
        Optional[Dict[str, str]], Field(description='Sort, e.g. {"startTime": "asc"}')
    ] = None,
    fields: Annotated[Optional[str], Field(description="Comma-separated fields to return")] = None,
    include: Annotated[
        Optional[List[str]], Field(description="Related records: contacts, companies, tasks")
    ] = None,
    exclude_null_dates: Annotated[
        bool, Field(description="Hide events without a start time (default true)")
    ] = True,
    deduplicate_events: Annotated[
        bool, Field(description="Merge copies of the same meeting from different calendars (default true)")
    ] = True,
    fetch_all_pages: Annotated[
        bool, Field(description=f"Fetch every matching event (up to {FETCH_ALL_CAP}); ignores limit/offset")
    ] = False,
) -> str:
    """List calendar events with de-duplication, relation loading and optional full pagination."""
    toolkit = get_toolkit()
    try:
        if not 1 <= limit <= MAX_LIMIT:
            raise ValueError(f"limit must be between 1 and {MAX_LIMIT}")

        workspace_id = await toolkit.session.ensure_workspace()

        effective_where = dict(where or {})
        if exclude_null_dates and "startTime" not in effective_where:
            effective_where["startTime"] = {"$gte": NULL_DATE_FLOOR}

        strategy = select_strategy(has_filter=bool(effective_where), has_sort=bool(order_by))
        if include and strategy is FetchStrategy.INLINE:
            fields = build_include_fields("calendarEvent", include, fields)

        request_limit = limit * OVERFETCH_FACTOR if deduplicate_events else limit
        query = ListQuery(
            workspace_id=workspace_id,
            where=effective_where or None,
            fields=fields,
            order_by=order_by,
            limit=request_limit,
            offset=offset,
        )

        notes = []
        total = None
        api_has_more = False
        if fetch_all_pages:
            result = await fetch_all(toolkit.client, "calendarEvents", query)
            events = result.records
            total = result.total
            if result.truncated:
                notes.append(f"⚠️ Results truncated at {FETCH_ALL_CAP} events. Narrow the date range to see the rest.")
        else:
            page = await toolkit.client.list_records("calendarEvents", query)
            events = page.data
            total = page.total
            api_has_more = page.has_more if total is not None else len(events) == request_limit

        if deduplicate_events:
            relation_fields = tuple(name for name in include or () if name in CALENDAR_RELATION_FIELDS)
            deduped = deduplicate(events, array_fields=CALENDAR_ARRAY_FIELDS + relation_fields)
            events = deduped.records
            if deduped.duplicates_removed:
                notes.append(f"*Merged {deduped.duplicates_removed} duplicate event(s) from synced calendars.*")

        trimmed = False
        if not fetch_all_pages and len(events) > limit:
            events = events[:limit]
            trimmed = True

        if include and strategy is FetchStrategy.FALLBACK:
            events = await resolve_relations(toolkit.client, workspace_id, "calendarEvent", events, include)

        if not events:
            return "No calendar events found matching your criteria."

        if not fetch_all_pages and (trimmed or api_has_more):
            notes.append(
                f"*More results available. Use offset={offset + request_limit} to see the next page.*"
            )

        header = f"## Calendar Events ({len(events)}" + (f" of {total}" if total else "") + ")"
        sections = [header, ""]
        sections.extend(_format_event(i, event) for i, event in enumerate(events, 1))

        contacts = _unique_contacts(events)
        if len(events) >= 2 and contacts:
            sections.append("")
            sections.append(f"### Unique Contacts Met ({len(contacts)})")
            sections.extend(f"- {contact_display_name(contact)}" for contact in contacts)

        if notes:
            sections.append("")
            sections.extend(notes)
        return "\n".join(sections)
    except Exception as e:
        logger.error("zero_list_calendar_events failed: %s", e)
        error_type, message, suggestions = toolkit.error_handler.handle_api_error(e)
        return toolkit.error_handler.format_error_response(
            e, error_type, message, suggestions, operation="listing calendar events"
        )


register(zero_list_calendar_events)
