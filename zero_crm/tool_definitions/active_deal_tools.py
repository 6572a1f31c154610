"""
zero_crm/tool_definitions/active_deal_tools.py
==============================================

"Which deals had activity this week?"

Answers the question across emails, meetings, custom activities (LinkedIn,
calls, ...) and Slack messages (issues) in one call. The heavy lifting lives
in ``tools/correlation.py``; this module validates input and renders the
result.
"""

import logging
from typing import Annotated, Any, Dict, List, Optional

from pydantic import Field

from .registry import get_toolkit, register
from ..tools.correlation import DEFAULT_PER_SOURCE_LIMIT, SOURCES, ActiveDeal, find_active_deals
from ..tools.formatters import (
    format_activity_summary,
    format_company,
    format_currency,
    format_date,
    format_percentage,
    format_source_stats,
)

logger = logging.getLogger(__name__)


def _format_deal(index: int, item: ActiveDeal) -> str:
    deal = item.deal
    confidence = deal.get("confidence")
    return "\n".join(
        [
            f"### {index}. {deal.name or 'Untitled'}",
            f"- **ID:** {deal.id}",
            f"- **Value:** {format_currency(deal.get('value'))}",
            f"- **Stage:** {item.stage_name}",
            f"- **Confidence:** {format_percentage(confidence) if confidence else 'N/A'}",
            f"- **Close Date:** {format_date(deal.get('closeDate'))}",
            f"- **Company:** {format_company(item.company)}",
            f"- **Recent Activity:** {format_activity_summary(item.summary)}",
            f"- **Last Activity:** {format_date(item.summary.last_activity, with_time=True)}",
        ]
    )


async def zero_find_active_deals(
    since: Annotated[str, Field(description='ISO date; only activity from this date on (e.g. "2026-02-03")')],
    until: Annotated[
        Optional[str], Field(description="ISO date; only activity before this date (exclusive)")
    ] = None,
    sources: Annotated[
        Optional[List[str]],
        Field(description=f"Activity sources to query. Defaults to all: {', '.join(SOURCES)}"),
    ] = None,
    deal_where: Annotated[
        Optional[Dict[str, Any]],
        Field(description='Extra filter on the deals, e.g. {"stage": "<stage id>"}'),
    ] = None,
    limit: Annotated[
        int, Field(description=f"Max activity records fetched per source (default {DEFAULT_PER_SOURCE_LIMIT})")
    ] = DEFAULT_PER_SOURCE_LIMIT,
) -> str:
    """Find deals with recent activity across all activity sources, newest activity first.

    Queries every source in parallel, links activity to deals through their
    companies, and returns each deal with a per-source activity summary.
    """
    toolkit = get_toolkit()
    try:
        unknown = [source for source in sources or [] if source not in SOURCES]
        if unknown:
            raise ValueError(f"Unknown sources: {', '.join(unknown)}. Expected any of: {', '.join(SOURCES)}")

        result = await find_active_deals(
            toolkit.client,
            toolkit.session,
            since=since,
            until=until,
            sources=sources,
            deal_where=deal_where,
            per_source_limit=limit,
        )

        if not result.summaries:
            checked = ", ".join(
                f"{source.source}: failed" if source.failed else f"{source.source}: {len(source.records)} records"
                for source in result.sources
            )
            return f"No deals found with activity since {since}.\n\nSources checked: {checked}"

        if not result.deals:
            return (
                f"Found activity for {len(result.summaries)} company/companies since {since}, "
                "but no matching deals found."
            )

        sections = [
            f"## Active Deals Since {format_date(since)} ({len(result.deals)} deals)",
            "",
            f"**Sources queried:** {format_source_stats(result.sources)}",
            "",
        ]
        sections.extend(_format_deal(i, item) + "\n" for i, item in enumerate(result.deals, 1))
        return "\n".join(sections).rstrip() + "\n"
    except Exception as e:
        logger.error("zero_find_active_deals failed: %s", e)
        error_type, message, suggestions = toolkit.error_handler.handle_api_error(e)
        return toolkit.error_handler.format_error_response(
            e, error_type, message, suggestions, operation="finding active deals"
        )


register(zero_find_active_deals)
