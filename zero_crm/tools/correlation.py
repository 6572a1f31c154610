"""
zero_crm/tools/correlation.py
=============================

Cross-source activity correlation: "which deals had activity since X?"

Activity is recorded on several entity types, each with its own timestamp
field and all pointing at companies through ``companyIds``:

==================  =================
source              timestamp field
==================  =================
``activities``      ``time``
``emailThreads``    ``lastEmailTime``
``calendarEvents``  ``startTime``
``issues``          ``createdAt``
==================  =================

``find_active_deals`` queries every source concurrently for the time
window, folds the results into one ``CorrelationSummary`` per company,
fetches the deals of those companies and returns them ordered by most recent
activity. A source that fails contributes nothing and is reported as failed;
the other sources still count.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .enrichment import CompanyRef, fetch_companies_by_ids
from .filters import ListQuery
from .models import Record
from .session import WorkspaceSession

logger = logging.getLogger(__name__)

SOURCE_TIME_FIELDS: Dict[str, str] = {
    "activities": "time",
    "emailThreads": "lastEmailTime",
    "calendarEvents": "startTime",
    "issues": "createdAt",
}
SOURCES = tuple(SOURCE_TIME_FIELDS)

CORRELATION_KEY = "companyIds"
DEFAULT_PER_SOURCE_LIMIT = 200
DEALS_PER_COMPANY = 5
DEAL_FIELDS = "id,name,value,stage,confidence,closeDate,companyId,createdAt,updatedAt"


@dataclass
class SourceResult:
    source: str
    records: List[Record] = field(default_factory=list)
    total: Optional[int] = None
    failed: bool = False

    @property
    def truncated(self) -> bool:
        return self.total is not None and self.total > len(self.records)


@dataclass
class CorrelationSummary:
    """Signal counts per source plus the newest timestamp seen."""

    counts: Dict[str, int] = field(default_factory=lambda: {source: 0 for source in SOURCES})
    last_activity: Optional[str] = None

    def add(self, source: str, timestamp: Optional[str]) -> None:
        self.counts[source] = self.counts.get(source, 0) + 1
        if timestamp and (self.last_activity is None or timestamp > self.last_activity):
            self.last_activity = timestamp

    def to_dict(self) -> Dict[str, Any]:
        summary: Dict[str, Any] = dict(self.counts)
        summary["lastActivity"] = self.last_activity
        return summary


@dataclass
class ActiveDeal:
    deal: Record
    summary: CorrelationSummary
    stage_name: str
    company: Optional[CompanyRef] = None


@dataclass
class ActiveDealsResult:
    since: str
    sources: List[SourceResult]
    summaries: Dict[str, CorrelationSummary]
    deals: List[ActiveDeal] = field(default_factory=list)


async def _query_source(
    client, workspace_id: str, source: str, since: str, until: Optional[str], limit: int
) -> SourceResult:
    time_field = SOURCE_TIME_FIELDS[source]
    condition: Dict[str, Any] = {"$gte": since}
    if until:
        condition["$lt"] = until

    try:
        page = await client.list_records(
            source,
            ListQuery(
                workspace_id=workspace_id,
                where={time_field: condition},
                fields=f"id,{CORRELATION_KEY},{time_field}",
                limit=limit,
                offset=0,
            ),
        )
    except Exception as e:
        logger.warning("Activity source %s failed: %s", source, e)
        return SourceResult(source=source, total=0, failed=True)

    return SourceResult(source=source, records=page.data, total=page.total)


def summarize(results: Sequence[SourceResult]) -> Dict[str, CorrelationSummary]:
    """Fold source records into one summary per company id.

    Records without company ids are skipped; a missing timestamp counts the
    signal but leaves ``last_activity`` alone.
    """
    summaries: Dict[str, CorrelationSummary] = {}
    for result in results:
        time_field = SOURCE_TIME_FIELDS[result.source]
        for record in result.records:
            keys = record.get(CORRELATION_KEY)
            if not isinstance(keys, list):
                continue
            timestamp = record.get(time_field)
            for key in keys:
                if not key:
                    continue
                summaries.setdefault(key, CorrelationSummary()).add(result.source, timestamp)
    return summaries


async def find_active_deals(
    client,
    session: WorkspaceSession,
    since: str,
    until: Optional[str] = None,
    sources: Optional[Sequence[str]] = None,
    deal_where: Optional[Dict[str, Any]] = None,
    per_source_limit: int = DEFAULT_PER_SOURCE_LIMIT,
) -> ActiveDealsResult:
    """Return the deals whose companies had activity in ``[since, until)``.

    Deals are sorted by their company's most recent activity, newest first;
    ties keep the order the API returned them in. When no source yields a
    company id, ``deals`` is empty and ``sources`` still reports what each
    source returned.
    """
    workspace_id = await session.ensure_workspace()
    active_sources = [source for source in (sources or SOURCES) if source in SOURCE_TIME_FIELDS]

    results = await asyncio.gather(
        *(
            _query_source(client, workspace_id, source, since, until, per_source_limit)
            for source in active_sources
        )
    )
    summaries = summarize(results)
    outcome = ActiveDealsResult(since=since, sources=list(results), summaries=summaries)
    if not summaries:
        return outcome

    company_ids = list(summaries)
    page = await client.list_records(
        "deals",
        ListQuery(
            workspace_id=workspace_id,
            where={"companyId": {"$in": company_ids}, **(deal_where or {})},
            fields=DEAL_FIELDS,
            limit=len(company_ids) * DEALS_PER_COMPANY,
            offset=0,
        ),
    )
    deals = [deal for deal in page.data if deal.get("companyId") in summaries]
    if not deals:
        return outcome

    stage_names, companies = await asyncio.gather(
        asyncio.gather(*(session.resolve_stage_name(deal.get("stage")) for deal in deals)),
        fetch_companies_by_ids(client, workspace_id, [deal.get("companyId") for deal in deals]),
    )

    active = []
    for deal, stage_name in zip(deals, stage_names):
        summary = summaries[deal.get("companyId")]
        active.append(
            ActiveDeal(
                deal=deal.with_values({"activitySummary": summary.to_dict()}),
                summary=summary,
                stage_name=stage_name,
                company=companies.get(deal.get("companyId")),
            )
        )
    active.sort(key=lambda item: item.summary.last_activity or "", reverse=True)
    outcome.deals = active
    return outcome
