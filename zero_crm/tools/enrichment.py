"""
zero_crm/tools/enrichment.py
============================

Bulk lookup of company display data (name, location) by id.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from .filters import ListQuery
from .models import Record

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class CompanyRef:
    name: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None

    @property
    def location(self) -> Optional[str]:
        parts = [part for part in (self.city, self.country) if part]
        return ", ".join(parts) if parts else None

    @classmethod
    def from_record(cls, record: Record) -> "CompanyRef":
        # Location arrives either flat (city/country) or nested under "location"
        location = record.get("location")
        if not isinstance(location, dict):
            location = {}
        return cls(
            name=record.name,
            city=record.get("city") or location.get("city"),
            country=record.get("country") or location.get("country"),
        )


async def fetch_companies_by_ids(client, workspace_id: str, ids: Iterable[Optional[str]]) -> Dict[str, CompanyRef]:
    """Return ``{company_id: CompanyRef}`` for ``ids`` in one request.

    Blank and repeated ids are dropped. Any failure yields an empty map so
    callers can render "N/A" instead of failing.
    """
    unique_ids = list(dict.fromkeys(company_id for company_id in ids if company_id))
    if not unique_ids:
        return {}

    try:
        page = await client.list_records(
            "companies",
            ListQuery(
                workspace_id=workspace_id,
                where={"id": {"$in": unique_ids}},
                limit=len(unique_ids),
            ),
        )
    except Exception as e:
        logger.warning("Company enrichment failed for %d ids: %s", len(unique_ids), e)
        return {}

    return {company.id: CompanyRef.from_record(company) for company in page.data if company.id}
