"""
zero_crm/tools/pagination.py
============================

Bounded auto-pagination over a list endpoint.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional

from .filters import ListQuery
from .models import Record

logger = logging.getLogger(__name__)

FETCH_ALL_PAGE_SIZE = 200
FETCH_ALL_CAP = 500


@dataclass
class FetchAllResult:
    records: List[Record] = field(default_factory=list)
    truncated: bool = False
    total: Optional[int] = None
    pages: int = 0


async def fetch_all(
    client,
    entity: str,
    query: ListQuery,
    page_size: int = FETCH_ALL_PAGE_SIZE,
    cap: int = FETCH_ALL_CAP,
) -> FetchAllResult:
    """Fetch every matching record, page by page, up to ``cap``.

    ``query.limit`` and ``query.offset`` are ignored. Paging stops when the
    reported total is reached (or an empty page arrives), when a page comes
    back short and no total is reported, or when ``cap`` records have been
    collected. In the last case the result is cut to exactly
    ``cap`` and ``truncated`` is set if more records exist or may exist.
    """
    result = FetchAllResult()
    offset = 0

    while True:
        page = await client.list_records(entity, replace(query, limit=page_size, offset=offset))
        result.pages += 1
        if page.total is not None:
            result.total = page.total

        result.records.extend(page.data)
        offset += len(page.data)

        if page.total is not None:
            exhausted = not page.data or offset >= page.total
        else:
            exhausted = len(page.data) < page_size
        if len(result.records) >= cap:
            result.truncated = len(result.records) > cap or not exhausted
            del result.records[cap:]
            break
        if exhausted:
            break

    if result.truncated:
        logger.info("fetch_all on %s stopped at %d records (total %s)", entity, cap, result.total)
    return result
