"""
zero_crm/tools/relations.py
===========================

Related-record loading for companies, contacts, deals and calendar events.

The Zero API can return related records in the same response when the
``fields`` parameter names them in dot notation (``contacts.id,contacts.email``).
That join is only reliable on plain list requests: once a ``where`` filter or
an ``orderBy`` is present the backend rejects or mis-handles it. Two
strategies therefore exist:

INLINE
    Append the dot-notation fields to the base request; one round trip.
FALLBACK
    Fetch the base records without relations, then load each requested
    relation with one bulk ``$in`` lookup and attach the results locally.

``select_strategy`` picks between them. Relation names a given entity type
does not know are ignored.
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .api_client import ZeroAPIClient
from .filters import ListQuery, join_fields
from .models import Record
from .pagination import fetch_all

logger = logging.getLogger(__name__)


class FetchStrategy(str, Enum):
    INLINE = "inline"
    FALLBACK = "fallback"


def select_strategy(has_filter: bool, has_sort: bool) -> FetchStrategy:
    """INLINE only for unfiltered, unsorted requests."""
    if has_filter or has_sort:
        return FetchStrategy.FALLBACK
    return FetchStrategy.INLINE


@dataclass(frozen=True)
class Relation:
    """How one relation of an entity type is fetched.

    ``local_key`` is a foreign key on the base record (``companyId``,
    ``contactIds``). ``remote_key`` is a foreign key on the related record
    pointing back at the base record (``tasks.companyId``). A relation with
    neither can only be loaded inline.
    """

    name: str
    target: str
    fields: Tuple[str, ...]
    local_key: Optional[str] = None
    remote_key: Optional[str] = None

    @property
    def many(self) -> bool:
        return self.local_key is None or self.local_key.endswith("Ids")

    @property
    def resolvable(self) -> bool:
        return bool(self.local_key or self.remote_key)

    def inline_fields(self) -> str:
        return ",".join(f"{self.name}.{field}" for field in self.fields)


_CONTACT_FIELDS = ("id", "firstName", "lastName", "email", "title")
_COMPANY_FIELDS = ("id", "name", "domain")
_DEAL_FIELDS = ("id", "name", "value", "stage", "closeDate")
_TASK_FIELDS = ("id", "name", "done", "deadline")
_NOTE_FIELDS = ("id", "content", "createdAt")
_EMAIL_FIELDS = ("id", "subject", "snippet", "lastEmailTime")
_EVENT_FIELDS = ("id", "name", "startTime", "endTime")
_ACTIVITY_FIELDS = ("id", "type", "name", "time")
_ISSUE_FIELDS = ("id", "title", "status", "source", "createdAt")
_COMMENT_FIELDS = ("id", "content", "createdAt")


def _activity_relations(back_key: Optional[str]) -> List[Relation]:
    """Relations shared by companies, contacts and deals."""
    return [
        Relation("tasks", "tasks", _TASK_FIELDS, remote_key=back_key),
        Relation("notes", "notes", _NOTE_FIELDS, remote_key=back_key),
        Relation("emailThreads", "emailThreads", _EMAIL_FIELDS),
        Relation("calendarEvents", "calendarEvents", _EVENT_FIELDS),
        Relation("activities", "activities", _ACTIVITY_FIELDS),
        Relation("issues", "issues", _ISSUE_FIELDS, remote_key=back_key),
        Relation("comments", "comments", _COMMENT_FIELDS, remote_key=back_key),
    ]


RELATIONS: Dict[str, Dict[str, Relation]] = {
    "company": {
        r.name: r
        for r in [
            Relation("contacts", "contacts", _CONTACT_FIELDS, remote_key="companyId"),
            Relation("deals", "deals", _DEAL_FIELDS, remote_key="companyId"),
            *_activity_relations("companyId"),
        ]
    },
    "contact": {
        r.name: r
        for r in [
            Relation("company", "companies", _COMPANY_FIELDS, local_key="companyId"),
            Relation("deals", "deals", _DEAL_FIELDS),
            *_activity_relations("contactId"),
        ]
    },
    "deal": {
        r.name: r
        for r in [
            Relation("company", "companies", _COMPANY_FIELDS, local_key="companyId"),
            Relation("contacts", "contacts", _CONTACT_FIELDS, local_key="contactIds"),
            *_activity_relations("dealId"),
        ]
    },
    "calendarEvent": {
        r.name: r
        for r in [
            Relation("contacts", "contacts", _CONTACT_FIELDS, local_key="contactIds"),
            Relation("companies", "companies", _COMPANY_FIELDS, local_key="companyIds"),
            Relation("tasks", "tasks", _TASK_FIELDS),
        ]
    },
}

# List endpoint -> relation table key
ENTITY_TYPE_BY_ENDPOINT = {
    "companies": "company",
    "contacts": "contact",
    "deals": "deal",
    "calendarEvents": "calendarEvent",
}


def requested_relations(entity_type: str, include: Optional[Iterable[str]]) -> List[Relation]:
    known = RELATIONS.get(entity_type, {})
    return [known[name] for name in include or () if name in known]


def build_include_fields(
    entity_type: str, include: Optional[Iterable[str]], base_fields: Optional[str] = None
) -> Optional[str]:
    """Append dot-notation relation fields for ``include`` to ``base_fields``."""
    extra = [relation.inline_fields() for relation in requested_relations(entity_type, include)]
    return join_fields(base_fields, *extra)


def _distinct_values(records: List[Record], key: str) -> List[str]:
    seen: List[str] = []
    for record in records:
        value = record.get(key)
        for item in value if isinstance(value, list) else [value]:
            if item and item not in seen:
                seen.append(item)
    return seen


async def _load_relation(
    client: ZeroAPIClient, workspace_id: str, relation: Relation, records: List[Record]
) -> Optional[Dict[str, Any]]:
    """Bulk-load one relation; ``None`` when the lookup failed."""
    try:
        if relation.local_key:
            ids = _distinct_values(records, relation.local_key)
            if not ids:
                return {}
            page = await client.list_records(
                relation.target,
                ListQuery(
                    workspace_id=workspace_id,
                    where={"id": {"$in": ids}},
                    fields=",".join(relation.fields),
                    limit=len(ids),
                ),
            )
            return {related.id: related.to_dict() for related in page.data}

        base_ids = [record.id for record in records if record.id]
        if not base_ids:
            return {}
        result = await fetch_all(
            client,
            relation.target,
            ListQuery(
                workspace_id=workspace_id,
                where={relation.remote_key: {"$in": base_ids}},
                fields=join_fields(",".join(relation.fields), relation.remote_key),
            ),
        )
        grouped: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        for related in result.records:
            grouped[related.get(relation.remote_key)].append(related.to_dict())
        return grouped
    except Exception as e:
        logger.warning("Failed to load relation %s from %s: %s", relation.name, relation.target, e)
        return None


def _attach(relation: Relation, record: Record, loaded: Dict[str, Any]) -> Any:
    if relation.remote_key and not relation.local_key:
        return list(loaded.get(record.id, []))
    value = record.get(relation.local_key)
    if relation.many:
        return [loaded[item] for item in value or [] if item in loaded]
    return loaded.get(value)


async def resolve_relations(
    client: ZeroAPIClient,
    workspace_id: str,
    entity_type: str,
    records: List[Record],
    include: Optional[Iterable[str]],
) -> List[Record]:
    """Attach ``include`` relations to ``records`` without a server-side join.

    Relations load concurrently, one request each. A relation whose lookup
    fails is left off; the base records are always returned.
    """
    relations = []
    for relation in requested_relations(entity_type, include):
        if relation.resolvable:
            relations.append(relation)
        else:
            logger.debug("Relation %s.%s can only be loaded inline; skipped", entity_type, relation.name)

    if not relations or not records:
        return records

    loaded = await asyncio.gather(
        *(_load_relation(client, workspace_id, relation, records) for relation in relations)
    )

    resolved = []
    for record in records:
        values = {}
        for relation, lookup in zip(relations, loaded):
            if lookup is None:
                continue
            attached = _attach(relation, record, lookup)
            if attached is not None:
                values[relation.name] = attached
        resolved.append(record.with_values(values) if values else record)
    return resolved
