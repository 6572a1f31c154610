"""
zero_crm/tools/dedup.py
=======================

Merging of near-duplicate records.

Synced calendars routinely produce the same meeting several times, once per
attendee's calendar. Two records are treated as the same item when their
normalised name and their timestamp truncated to the minute agree. The first
record seen survives; configured array fields take the union of every copy.
Nested related records in those fields (relations loaded inline) are matched
by ``id``.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple

from .models import Record

# Array fields merged for calendar events
CALENDAR_ARRAY_FIELDS = ("contactIds", "companyIds", "dealIds", "userIds", "attendeeEmails")
# Relations loaded inline arrive as nested lists on each copy
CALENDAR_RELATION_FIELDS = ("contacts", "companies", "tasks")


@dataclass
class DedupResult:
    records: List[Record]
    duplicates_removed: int


def identity_key(record: Record, name_field: str = "name", time_field: str = "startTime") -> Tuple:
    """``(name, minute)`` for a record, or a unique key when it has no timestamp."""
    timestamp = record.get(time_field)
    if not timestamp:
        return ("id", record.id or str(id(record)))
    name = str(record.get(name_field) or "").strip().lower()
    return ("item", name, str(timestamp)[:16])


def _item_key(item: Any) -> Any:
    # Nested related records (inline relations) match on id, then email
    if isinstance(item, dict):
        return item.get("id") or item.get("email") or item
    return item


def _union(first: object, second: object) -> List:
    merged = list(first) if isinstance(first, list) else []
    seen = [_item_key(item) for item in merged]
    for item in second if isinstance(second, list) else []:
        key = _item_key(item)
        if key not in seen:
            seen.append(key)
            merged.append(item)
    return merged


def deduplicate(
    records: Sequence[Record],
    array_fields: Sequence[str] = CALENDAR_ARRAY_FIELDS,
    name_field: str = "name",
    time_field: str = "startTime",
) -> DedupResult:
    """Merge records sharing an identity key, keeping first-seen order.

    The input records are not modified. Applying the function to its own
    output changes nothing.
    """
    merged: Dict[Tuple, Record] = {}
    removed = 0

    for record in records:
        key = identity_key(record, name_field, time_field)
        kept = merged.get(key)
        if kept is None:
            merged[key] = record.model_copy(deep=True)
            continue

        removed += 1
        updates = {}
        for field in array_fields:
            incoming = record.get(field)
            if isinstance(incoming, list) and incoming:
                updates[field] = _union(kept.get(field), incoming)
        if updates:
            merged[key] = kept.with_values(updates)

    return DedupResult(records=list(merged.values()), duplicates_removed=removed)
