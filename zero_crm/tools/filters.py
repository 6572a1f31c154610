"""
zero_crm/tools/filters.py
=========================

Filter normalisation and list-query parameter encoding.

The Zero API does not combine ``$gte`` with ``$lte``/``$lt`` on the same
field (the upper bound is silently dropped), but it does understand
``$between``. ``normalize_where`` rewrites such ranges before the filter is
serialised::

    {"startTime": {"$gte": "2026-01-01", "$lte": "2026-02-01"}}
    -> {"startTime": {"$between": ["2026-01-01", "2026-02-01"]}}

Only top-level field conditions are rewritten. Conditions nested inside
``$and``/``$or``/``$not`` are passed through unchanged.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

_RANGE_KEYS = ("$gte", "$lte", "$lt")


def _normalize_condition(condition: Any) -> Any:
    if not isinstance(condition, dict) or "$gte" not in condition:
        return condition
    if "$lte" not in condition and "$lt" not in condition:
        return condition

    low = condition["$gte"]
    high = condition["$lte"] if condition.get("$lte") is not None else condition.get("$lt")

    normalized = {key: value for key, value in condition.items() if key not in _RANGE_KEYS}
    normalized["$between"] = [low, high]
    return normalized


def normalize_where(where: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Collapse ``$gte`` + ``$lte``/``$lt`` pairs into ``$between``.

    Returns a new mapping; the input is never modified. ``None`` passes
    through.
    """
    if not where:
        return where
    return {field: _normalize_condition(condition) for field, condition in where.items()}


def _to_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"))


@dataclass
class ListQuery:
    """Everything a list request can carry, before encoding."""

    workspace_id: Optional[str] = None
    where: Optional[Dict[str, Any]] = None
    fields: Optional[str] = None
    order_by: Optional[Dict[str, str]] = None
    limit: Optional[int] = None
    offset: Optional[int] = None

    def to_params(self) -> Dict[str, str]:
        return build_query_params(
            workspace_id=self.workspace_id,
            where=self.where,
            fields=self.fields,
            order_by=self.order_by,
            limit=self.limit,
            offset=self.offset,
        )


def build_query_params(
    workspace_id: Optional[str] = None,
    where: Optional[Dict[str, Any]] = None,
    fields: Optional[str] = None,
    order_by: Optional[Dict[str, str]] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
) -> Dict[str, str]:
    """Encode a list query into URL parameters.

    ``where`` is normalised and JSON-encoded, ``orderBy`` JSON-encoded,
    ``limit``/``offset`` stringified. Empty values are left out.
    """
    params: Dict[str, str] = {}
    if workspace_id:
        params["workspaceId"] = workspace_id
    if where:
        params["where"] = _to_json(normalize_where(where))
    if fields:
        params["fields"] = fields
    if order_by:
        params["orderBy"] = _to_json(order_by)
    if limit is not None:
        params["limit"] = str(limit)
    if offset is not None:
        params["offset"] = str(offset)
    return params


def join_fields(*groups: Optional[str]) -> Optional[str]:
    """Merge comma-separated field lists, dropping blanks and repeats."""
    seen: List[str] = []
    for group in groups:
        if not group:
            continue
        for field in group.split(","):
            field = field.strip()
            if field and field not in seen:
                seen.append(field)
    return ",".join(seen) if seen else None
