"""
zero_crm/tools/formatters.py
============================

Shared output formatting helpers for the MCP tools.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from .correlation import CorrelationSummary, SourceResult
from .enrichment import CompanyRef

# Plural-aware labels for activity summaries, in display order
_SUMMARY_LABELS = (
    ("activities", "activity", "activities"),
    ("emailThreads", "email", "emails"),
    ("calendarEvents", "meeting", "meetings"),
    ("issues", "Slack message", "Slack messages"),
)

_SOURCE_LABELS = {"emailThreads": "emails", "calendarEvents": "meetings"}


def format_as_table(data: List[Dict[str, Any]], max_rows: int = 100) -> str:
    """Format a list of row-dicts as a Markdown table.

    Columns are taken from the union of keys, in first-seen order. Values
    longer than 50 characters are shortened.

    Example
    -------
    >>> rows = [{"name": "Acme", "domain": "acme.com"}]
    >>> print(format_as_table(rows))
    | name | domain |
    |------|------|
    | Acme | acme.com |

    *1 rows*
    """
    if not data:
        return "No data returned"

    display_data = data[:max_rows]
    total_rows = len(data)
    columns: List[str] = []
    for row in display_data:
        for key in row:
            if key not in columns:
                columns.append(key)

    header = "| " + " | ".join(str(col) for col in columns) + " |"
    separator = "|" + "|".join("------" for _ in columns) + "|"

    rows = []
    for row in display_data:
        values = []
        for col in columns:
            val = row.get(col, "")
            val_str = str(val) if val is not None else ""
            val_str = val_str.replace("|", "\\|").replace("\n", " ")
            if len(val_str) > 50:
                val_str = val_str[:47] + "..."
            values.append(val_str)
        rows.append("| " + " | ".join(values) + " |")

    table = "\n".join([header, separator] + rows)

    if total_rows > max_rows:
        table += f"\n\n*Showing {max_rows} of {total_rows} rows*"
    else:
        table += f"\n\n*{total_rows} rows*"

    return table


def format_currency(value: Any) -> str:
    if value is None or value == "":
        return "N/A"
    try:
        return f"${float(value):,.2f}"
    except (TypeError, ValueError):
        return str(value)


def format_date(value: Optional[str], with_time: bool = False) -> str:
    if not value:
        return "N/A"
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return str(value)
    return parsed.strftime("%Y-%m-%d %H:%M") if with_time else parsed.strftime("%Y-%m-%d")


def format_percentage(value: Any) -> str:
    try:
        return f"{round(float(value) * 100)}%"
    except (TypeError, ValueError):
        return "N/A"


def format_activity_summary(summary: CorrelationSummary) -> str:
    """``"1 activity, 2 emails, 1 meeting"``; zero counts are left out."""
    parts = []
    for source, singular, plural in _SUMMARY_LABELS:
        count = summary.counts.get(source, 0)
        if count > 0:
            parts.append(f"{count} {singular if count == 1 else plural}")
    return ", ".join(parts)


def format_source_stats(results: List[SourceResult]) -> str:
    parts = []
    for result in results:
        label = _SOURCE_LABELS.get(result.source, result.source)
        if result.failed:
            parts.append(f"{label}: failed")
        elif result.truncated:
            parts.append(f"{label}: {len(result.records)} (truncated, {result.total} total)")
        else:
            parts.append(f"{label}: {len(result.records)}")
    return ", ".join(parts)


def format_company(company: Optional[CompanyRef]) -> str:
    """``"Acme (Berlin, Germany)"``, or ``"N/A"`` when the company is unknown."""
    if company is None or not company.name:
        return "N/A"
    if company.location:
        return f"{company.name} ({company.location})"
    return company.name


def contact_display_name(contact: Dict[str, Any]) -> str:
    """Best available name for a contact dict; email-only contacts are marked."""
    full_name = " ".join(
        part for part in (contact.get("firstName"), contact.get("lastName")) if part
    ).strip()
    name = full_name or (contact.get("name") or "").strip()
    if name:
        return name
    if contact.get("email"):
        return f"{contact['email']} (unresolved attendee)"
    return contact.get("id") or "Unknown"
