"""Domain-keyed deduplication and merge of multi-source company records."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Final

from prospector.models.company import CompanyRecord, Signal

SOURCE_DISPLAY_NAMES: Final[dict[str, str]] = {
    "exa": "Exa",
    "apollo": "Apollo",
    "hubspot": "HubSpot",
    "clearout": "Clearout",
    "mordor": "Mordor",
    "freshsales": "Freshsales",
    "parallel": "Parallel",
    "serper": "Serper",
}

BACKFILL_FIELDS: Final[tuple[str, ...]] = (
    "revenue",
    "founded",
    "phone",
    "logo_url",
    "description",
    "industry",
    "vertical",
    "location",
    "region",
    "website",
    "search_relevance",
    "freshsales_intel",
)


def normalize_domain(domain: str) -> str:
    """Lowercase, trim and drop a leading ``www.``."""
    normalized = (domain or "").strip().lower()
    if normalized.startswith("www."):
        normalized = normalized[4:]
    return normalized


def deduplicate_companies(records: Iterable[CompanyRecord]) -> list[CompanyRecord]:
    """Collapse records sharing a normalised domain into one merged record each.

    Output preserves first-seen order of each domain. Groups of one pass
    through untouched; larger groups are merged by :func:`merge_companies`.
    """
    groups: dict[str, list[CompanyRecord]] = {}
    for record in records:
        groups.setdefault(normalize_domain(record.domain), []).append(record)

    merged: list[CompanyRecord] = []
    for key, group in groups.items():
        if len(group) == 1:
            merged.append(group[0])
        else:
            merged.append(merge_companies(group, domain=key))
    return merged


def merge_companies(group: Sequence[CompanyRecord], *, domain: str | None = None) -> CompanyRecord:
    if not group:
        raise ValueError("Cannot merge an empty group of companies.")
    # Newest first; sorted() is stable so ties keep input order.
    ordered = sorted(group, key=lambda record: record.last_refreshed, reverse=True)
    primary = ordered[0]

    sources: list[str] = []
    for record in ordered:
        for source in record.sources:
            if source not in sources:
                sources.append(source)

    signals: dict[str, Signal] = {}
    for record in ordered:
        for signal in record.signals:
            signals.setdefault(signal.id, signal)

    updates: dict[str, object] = {
        "domain": domain or normalize_domain(primary.domain),
        "sources": sources,
        "signals": [signal.model_copy() for signal in signals.values()],
        "contact_count": max(record.contact_count for record in ordered),
        "icp_score": max(record.icp_score for record in ordered),
        "exact_match": any(record.exact_match for record in ordered),
    }
    for field_name in BACKFILL_FIELDS:
        if _is_blank(getattr(primary, field_name)):
            donor = _first_present(ordered[1:], field_name)
            if donor is not None:
                updates[field_name] = donor
    if primary.employee_count == 0:
        updates["employee_count"] = next(
            (record.employee_count for record in ordered[1:] if record.employee_count > 0), 0
        )
    if primary.hubspot_status == "none":
        updates["hubspot_status"] = next(
            (record.hubspot_status for record in ordered[1:] if record.hubspot_status != "none"),
            "none",
        )
    if primary.freshsales_status == "none":
        updates["freshsales_status"] = next(
            (record.freshsales_status for record in ordered[1:] if record.freshsales_status != "none"),
            "none",
        )
    return primary.model_copy(update=updates, deep=True)


def get_source_label(sources: Sequence[str]) -> str:
    """Human readable provenance, e.g. ``"Found by Exa + Apollo"``; empty for single-source records."""
    if len(sources) <= 1:
        return ""
    names = [SOURCE_DISPLAY_NAMES.get(source, source.title()) for source in sources]
    return "Found by " + " + ".join(names)


def _is_blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _first_present(records: Iterable[CompanyRecord], field_name: str) -> object | None:
    for record in records:
        value = getattr(record, field_name)
        if not _is_blank(value):
            return value
    return None
