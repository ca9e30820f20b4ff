"""Deterministic ICP fit scoring with an explainable per-factor breakdown."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Final

from prospector.models.company import CompanyRecord, IcpBreakdownItem, Signal
from prospector.models.icp import IcpScoreResult, IcpWeights
from prospector.models.search import ExtractedEntities, FilterState

SCORE_FLOOR: Final = 0
SCORE_CEILING: Final = 100
CLAMP_FACTOR: Final = "Score clamp"

NEGATIVE_SIGNAL_KEYWORDS: Final = ("layoff", "downsizing", "restructuring", "bankruptcy")
BUYING_SIGNAL_TYPES: Final = ("hiring", "funding", "expansion")
HUBSPOT_LEAD_STATUSES: Final = frozenset({"new", "open", "in_progress"})
FRESHSALES_LEAD_STATUSES: Final = frozenset({"new_lead", "contacted", "negotiation"})
FRESHSALES_CUSTOMER_STATUSES: Final = frozenset({"customer", "won"})
BOOST_TAGS: Final = frozenset({"decision maker", "champion", "key contact"})
PENALTY_TAGS: Final = frozenset({"churned", "bad fit", "competitor"})
CLOSED_DEAL_STAGES: Final = frozenset({"won", "lost", "closed won", "closed lost"})
STALLED_DEAL_DAYS: Final = 30
RECENT_CONTACT_WINDOW: Final = timedelta(days=30)
DEFAULT_SEARCH_RELEVANCE: Final = 0.5

_DEFAULT_WEIGHTS = IcpWeights()


@dataclass(frozen=True)
class ScoringContext:
    """Cohort the caller is looking for; drives the match factors."""

    verticals: tuple[str, ...] = field(default_factory=tuple)
    regions: tuple[str, ...] = field(default_factory=tuple)
    sizes: tuple[str, ...] = field(default_factory=tuple)
    signals: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_filters(
        cls,
        filters: FilterState | None,
        entities: ExtractedEntities | None = None,
    ) -> "ScoringContext":
        def _merge(*groups: Iterable[str]) -> tuple[str, ...]:
            merged: list[str] = []
            for group in groups:
                for value in group:
                    if value and value not in merged:
                        merged.append(value)
            return tuple(merged)

        filters = filters or FilterState()
        entities = entities or ExtractedEntities()
        return cls(
            verticals=_merge(filters.verticals, entities.verticals),
            regions=_merge(filters.regions, entities.regions),
            sizes=_merge(filters.sizes),
            signals=_merge(filters.signals, entities.signals),
        )


def size_matches_bucket(employee_count: int, bucket: str) -> bool:
    if bucket == "1-50":
        return 1 <= employee_count <= 50
    if bucket == "51-200":
        return 51 <= employee_count <= 200
    if bucket == "201-1000":
        return 201 <= employee_count <= 1000
    if bucket == "1000+":
        return employee_count >= 1000
    return False


def has_negative_signals(signals: Iterable[Signal]) -> bool:
    for signal in signals:
        text = f"{signal.title} {signal.description}".lower()
        if any(keyword in text for keyword in NEGATIVE_SIGNAL_KEYWORDS):
            return True
    return False


def calculate_icp_score(
    record: CompanyRecord,
    weights: IcpWeights | None = None,
    context: ScoringContext | None = None,
) -> IcpScoreResult:
    """Score ``record`` against the ICP; contributions always sum to the score."""
    w = weights or _DEFAULT_WEIGHTS
    ctx = context or ScoringContext()
    breakdown: list[IcpBreakdownItem] = []

    def add(factor: str, points: int, matched: bool) -> None:
        breakdown.append(IcpBreakdownItem(factor=factor, contribution=points, matched=matched))

    vertical_text = f"{record.vertical} {record.industry}".lower()
    vertical_matched = any(value.lower() in vertical_text for value in ctx.verticals if value)
    add(
        f"Vertical: {record.vertical or record.industry}" if vertical_matched else "Vertical match",
        w.vertical_match if vertical_matched else 0,
        vertical_matched,
    )

    size_matched = record.employee_count > 0 and any(
        size_matches_bucket(record.employee_count, bucket) for bucket in ctx.sizes
    )
    add(
        f"Size: {record.employee_count:,} emp" if size_matched else "Size match",
        w.size_match if size_matched else 0,
        size_matched,
    )

    region_text = f"{record.region} {record.location}".lower()
    region_matched = any(value.lower() in region_text for value in ctx.regions if value)
    add(
        f"Region: {record.region or record.location}" if region_matched else "Region match",
        w.region_match if region_matched else 0,
        region_matched,
    )

    buying_types = [signal.type for signal in record.signals if signal.type in BUYING_SIGNAL_TYPES]
    add(
        f"Signals: {', '.join(dict.fromkeys(buying_types))}" if buying_types else "Buying signals",
        w.buying_signals if buying_types else 0,
        bool(buying_types),
    )

    if has_negative_signals(record.signals):
        add("Negative signals detected", w.negative_signals, True)

    if "exa" in record.sources:
        relevance = (
            record.search_relevance
            if record.search_relevance is not None
            else DEFAULT_SEARCH_RELEVANCE
        )
        points = round(w.search_relevance * relevance)
        add(f"Exa relevance: {round(relevance * 100)}%", points, points > 0)

    if record.hubspot_status == "closed_won":
        add("HubSpot: existing customer", w.hubspot_customer, True)
    elif record.hubspot_status in HUBSPOT_LEAD_STATUSES:
        add("HubSpot: active lead", w.hubspot_lead, True)

    if record.freshsales_status in FRESHSALES_CUSTOMER_STATUSES:
        add("Freshsales: existing customer", w.freshsales_customer, True)
    elif record.freshsales_status in FRESHSALES_LEAD_STATUSES:
        add("Freshsales: active lead", w.freshsales_lead, True)

    intel = record.freshsales_intel
    if intel is not None:
        tags = {tag.strip().lower() for tag in intel.contact_tags}
        if tags & BOOST_TAGS:
            add("Freshsales: positive contact tag", w.freshsales_tag_boost, True)
        if tags & PENALTY_TAGS:
            add("Freshsales: negative contact tag", w.freshsales_tag_penalty, True)

        stalled = next(
            (
                deal
                for deal in intel.deals
                if deal.days_in_stage > STALLED_DEAL_DAYS
                and deal.stage.strip().lower() not in CLOSED_DEAL_STAGES
            ),
            None,
        )
        if stalled is not None:
            add(f"Freshsales: deal stalled {stalled.days_in_stage}d", w.freshsales_deal_stalled, True)

        if intel.last_contact_date is not None:
            contacted = intel.last_contact_date
            if contacted.tzinfo is None:
                contacted = contacted.replace(tzinfo=record.last_refreshed.tzinfo)
            age = record.last_refreshed - contacted
            if timedelta(0) <= age <= RECENT_CONTACT_WINDOW:
                add("Freshsales: recent contact", w.freshsales_recent_contact, True)

    raw_score = sum(item.contribution for item in breakdown)
    score = _clamp(raw_score, SCORE_FLOOR, SCORE_CEILING)

    # Positives first by magnitude, then zero/negative by magnitude.
    breakdown.sort(key=lambda item: (item.contribution <= 0, -abs(item.contribution)))
    if score != raw_score:
        breakdown.append(
            IcpBreakdownItem(factor=CLAMP_FACTOR, contribution=score - raw_score, matched=False)
        )
    return IcpScoreResult(score=score, breakdown=breakdown)


def _clamp(value: int, lower: int, upper: int) -> int:
    return max(lower, min(upper, value))
