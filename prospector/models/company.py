"""Domain models for discovered companies."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field, conint, confloat, field_validator

SignalType = Literal["hiring", "funding", "expansion", "news"]
HubspotStatus = Literal["none", "new", "open", "in_progress", "closed_won", "closed_lost"]
FreshsalesStatus = Literal[
    "none", "new_lead", "contacted", "negotiation", "won", "lost", "customer"
]


class Signal(BaseModel):
    """Dated event attached to a company (hiring, funding, expansion, news)."""

    id: str
    company_domain: str
    type: SignalType
    title: str
    description: str = ""
    date: str = ""
    source_url: str | None = None
    source: str = ""


class FreshsalesDeal(BaseModel):
    stage: str
    days_in_stage: conint(ge=0) = 0  # type: ignore[valid-type]


class FreshsalesIntel(BaseModel):
    """CRM intelligence pulled from Freshsales for a company."""

    contact_tags: list[str] = Field(default_factory=list)
    deals: list[FreshsalesDeal] = Field(default_factory=list)
    last_contact_date: datetime | None = None


class IcpBreakdownItem(BaseModel):
    """Explainable contribution of a single ICP factor."""

    factor: str
    contribution: int
    matched: bool


class CompanyRecord(BaseModel):
    """A single company as reported by one or more sources."""

    domain: str
    name: str
    industry: str = ""
    vertical: str = ""
    employee_count: conint(ge=0) = 0  # type: ignore[valid-type]
    location: str = ""
    region: str = ""
    description: str = ""
    website: str = ""
    sources: list[str] = Field(default_factory=list)
    signals: list[Signal] = Field(default_factory=list)
    contact_count: conint(ge=0) = 0  # type: ignore[valid-type]
    icp_score: conint(ge=0, le=100) = 0  # type: ignore[valid-type]
    icp_breakdown: list[IcpBreakdownItem] = Field(default_factory=list)
    last_refreshed: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    revenue: str | None = None
    founded: str | None = None
    phone: str | None = None
    logo_url: str | None = None
    search_relevance: confloat(ge=0.0, le=1.0) | None = None  # type: ignore[valid-type]
    hubspot_status: HubspotStatus = "none"
    freshsales_status: FreshsalesStatus = "none"
    freshsales_intel: FreshsalesIntel | None = None
    exact_match: bool = False

    @field_validator("last_refreshed")
    @classmethod
    def _ensure_timezone(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
