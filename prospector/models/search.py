"""Request and response models for company discovery."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from prospector.models.company import CompanyRecord

SizeBucket = Literal["1-50", "51-200", "201-1000", "1000+"]
SearchErrorCode = Literal[
    "TIMEOUT",
    "RATE_LIMITED",
    "AUTH_FAILED",
    "NETWORK_ERROR",
    "NO_ENGINE_AVAILABLE",
    "ALL_ENGINES_FAILED",
    "EMPTY_RESULTS",
    "UNKNOWN",
]


class FilterState(BaseModel):
    """Structured filters selected alongside (or instead of) free text."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    sources: list[str] = Field(default_factory=list)
    verticals: list[str] = Field(default_factory=list)
    regions: list[str] = Field(default_factory=list)
    sizes: list[SizeBucket] = Field(default_factory=list)
    signals: list[str] = Field(default_factory=list)
    statuses: list[str] = Field(default_factory=list)
    hide_excluded: bool = True

    def is_empty(self) -> bool:
        return not any(
            (self.sources, self.verticals, self.regions, self.sizes, self.signals, self.statuses)
        )


class ExtractedEntities(BaseModel):
    verticals: list[str] = Field(default_factory=list)
    regions: list[str] = Field(default_factory=list)
    signals: list[str] = Field(default_factory=list)


class SearchErrorDetail(BaseModel):
    """User-facing description of a failed engine call."""

    code: SearchErrorCode
    message: str
    engine: str | None = None
    retryable: bool = False
    suggested_action: str | None = None


class SearchMeta(BaseModel):
    engine_used: str = "none"
    total_duration_ms: int = 0
    enriched_count: int = 0
    unenriched_count: int = 0
    cache_hit: bool = False
    engines_attempted: list[str] = Field(default_factory=list)
    usage: dict[str, dict[str, Any]] = Field(default_factory=dict)


class DiscoveryRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    free_text: str = ""
    filters: FilterState = Field(default_factory=FilterState)

    def is_empty(self) -> bool:
        return not self.free_text.strip() and self.filters.is_empty()


class DiscoveryResponse(BaseModel):
    """Merged, scored companies plus diagnostics for a single discovery request."""

    companies: list[CompanyRecord] = Field(default_factory=list)
    extracted_entities: ExtractedEntities = Field(default_factory=ExtractedEntities)
    search_engine: str = "none"
    excluded_count: int = 0
    errors: list[SearchErrorDetail] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    query_simplified: bool = False
    did_you_mean: str | None = None
    error: SearchErrorDetail | None = None
    meta: SearchMeta = Field(default_factory=SearchMeta)
