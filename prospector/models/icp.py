"""ICP scoring weights and results."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from prospector.models.company import IcpBreakdownItem


class IcpWeights(BaseModel):
    """Point value of every ICP factor. Negative weights penalise a match."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    vertical_match: int = 30
    size_match: int = 20
    region_match: int = 10
    buying_signals: int = 20
    negative_signals: int = -30
    search_relevance: int = 10
    hubspot_lead: int = 15
    hubspot_customer: int = -50
    freshsales_lead: int = 10
    freshsales_customer: int = -40
    freshsales_recent_contact: int = 5
    freshsales_tag_boost: int = 15
    freshsales_tag_penalty: int = -20
    freshsales_deal_stalled: int = -10

    @classmethod
    def from_file(cls, path: str | Path) -> "IcpWeights":
        """Load admin-configured weights from a JSON document."""
        payload = json.loads(Path(path).expanduser().read_text(encoding="utf-8"))
        return cls.model_validate(payload)


class IcpScoreResult(BaseModel):
    score: int = Field(ge=0, le=100)
    breakdown: list[IcpBreakdownItem] = Field(default_factory=list)
