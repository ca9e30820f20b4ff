"""Client for the Exa semantic company search API."""

from __future__ import annotations

import os
from typing import Any

import httpx

from prospector.clients.base import (
    EngineResult,
    HttpEngineClient,
    domain_from_url,
    is_noise_domain,
    unique_by_domain,
)
from prospector.models.company import CompanyRecord
from prospector.services.discovery.cache import SearchCache

MIN_EXA_RELEVANCE = 0.10
OVERFETCH = 10


class ExaClient(HttpEngineClient):
    """Relevance-ranked discovery engine, kept in reserve because of its small budget."""

    name = "exa"
    env_key = "EXA_API_KEY"

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://api.exa.ai",
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
        cache: SearchCache | None = None,
    ) -> None:
        super().__init__(
            api_key,
            base_url=base_url,
            timeout=timeout,
            http_client=http_client,
            cache=cache,
        )

    @classmethod
    def from_env(cls) -> "ExaClient":
        """Instantiate the client using the EXA_API_KEY environment variable."""
        return cls(os.getenv("EXA_API_KEY", ""))

    async def _search(self, query: str, *, limit: int) -> EngineResult:
        payload = {
            "query": query,
            "type": "auto",
            "category": "company",
            "numResults": limit + OVERFETCH,
            "contents": {"highlights": {"numSentences": 3, "highlightsPerUrl": 6}},
        }
        data = await self._post_json("/search", payload)
        results = self._require_list(data, "results")

        records = [normalize_exa_result(entry) for entry in results]
        kept = [
            record
            for record in records
            if record.domain
            and not is_noise_domain(record.domain)
            and (record.search_relevance if record.search_relevance is not None else 1.0)
            >= MIN_EXA_RELEVANCE
        ]
        kept = unique_by_domain(kept)[:limit]
        scores = [record.search_relevance for record in kept if record.search_relevance is not None]
        avg_relevance = round(sum(scores) / len(scores), 4) if scores else 0.0
        return EngineResult(records=kept, avg_relevance=avg_relevance)


def normalize_exa_result(entry: dict[str, Any]) -> CompanyRecord:
    """Map a raw Exa search hit onto a company record."""
    url = str(entry.get("url") or "")
    domain = domain_from_url(url)
    highlights = entry.get("highlights") or []
    description = " ".join(str(item) for item in highlights if item) or str(entry.get("summary") or "")
    score = entry.get("score")
    relevance = None
    if isinstance(score, (int, float)):
        relevance = max(0.0, min(float(score), 1.0))
    return CompanyRecord(
        domain=domain,
        name=str(entry.get("title") or domain),
        description=description[:500],
        website=url,
        sources=["exa"],
        search_relevance=relevance,
    )
