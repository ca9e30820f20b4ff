"""Client for the Parallel cohort-discovery search API."""

from __future__ import annotations

import os
from typing import Any

import httpx

from prospector.clients.base import (
    EngineResult,
    HttpEngineClient,
    domain_from_url,
    is_noise_domain,
    position_relevance,
    unique_by_domain,
)
from prospector.models.company import CompanyRecord
from prospector.services.discovery.cache import SearchCache

PARALLEL_BETA_HEADER = "search-extract-2025-10-10"
OVERFETCH = 10


class ParallelClient(HttpEngineClient):
    """Primary discovery engine for descriptive cohort queries."""

    name = "parallel"
    env_key = "PARALLEL_API_KEY"

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://api.parallel.ai",
        timeout: float = 4.0,
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
    def from_env(cls) -> "ParallelClient":
        """Instantiate the client using the PARALLEL_API_KEY environment variable."""
        return cls(os.getenv("PARALLEL_API_KEY", ""))

    def _headers(self) -> dict[str, str]:
        return {"x-api-key": self._api_key, "parallel-beta": PARALLEL_BETA_HEADER}

    async def _search(self, query: str, *, limit: int) -> EngineResult:
        payload = {
            "objective": (
                f"Find companies matching: {query}. "
                "Focus on company websites, not news articles or directories."
            ),
            "search_queries": [query],
            "max_results": limit + OVERFETCH,
            "excerpts": {"max_chars_per_result": 2000},
        }
        data = await self._post_json("/v1beta/search", payload)
        results = self._require_list(data, "results", optional=True)

        records = [normalize_parallel_result(entry) for entry in results]
        kept = unique_by_domain(
            record for record in records if record.domain and not is_noise_domain(record.domain)
        )[:limit]
        kept = [
            record.model_copy(update={"search_relevance": position_relevance(index, len(kept))})
            for index, record in enumerate(kept)
        ]
        # Parallel has no scores; result count stands in for quality.
        if len(kept) >= 3:
            avg_relevance = 0.5
        elif kept:
            avg_relevance = 0.2
        else:
            avg_relevance = 0.0
        return EngineResult(records=kept, avg_relevance=avg_relevance)


def normalize_parallel_result(entry: dict[str, Any]) -> CompanyRecord:
    url = str(entry.get("url") or "")
    domain = domain_from_url(url)
    excerpts = entry.get("excerpts") or []
    description = " ".join(str(item) for item in excerpts if item)[:500]
    return CompanyRecord(
        domain=domain,
        name=str(entry.get("title") or domain),
        description=description,
        website=url,
        sources=["parallel"],
    )
