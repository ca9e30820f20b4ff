"""Client for the Serper web search API, used for company-name lookups."""

from __future__ import annotations

import os
import re
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

_TITLE_SUFFIX = re.compile(
    r"\s*[-–|]\s*(Wikipedia|LinkedIn|Crunchbase|Bloomberg|Reuters|Glassdoor|ZoomInfo|G2|Forbes|Yahoo Finance).*$",
    flags=re.IGNORECASE,
)
_TRAILING_PARENTHETICAL = re.compile(r"\s*\(.*?\)\s*$")


def clean_title(title: str) -> str:
    """Strip directory suffixes (" - Wikipedia", " | LinkedIn") from a result title."""
    cleaned = _TITLE_SUFFIX.sub("", title or "")
    cleaned = _TRAILING_PARENTHETICAL.sub("", cleaned)
    return cleaned.strip()


class SerperClient(HttpEngineClient):
    """Web-search engine preferred for exact company-name lookups."""

    name = "serper"
    env_key = "SERPER_API_KEY"

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://google.serper.dev",
        timeout: float = 8.0,
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
    def from_env(cls) -> "SerperClient":
        """Instantiate the client using the SERPER_API_KEY environment variable."""
        return cls(os.getenv("SERPER_API_KEY", ""))

    def _headers(self) -> dict[str, str]:
        return {"X-API-KEY": self._api_key}

    async def _search(self, query: str, *, limit: int) -> EngineResult:
        data = await self._post_json("/search", {"q": query, "num": limit})
        organic = self._require_list(data, "organic", optional=True)

        records = [
            record
            for record in (normalize_serper_result(entry) for entry in organic)
            if record.domain and not is_noise_domain(record.domain)
        ]
        graph = data.get("knowledgeGraph")
        if isinstance(graph, dict) and graph.get("website"):
            records = _promote_knowledge_graph(records, graph)

        kept = unique_by_domain(records)[:limit]
        kept = [
            record.model_copy(update={"search_relevance": position_relevance(index, len(kept))})
            for index, record in enumerate(kept)
        ]
        avg_relevance = (
            round(sum(record.search_relevance or 0.0 for record in kept) / len(kept), 4) if kept else 0.0
        )
        return EngineResult(records=kept, avg_relevance=avg_relevance)


def normalize_serper_result(entry: dict[str, Any]) -> CompanyRecord:
    link = str(entry.get("link") or "")
    domain = domain_from_url(link)
    return CompanyRecord(
        domain=domain,
        name=clean_title(str(entry.get("title") or "")) or domain,
        description=str(entry.get("snippet") or "")[:500],
        website=link,
        sources=["serper"],
    )


def _promote_knowledge_graph(
    records: list[CompanyRecord], graph: dict[str, Any]
) -> list[CompanyRecord]:
    """Put the knowledge-graph company first and flag it as the exact match."""
    website = str(graph["website"])
    domain = domain_from_url(website)
    if not domain or is_noise_domain(domain):
        return records
    title = str(graph.get("title") or "")
    description = str(graph.get("description") or "")
    for index, record in enumerate(records):
        if record.domain == domain:
            promoted = record.model_copy(
                update={
                    "name": title or record.name,
                    "description": description or record.description,
                    "exact_match": True,
                }
            )
            return [promoted, *records[:index], *records[index + 1 :]]
    promoted = CompanyRecord(
        domain=domain,
        name=title or domain,
        description=description,
        website=website,
        sources=["serper"],
        exact_match=True,
    )
    return [promoted, *records]
