"""Free-text reformulation into engine queries plus extracted entities."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from openai import AsyncOpenAI, OpenAIError

from prospector.config import settings
from prospector.models.search import ExtractedEntities, FilterState
from prospector.services.discovery.cache import SearchCache, search_cache_key
from prospector.services.discovery.query_builder import build_search_query, extract_entities

logger = logging.getLogger(__name__)

MAX_QUERIES = 3

REFORMULATION_PROMPT = """You are an expert B2B sales research assistant. Given a search query and optional \
filters, expand it into 2-3 semantically rich search queries that would find relevant companies via a \
neural search engine, and extract the verticals, regions and buying signals it mentions.

Rules:
- Each query is a natural language sentence describing the type of company
- Include industry-specific terminology and synonyms
- Incorporate any signals (hiring, funding, expansion) naturally
- Keep each query under 150 characters
- Return JSON: {{"queries": ["..."], "entities": {{"verticals": [], "regions": [], "signals": []}}}}

Filters context:
- Verticals: {verticals}
- Regions: {regions}
- Size signals: {sizes}
- Active signals: {signals}

User query: {query}"""


@dataclass(frozen=True)
class Reformulation:
    queries: list[str]
    entities: ExtractedEntities = field(default_factory=ExtractedEntities)


class QueryReformulator(Protocol):
    """Turns descriptive free text into engine queries and structured entities."""

    async def reformulate(self, text: str, filters: FilterState) -> Reformulation:
        ...


class KeywordReformulator:
    """Deterministic reformulation built from filters and keyword matching."""

    async def reformulate(self, text: str, filters: FilterState) -> Reformulation:
        query = build_search_query(filters, text)
        return Reformulation(
            queries=[query] if query else [],
            entities=extract_entities(text, filters),
        )


class OpenAIReformulator:
    """LLM-backed reformulation that falls back to keywords on any provider failure."""

    def __init__(
        self,
        *,
        client: AsyncOpenAI | None = None,
        api_key: str | None = None,
        model: str | None = None,
        temperature: float | None = None,
        cache: SearchCache | None = None,
        cache_ttl_seconds: float | None = None,
        fallback: QueryReformulator | None = None,
    ) -> None:
        if client is None:
            resolved_key = api_key or settings.openai_api_key
            if not resolved_key:
                raise ValueError("OPENAI_API_KEY is required to reformulate queries online.")
            client = AsyncOpenAI(api_key=resolved_key)
        self._client = client
        self._model = model or settings.reformulation_model
        self._temperature = (
            settings.reformulation_temperature if temperature is None else temperature
        )
        self._cache = cache
        self._cache_ttl_seconds = (
            cache_ttl_seconds
            if cache_ttl_seconds is not None
            else settings.reformulation_cache_ttl_minutes * 60
        )
        self._fallback = fallback or KeywordReformulator()

    async def reformulate(self, text: str, filters: FilterState) -> Reformulation:
        key = search_cache_key(text, filters, kind="reformulation")
        if self._cache is not None:
            cached = await self._cache.get(key)
            if isinstance(cached, Reformulation):
                return cached

        try:
            raw = await self._complete(_render_prompt(text, filters))
            result = _parse_reformulation(raw, filters)
        except (OpenAIError, ValueError, TypeError) as exc:
            logger.warning(
                "reformulation.fallback",
                extra={"error": type(exc).__name__, "query": (text or "")[:120]},
            )
            return await self._fallback.reformulate(text, filters)

        if self._cache is not None:
            await self._cache.set(key, result, self._cache_ttl_seconds)
        return result

    async def _complete(self, prompt: str) -> str:
        response = await self._client.chat.completions.create(
            model=self._model,
            temperature=self._temperature,
            max_tokens=512,
            response_format={"type": "json_object"},
            messages=[{"role": "user", "content": prompt}],
        )
        choices = getattr(response, "choices", None) or []
        if not choices:
            raise ValueError("OpenAI response did not include any choices.")
        content = choices[0].message.content
        if not isinstance(content, str) or not content.strip():
            raise ValueError("OpenAI response did not include text output.")
        return content


def _render_prompt(text: str, filters: FilterState) -> str:
    return REFORMULATION_PROMPT.format(
        query=(text or "").strip() or build_search_query(filters),
        verticals=", ".join(filters.verticals) or "none",
        regions=", ".join(filters.regions) or "none",
        sizes=", ".join(filters.sizes) or "none",
        signals=", ".join(filters.signals) or "none",
    )


def _parse_reformulation(raw_text: str, filters: FilterState) -> Reformulation:
    payload: Any = json.loads(raw_text)
    if not isinstance(payload, dict):
        raise ValueError("Reformulation payload must be a JSON object.")
    queries = [
        str(query).strip() for query in payload.get("queries") or [] if str(query).strip()
    ][:MAX_QUERIES]
    if not queries:
        raise ValueError("Reformulation payload did not include queries.")
    entities_payload = payload.get("entities") or {}
    entities = ExtractedEntities.model_validate(entities_payload)
    merged = ExtractedEntities(
        verticals=_merge_unique(filters.verticals, entities.verticals),
        regions=_merge_unique(filters.regions, entities.regions),
        signals=_merge_unique(filters.signals, entities.signals),
    )
    return Reformulation(queries=queries, entities=merged)


def _merge_unique(first: list[str], second: list[str]) -> list[str]:
    merged: list[str] = []
    for value in [*first, *second]:
        if value and value not in merged:
            merged.append(value)
    return merged
