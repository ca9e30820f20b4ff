"""Shared plumbing for the async discovery engine clients."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol
from urllib.parse import urlsplit

import httpx

from prospector.clients.errors import (
    HttpStatusError,
    ProviderError,
    ProviderSchemaError,
    ProviderTimeoutError,
    ProviderTransportError,
)
from prospector.models.company import CompanyRecord
from prospector.services.discovery.cache import SearchCache, search_cache_key

logger = logging.getLogger(__name__)

ENGINE_CACHE_TTL_SECONDS = 360 * 60

NOISE_DOMAINS = (
    "linkedin.com",
    "facebook.com",
    "twitter.com",
    "x.com",
    "instagram.com",
    "youtube.com",
    "tiktok.com",
    "crunchbase.com",
    "zoominfo.com",
    "glassdoor.com",
    "indeed.com",
    "bloomberg.com",
    "reuters.com",
    "wikipedia.org",
    "reddit.com",
    "medium.com",
    "github.com",
    "g2.com",
    "trustpilot.com",
    "yelp.com",
    "bbb.org",
    "dnb.com",
)


@dataclass(frozen=True)
class EngineResult:
    """Normalised output of one engine call."""

    records: list[CompanyRecord] = field(default_factory=list)
    cache_hit: bool = False
    avg_relevance: float = 0.0


class DiscoveryEngine(Protocol):
    """Uniform contract every discovery engine adapter satisfies."""

    name: str

    async def search(self, query: str, *, limit: int) -> EngineResult:
        ...

    async def aclose(self) -> None:
        ...


def domain_from_url(url: str) -> str:
    """Return the bare host of ``url`` without a leading ``www.``."""
    candidate = (url or "").strip()
    if not candidate:
        return ""
    if "://" not in candidate:
        candidate = f"https://{candidate}"
    host = (urlsplit(candidate).hostname or "").lower()
    return host[4:] if host.startswith("www.") else host


def is_noise_domain(domain: str) -> bool:
    return any(domain == noise or domain.endswith(f".{noise}") for noise in NOISE_DOMAINS)


def unique_by_domain(records: Iterable[CompanyRecord]) -> list[CompanyRecord]:
    seen: set[str] = set()
    unique: list[CompanyRecord] = []
    for record in records:
        if not record.domain or record.domain in seen:
            continue
        seen.add(record.domain)
        unique.append(record)
    return unique


def position_relevance(index: int, total: int) -> float:
    """Relevance for engines without scores: 1.0 for the first hit down to ~0.5."""
    return round(1.0 - (index / max(total, 1)) * 0.5, 2)


class HttpEngineClient:
    """Base async client: owns the HTTP session, maps failures, caches by query."""

    name = "engine"
    env_key = "ENGINE_API_KEY"

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str,
        timeout: float,
        http_client: httpx.AsyncClient | None = None,
        cache: SearchCache | None = None,
        cache_ttl_seconds: float = ENGINE_CACHE_TTL_SECONDS,
    ) -> None:
        if not api_key:
            raise ValueError(f"{self.env_key} is required to create a {type(self).__name__}.")
        self._api_key = api_key
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout)
        self._cache = cache
        self._cache_ttl_seconds = cache_ttl_seconds

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if self._owns_http_client:
            await self._http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def search(self, query: str, *, limit: int) -> EngineResult:
        """Run a search, serving repeated queries from the cache when configured."""
        if limit <= 0:
            raise ValueError("limit must be a positive integer.")
        key = search_cache_key(query, kind=f"engine:{self.name}", limit=limit)
        if self._cache is not None:
            cached = await self._cache.get(key)
            if isinstance(cached, EngineResult):
                logger.info("engine.cache.hit", extra={"provider": self.name, "query": query[:120]})
                return EngineResult(
                    records=[record.model_copy(deep=True) for record in cached.records],
                    cache_hit=True,
                    avg_relevance=cached.avg_relevance,
                )
        result = await self._search(query, limit=limit)
        if self._cache is not None and result.records:
            await self._cache.set(key, result, self._cache_ttl_seconds)
        return result

    async def _search(self, query: str, *, limit: int) -> EngineResult:
        raise NotImplementedError

    def _headers(self) -> dict[str, str]:
        return {"x-api-key": self._api_key}

    async def _post_json(self, path: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        try:
            response = await self._http.post(path, json=dict(payload), headers=self._headers())
        except httpx.TimeoutException as exc:
            raise ProviderTimeoutError(provider=self.name) from exc
        except httpx.TransportError as exc:
            raise ProviderTransportError(
                f"HTTP error calling {self.name}: {exc}", provider=self.name
            ) from exc
        except httpx.DecodingError as exc:
            raise ProviderSchemaError(
                f"Failed to decode {self.name} response body: {exc}", provider=self.name
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderError(
                f"Request to {self.name} failed: {exc}",
                code=f"{self.name.upper()}_REQUEST_ERR",
                provider=self.name,
            ) from exc

        if response.status_code >= 400:
            detail: str | None = None
            try:
                body = response.json()
                if isinstance(body, dict):
                    detail = body.get("message") or body.get("detail") or body.get("error")
            except ValueError:
                detail = response.text[:200] or None
            raise HttpStatusError(
                response.status_code,
                response.reason_phrase,
                provider=self.name,
                detail=detail if isinstance(detail, str) else None,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderSchemaError(
                f"Failed to decode {self.name} response JSON.", provider=self.name
            ) from exc
        if not isinstance(data, dict):
            raise ProviderSchemaError(f"{self.name} response must be a JSON object.", provider=self.name)
        return data

    def _require_list(self, data: Mapping[str, Any], key: str, *, optional: bool = False) -> list[dict[str, Any]]:
        entries = data.get(key)
        if entries is None and optional:
            return []
        if not isinstance(entries, list):
            raise ProviderSchemaError(f"`{key}` missing from {self.name} response.", provider=self.name)
        if not all(isinstance(entry, dict) for entry in entries):
            raise ProviderSchemaError(
                f"Entries in `{key}` must be JSON objects.", provider=self.name
            )
        return entries

