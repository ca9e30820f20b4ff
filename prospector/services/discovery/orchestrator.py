"""Search orchestrator: classify, route, call with retry, fall back, merge and score."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Collection, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from prospector.clients.base import DiscoveryEngine, EngineResult
from prospector.clients.registry import build_engine_adapters
from prospector.config import Settings, settings
from prospector.models.company import CompanyRecord
from prospector.models.icp import IcpWeights
from prospector.models.search import (
    DiscoveryRequest,
    DiscoveryResponse,
    ExtractedEntities,
    FilterState,
    SearchErrorDetail,
    SearchMeta,
)
from prospector.observability.metrics import MetricsReporter, metrics as default_metrics
from prospector.services.discovery.cache import InMemorySearchCache, SearchCache, search_cache_key
from prospector.services.discovery.circuit_breaker import CircuitBreaker
from prospector.services.discovery.dedup import deduplicate_companies, normalize_domain
from prospector.services.discovery.errors import classify_error
from prospector.services.discovery.query_builder import (
    build_search_query,
    looks_like_company_name,
    simplify_query,
    strip_legal_suffix,
)
from prospector.services.discovery.reformulation import (
    KeywordReformulator,
    OpenAIReformulator,
    QueryReformulator,
    Reformulation,
)
from prospector.services.discovery.retry import RetryPolicy, SleepFn, with_retry
from prospector.services.discovery.router import EXA, EngineRouter
from prospector.services.discovery.usage import EngineUsageCounter
from prospector.services.scoring.icp import ScoringContext, calculate_icp_score

logger = logging.getLogger(__name__)

NAME_LOOKUP = "name"
COHORT_DISCOVERY = "discovery"


class CompanyEnricher(Protocol):
    """Independent source (e.g. a CRM) contributing extra records for merge."""

    async def enrich(self, records: Sequence[CompanyRecord]) -> list[CompanyRecord]:
        ...


class ExclusionList(Protocol):
    """Domains or company names the caller never wants to see."""

    async def load(self) -> Collection[str]:
        ...


class StaticExclusionList:
    def __init__(self, entries: Collection[str] = ()) -> None:
        self._entries = frozenset(normalize_domain(entry) for entry in entries if entry.strip())

    async def load(self) -> Collection[str]:
        return self._entries


@dataclass(frozen=True)
class EngineAttempt:
    engine: str
    result: EngineResult | None = None
    error: Exception | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class ChainState:
    """Attempts made so far while walking a fallback chain."""

    attempts: list[EngineAttempt] = field(default_factory=list)

    @property
    def last(self) -> EngineAttempt | None:
        return self.attempts[-1] if self.attempts else None

    @property
    def attempted_engines(self) -> list[str]:
        return [attempt.engine for attempt in self.attempts]

    @property
    def all_failed(self) -> bool:
        return bool(self.attempts) and all(attempt.failed for attempt in self.attempts)

    def records(self) -> list[CompanyRecord]:
        collected: list[CompanyRecord] = []
        for attempt in self.attempts:
            if attempt.result is not None:
                collected.extend(attempt.result.records)
        return collected

    def engine_used(self) -> str | None:
        successful = [attempt.engine for attempt in self.attempts if not attempt.failed]
        return successful[-1] if successful else None


@dataclass(frozen=True)
class FallbackTier:
    """One step of a fallback chain: call ``engine`` when ``precondition`` holds."""

    engine: str
    precondition: Callable[[ChainState], bool]


@dataclass(frozen=True)
class CachedSearch:
    engine: str
    records: list[CompanyRecord]


def always(_: ChainState) -> bool:
    return True


def weak_or_failed(*, min_results: int, min_relevance: float) -> Callable[[ChainState], bool]:
    """Precondition for cohort fallback: previous tier failed, or was small AND low-relevance."""

    def _check(state: ChainState) -> bool:
        last = state.last
        if last is None or last.failed or last.result is None:
            return True
        result = last.result
        return len(result.records) < min_results and result.avg_relevance < min_relevance

    return _check


def too_few_results(*, min_results: int) -> Callable[[ChainState], bool]:
    """Precondition for name-lookup fallback: previous tier failed or found too little."""

    def _check(state: ChainState) -> bool:
        last = state.last
        if last is None or last.failed or last.result is None:
            return True
        return len(last.result.records) < min_results

    return _check


def when_all(*checks: Callable[[ChainState], bool]) -> Callable[[ChainState], bool]:
    def _check(state: ChainState) -> bool:
        return all(check(state) for check in checks)

    return _check


class DiscoveryOrchestrator:
    """Runs one discovery request end to end. Shared state lives only in router and cache."""

    def __init__(
        self,
        *,
        adapters: Mapping[str, DiscoveryEngine],
        router: EngineRouter,
        cache: SearchCache | None = None,
        reformulator: QueryReformulator | None = None,
        config: Settings | None = None,
        weights: IcpWeights | None = None,
        retry_policy: RetryPolicy | None = None,
        enrichment: CompanyEnricher | None = None,
        exclusions: ExclusionList | None = None,
        metrics_reporter: MetricsReporter | None = None,
        sleep: SleepFn | None = None,
    ) -> None:
        self._adapters = dict(adapters)
        self._router = router
        self._cache = cache
        self._reformulator = reformulator or KeywordReformulator()
        self._fallback_reformulator = KeywordReformulator()
        self._config = config or settings
        self._weights = weights or IcpWeights()
        self._retry_policy = retry_policy or RetryPolicy(
            max_retries=self._config.retry_max_retries,
            base_delay_ms=self._config.retry_base_delay_ms,
            max_delay_ms=self._config.retry_max_delay_ms,
        )
        self._enrichment = enrichment
        self._exclusions = exclusions
        self._metrics = metrics_reporter or default_metrics
        self._sleep = sleep

    @property
    def router(self) -> EngineRouter:
        return self._router

    async def aclose(self) -> None:
        for adapter in self._adapters.values():
            await adapter.aclose()

    def build_fallback_chain(self, kind: str, primary: str) -> list[FallbackTier]:
        """Ordered tiers for a request kind; the reserve engine is gated by its budget."""
        def budget_gate(_: ChainState) -> bool:
            return self._router.is_exa_fallback_allowed()

        if kind == NAME_LOOKUP:
            need_more = too_few_results(min_results=self._config.name_min_results)
        else:
            need_more = weak_or_failed(
                min_results=self._config.discovery_min_results,
                min_relevance=self._config.discovery_min_relevance,
            )
        return [
            FallbackTier(engine=primary, precondition=always),
            FallbackTier(engine=EXA, precondition=when_all(need_more, budget_gate)),
        ]

    async def discover(self, request: DiscoveryRequest) -> DiscoveryResponse:
        start = time.perf_counter()
        response = DiscoveryResponse()
        if request.is_empty():
            return self._finish(response, start)

        free_text = request.free_text.strip()
        filters = request.filters
        is_name = looks_like_company_name(free_text)
        kind = NAME_LOOKUP if is_name else COHORT_DISCOVERY

        if is_name:
            primary_query = free_text
            entities = ExtractedEntities()
        else:
            reformulation = await self._reformulate(free_text, filters)
            primary_query = (
                reformulation.queries[0]
                if reformulation.queries
                else build_search_query(filters, free_text)
            )
            entities = reformulation.entities
        query = strip_legal_suffix(primary_query)
        response.extracted_entities = entities

        if not self._adapters:
            detail = SearchErrorDetail(
                code="NO_ENGINE_AVAILABLE",
                message="No discovery engine is configured.",
                retryable=False,
                suggested_action="Configure at least one discovery engine API key.",
            )
            response.errors.append(detail)
            response.error = detail
            logger.error("discovery.no_engine", extra={"query": query[:120]})
            return self._finish(response, start)

        limit = self._config.name_result_limit if is_name else self._config.discovery_result_limit
        cache_key = search_cache_key(query, filters, kind=kind)
        cached = await self._cache.get(cache_key) if self._cache is not None else None

        if isinstance(cached, CachedSearch):
            records = [record.model_copy(deep=True) for record in cached.records]
            engine_used = cached.engine
            response.meta.cache_hit = True
            self._metrics.search_cache_hit(kind)
            logger.info("discovery.cache.hit", extra={"kind": kind, "query": query[:120]})
        else:
            primary = self._pick_primary(kind)
            state = await self._run_chain(self.build_fallback_chain(kind, primary), query, limit)
            response.meta.engines_attempted = state.attempted_engines
            response.errors.extend(
                classify_error(attempt.error, attempt.engine)
                for attempt in state.attempts
                if attempt.error is not None
            )

            if state.all_failed:
                retryable = any(error.retryable for error in response.errors)
                response.error = SearchErrorDetail(
                    code="ALL_ENGINES_FAILED",
                    message="Every discovery engine failed for this search.",
                    engine=state.attempts[-1].engine,
                    retryable=retryable,
                    suggested_action="Try again shortly." if retryable else "Check engine configuration.",
                )
                response.search_engine = state.attempts[-1].engine
                response.meta.engine_used = response.search_engine
                logger.error(
                    "discovery.all_engines_failed",
                    extra={"engines": state.attempted_engines, "query": query[:120]},
                )
                return self._finish(response, start)

            records = state.records()
            engine_used = state.engine_used() or primary

            if not records and free_text:
                records = await self._auto_rephrase(response, free_text, query, engine_used, limit)

            if records and self._cache is not None:
                await self._cache.set(
                    cache_key,
                    CachedSearch(engine=engine_used, records=records),
                    self._config.search_cache_ttl_minutes * 60,
                )

        response.search_engine = engine_used
        response.meta.engine_used = engine_used

        records = await self._enrich(response, records)
        merged = deduplicate_companies(records)
        if filters.hide_excluded and self._exclusions is not None:
            merged, response.excluded_count = await self._apply_exclusions(merged)
        merged = merged[: self._config.max_results]

        context = ScoringContext.from_filters(filters, entities)
        response.companies = self._score(merged, context)
        _flag_exact_match(response.companies, query)

        response.meta.enriched_count = sum(1 for record in response.companies if len(record.sources) > 1)
        response.meta.unenriched_count = len(response.companies) - response.meta.enriched_count
        if not response.companies:
            response.warnings.append("No companies matched this search.")
        return self._finish(response, start)

    def _pick_primary(self, kind: str) -> str:
        engine = (
            self._router.pick_name_engine()
            if kind == NAME_LOOKUP
            else self._router.pick_discovery_engine()
        )
        if engine in self._adapters:
            return engine
        return next(iter(self._adapters))

    async def _run_chain(self, tiers: Sequence[FallbackTier], query: str, limit: int) -> ChainState:
        state = ChainState()
        for tier in tiers:
            if tier.engine not in self._adapters or tier.engine in state.attempted_engines:
                continue
            if not tier.precondition(state):
                continue
            if state.attempts:
                logger.info(
                    "discovery.fallback",
                    extra={"from": state.last.engine, "to": tier.engine, "query": query[:120]},
                )
            state.attempts.append(await self._call_engine(tier.engine, query, limit))
        return state

    async def _call_engine(self, engine: str, query: str, limit: int) -> EngineAttempt:
        adapter = self._adapters[engine]
        policy = self._retry_policy.with_label(engine)
        # Charged up front. Failed and cancelled calls keep the charge;
        # adapter cache hits give it back.
        self._router.record_usage(engine)
        start = time.perf_counter()
        try:
            result = await with_retry(
                lambda: adapter.search(query, limit=limit), policy, sleep=self._sleep
            )
        except Exception as exc:
            code = getattr(exc, "code", type(exc).__name__)
            self._router.breaker.record_failure(engine)
            self._metrics.engine_error(engine, code, (time.perf_counter() - start) * 1000)
            logger.warning(
                "discovery.engine.failed",
                extra={
                    "engine": engine,
                    "code": code,
                    "error": str(exc)[:200],
                    "query": query[:120],
                },
            )
            return EngineAttempt(engine=engine, error=exc)

        if result.cache_hit:
            self._router.release_usage(engine)
        self._router.breaker.record_success(engine)
        self._metrics.engine_call(
            engine, (time.perf_counter() - start) * 1000, cache_hit=result.cache_hit
        )
        logger.info(
            "discovery.engine.completed",
            extra={
                "engine": engine,
                "results": len(result.records),
                "avg_relevance": result.avg_relevance,
                "cache_hit": result.cache_hit,
            },
        )
        return EngineAttempt(engine=engine, result=result)

    async def _reformulate(self, text: str, filters: FilterState) -> Reformulation:
        try:
            return await self._reformulator.reformulate(text, filters)
        except Exception as exc:
            logger.warning(
                "reformulation.fallback",
                extra={"error": type(exc).__name__, "query": text[:120]},
            )
            return await self._fallback_reformulator.reformulate(text, filters)

    async def _auto_rephrase(
        self,
        response: DiscoveryResponse,
        free_text: str,
        query: str,
        engine: str,
        limit: int,
    ) -> list[CompanyRecord]:
        simplified = simplify_query(free_text)
        rephrased = strip_legal_suffix(simplified)
        if not rephrased or rephrased.lower() == query.lower() or engine not in self._adapters:
            return []
        if engine == EXA and not self._router.is_exa_fallback_allowed():
            logger.info(
                "discovery.auto_rephrase.skipped",
                extra={"engine": engine, "reason": "budget", "simplified": simplified[:120]},
            )
            return []
        attempt = await self._call_engine(engine, rephrased, limit)
        if attempt.error is not None:
            response.errors.append(classify_error(attempt.error, engine))
            return []
        if attempt.result is None or not attempt.result.records:
            return []
        response.query_simplified = True
        response.did_you_mean = simplified
        response.warnings.append(
            f'No results for "{free_text}". Showing results for "{simplified}" instead.'
        )
        logger.info(
            "discovery.auto_rephrase",
            extra={"engine": engine, "original": free_text[:120], "simplified": simplified[:120]},
        )
        return list(attempt.result.records)

    async def _enrich(
        self, response: DiscoveryResponse, records: list[CompanyRecord]
    ) -> list[CompanyRecord]:
        if self._enrichment is None or not records:
            return records
        try:
            extra = await self._enrichment.enrich(records)
        except Exception as exc:
            response.warnings.append("CRM enrichment unavailable; showing search results only.")
            logger.warning(
                "discovery.enrichment.failed",
                extra={"error": type(exc).__name__, "detail": str(exc)[:200]},
            )
            return records
        return [*records, *extra]

    async def _apply_exclusions(
        self, records: list[CompanyRecord]
    ) -> tuple[list[CompanyRecord], int]:
        assert self._exclusions is not None
        excluded = {normalize_domain(entry) for entry in await self._exclusions.load()}
        if not excluded:
            return records, 0
        kept = [
            record
            for record in records
            if normalize_domain(record.domain) not in excluded
            and record.name.strip().lower() not in excluded
        ]
        return kept, len(records) - len(kept)

    def _score(self, records: list[CompanyRecord], context: ScoringContext) -> list[CompanyRecord]:
        scored: list[CompanyRecord] = []
        for record in records:
            result = calculate_icp_score(record, self._weights, context)
            scored.append(
                record.model_copy(
                    update={"icp_score": result.score, "icp_breakdown": result.breakdown}
                )
            )
        scored.sort(key=lambda record: record.icp_score, reverse=True)
        return scored

    def _finish(self, response: DiscoveryResponse, start: float) -> DiscoveryResponse:
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        meta: SearchMeta = response.meta
        meta.total_duration_ms = elapsed_ms
        meta.usage = self._router.get_usage_summary()
        self._metrics.discovery_latency(response.search_engine, elapsed_ms, cache_hit=meta.cache_hit)
        return response


def _flag_exact_match(records: list[CompanyRecord], query: str) -> None:
    target = strip_legal_suffix(query).lower()
    if not target:
        return
    for index, record in enumerate(records):
        name = strip_legal_suffix(record.name).lower()
        domain_root = normalize_domain(record.domain).split(".")[0]
        if name == target or domain_root == target.replace(" ", ""):
            records[index] = record.model_copy(update={"exact_match": True})
            return


def build_discovery_orchestrator(config: Settings | None = None) -> DiscoveryOrchestrator:
    """Wire adapters, router, cache and reformulation from settings."""
    resolved = config or settings
    cache = InMemorySearchCache()
    adapters = build_engine_adapters(resolved, cache=cache)
    router = EngineRouter(
        available=adapters.keys(),
        counter=EngineUsageCounter(resolved.engine_budgets),
        breaker=CircuitBreaker(
            failure_threshold=resolved.circuit_failure_threshold,
            open_seconds=resolved.circuit_open_seconds,
        ),
    )
    reformulator: QueryReformulator
    if resolved.openai_api_key:
        reformulator = OpenAIReformulator(api_key=resolved.openai_api_key, cache=cache)
    else:
        reformulator = KeywordReformulator()
    weights = (
        IcpWeights.from_file(resolved.icp_weights_path) if resolved.icp_weights_path else IcpWeights()
    )
    return DiscoveryOrchestrator(
        adapters=adapters,
        router=router,
        cache=cache,
        reformulator=reformulator,
        config=resolved,
        weights=weights,
        exclusions=StaticExclusionList(resolved.excluded_companies),
    )


_ORCHESTRATOR_INSTANCE: DiscoveryOrchestrator | None = None


def get_discovery_orchestrator() -> DiscoveryOrchestrator:
    """Singleton accessor used by API routes."""
    global _ORCHESTRATOR_INSTANCE  # noqa: PLW0603
    if _ORCHESTRATOR_INSTANCE is None:
        _ORCHESTRATOR_INSTANCE = build_discovery_orchestrator()
    return _ORCHESTRATOR_INSTANCE


async def shutdown_discovery_orchestrator() -> None:
    global _ORCHESTRATOR_INSTANCE  # noqa: PLW0603
    if _ORCHESTRATOR_INSTANCE is not None:
        await _ORCHESTRATOR_INSTANCE.aclose()
        _ORCHESTRATOR_INSTANCE = None
