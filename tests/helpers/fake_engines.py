from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from prospector.clients.base import EngineResult
from prospector.clients.errors import HttpStatusError, ProviderTimeoutError
from prospector.models.company import CompanyRecord, Signal


def company(domain: str, *, source: str = "exa", **overrides) -> CompanyRecord:
    payload = {
        "domain": domain,
        "name": domain.split(".")[0].title(),
        "sources": [source],
        "last_refreshed": datetime(2025, 1, 1, tzinfo=UTC),
    }
    payload.update(overrides)
    return CompanyRecord(**payload)


def signal(signal_id: str, domain: str, *, kind: str = "hiring", title: str = "Hiring engineers") -> Signal:
    return Signal(id=signal_id, company_domain=domain, type=kind, title=title)


@dataclass
class EngineScenario:
    """Scripted outcomes returned by a fake engine, one per call. The last one repeats."""

    outcomes: list[EngineResult | Exception] = field(default_factory=list)

    @classmethod
    def results(cls, *domains: str, source: str, avg_relevance: float = 0.5, cache_hit: bool = False):
        records = [company(domain, source=source) for domain in domains]
        return cls([EngineResult(records=records, avg_relevance=avg_relevance, cache_hit=cache_hit)])

    @classmethod
    def failing(cls, error: Exception):
        return cls([error])


class FakeEngine:
    """Deterministic discovery engine fake that records every query."""

    def __init__(self, name: str, scenario: EngineScenario | None = None) -> None:
        self.name = name
        self._scenario = scenario or EngineScenario([EngineResult()])
        self.calls: list[tuple[str, int]] = []
        self.closed = False

    async def search(self, query: str, *, limit: int) -> EngineResult:
        self.calls.append((query, limit))
        outcomes = self._scenario.outcomes
        outcome = outcomes[min(len(self.calls) - 1, len(outcomes) - 1)]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def aclose(self) -> None:
        self.closed = True


def rate_limited(provider: str) -> HttpStatusError:
    return HttpStatusError(429, "Too Many Requests", provider=provider)


def not_found(provider: str) -> HttpStatusError:
    return HttpStatusError(404, "Not Found", provider=provider)


def timed_out(provider: str) -> ProviderTimeoutError:
    return ProviderTimeoutError(provider=provider)


async def no_sleep(_: float) -> None:
    return None
