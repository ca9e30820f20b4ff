"""Engine selection under shared usage budgets and circuit state."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Final

from prospector.services.discovery.circuit_breaker import CircuitBreaker
from prospector.services.discovery.usage import EngineUsageCounter

logger = logging.getLogger(__name__)

EXA: Final = "exa"
PARALLEL: Final = "parallel"
SERPER: Final = "serper"
DEFAULT_BUDGETS: Final[dict[str, int]] = {EXA: 5, PARALLEL: 800, SERPER: 100}


class EngineRouter:
    """Picks the engine for each request type and tracks usage against budgets."""

    def __init__(
        self,
        *,
        available: Iterable[str],
        counter: EngineUsageCounter | None = None,
        breaker: CircuitBreaker | None = None,
    ) -> None:
        self._available = frozenset(available)
        self._counter = counter or EngineUsageCounter(DEFAULT_BUDGETS)
        self._breaker = breaker or CircuitBreaker()

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    def available_engines(self) -> list[str]:
        return sorted(self._available)

    def is_available(self, engine: str) -> bool:
        return engine in self._available

    def is_under_budget(self, engine: str) -> bool:
        return self._counter.is_under_budget(engine)

    def is_healthy(self, engine: str) -> bool:
        return self.is_available(engine) and not self._breaker.is_open(engine)

    def pick_discovery_engine(self) -> str:
        return self._pick(preferred=PARALLEL, reserve=EXA)

    def pick_name_engine(self) -> str:
        return self._pick(preferred=SERPER, reserve=EXA)

    def is_exa_fallback_allowed(self) -> bool:
        return self.is_available(EXA) and self.is_under_budget(EXA)

    def record_usage(self, engine: str) -> int:
        count = self._counter.increment(engine)
        logger.info(
            "router.usage.recorded",
            extra={"engine": engine, "count": count, "budget": self._counter.budget(engine)},
        )
        return count

    def release_usage(self, engine: str) -> int:
        count = self._counter.release(engine)
        logger.info("router.usage.released", extra={"engine": engine, "count": count})
        return count

    def get_usage_summary(self) -> dict[str, dict[str, Any]]:
        return self._counter.snapshot()

    def _pick(self, *, preferred: str, reserve: str) -> str:
        for engine in (preferred, reserve):
            if self.is_healthy(engine) and self.is_under_budget(engine):
                return engine
        # Every engine is over budget or tripped; degrade rather than refuse.
        engine = preferred if self.is_available(preferred) else reserve
        logger.warning(
            "router.degraded_pick",
            extra={"engine": engine, "preferred": preferred, "reserve": reserve},
        )
        return engine
