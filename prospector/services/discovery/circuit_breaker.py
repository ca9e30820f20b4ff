"""Per-engine circuit breaker."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock
from typing import Literal

logger = logging.getLogger(__name__)

CircuitState = Literal["closed", "open", "half_open"]


@dataclass
class _Circuit:
    state: CircuitState = "closed"
    failures: int = 0
    opened_at: float = 0.0


class CircuitBreaker:
    """Opens after consecutive failures, half-opens after a cool-down to let one probe through."""

    def __init__(
        self,
        *,
        failure_threshold: int = 3,
        open_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        self._failure_threshold = failure_threshold
        self._open_seconds = open_seconds
        self._clock = clock
        self._circuits: dict[str, _Circuit] = {}
        self._lock = Lock()

    def record_success(self, engine: str) -> None:
        with self._lock:
            circuit = self._circuits.setdefault(engine, _Circuit())
            if circuit.state != "closed":
                logger.info("circuit.closed", extra={"engine": engine})
            circuit.state = "closed"
            circuit.failures = 0

    def record_failure(self, engine: str) -> None:
        with self._lock:
            circuit = self._circuits.setdefault(engine, _Circuit())
            circuit.failures += 1
            if circuit.state == "half_open" or circuit.failures >= self._failure_threshold:
                if circuit.state != "open":
                    logger.warning(
                        "circuit.opened",
                        extra={"engine": engine, "failures": circuit.failures},
                    )
                circuit.state = "open"
                circuit.opened_at = self._clock()

    def is_open(self, engine: str) -> bool:
        with self._lock:
            circuit = self._circuits.get(engine)
            if circuit is None or circuit.state != "open":
                return False
            if self._clock() - circuit.opened_at >= self._open_seconds:
                circuit.state = "half_open"
                return False
            return True

    def state(self, engine: str) -> CircuitState:
        self.is_open(engine)
        with self._lock:
            circuit = self._circuits.get(engine)
            return circuit.state if circuit else "closed"

    def reset(self, engine: str | None = None) -> None:
        with self._lock:
            if engine is None:
                self._circuits.clear()
            else:
                self._circuits.pop(engine, None)
