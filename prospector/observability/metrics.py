from __future__ import annotations

import logging
import secrets
from typing import Any

from statsd import StatsClient

from prospector.config import settings

logger = logging.getLogger("prospector.metrics")

ENGINE_CALLS = "discovery.engine_calls"
ENGINE_ERRORS = "discovery.engine_errors"
ENGINE_LATENCY_MS = "discovery.engine_latency_ms"
SEARCH_CACHE_HIT = "discovery.cache_hit"
DISCOVERY_LATENCY_MS = "discovery.latency_ms"


class MetricsReporter:
    """Lightweight metrics emitter supporting stdout and StatsD backends."""

    def __init__(
        self,
        *,
        backend: str | None = None,
        namespace: str | None = None,
        disabled: bool | None = None,
        sample_rate: float | None = None,
    ) -> None:
        self._disabled = settings.metrics_disable if disabled is None else disabled
        self._namespace = namespace or settings.metrics_namespace or "discovery"
        self._backend = (backend or settings.metrics_backend or "stdout").lower()
        rate = settings.metrics_sample_rate if sample_rate is None else sample_rate
        self._sample_rate = max(0.0, min(rate, 1.0))
        self._statsd: StatsClient | None = None
        if self._backend == "statsd" and not self._disabled:
            try:
                self._statsd = StatsClient(
                    host=settings.metrics_statsd_host,
                    port=settings.metrics_statsd_port,
                    prefix="",
                )
            except OSError as exc:  # pragma: no cover - socket setup failure
                self._log_backend_error("statsd.init", exc)

    def timing(self, metric: str, value_ms: float, *, tags: dict[str, Any] | None = None) -> None:
        self._emit("timing", metric, value_ms, tags=tags)

    def gauge(self, metric: str, value: float, *, tags: dict[str, Any] | None = None) -> None:
        self._emit("gauge", metric, value, tags=tags)

    def increment(
        self, metric: str, value: float = 1.0, *, tags: dict[str, Any] | None = None
    ) -> None:
        self._emit("counter", metric, value, tags=tags)

    def engine_call(self, engine: str, latency_ms: float, *, cache_hit: bool) -> None:
        """Record one completed engine call and how long it took."""
        self.increment(ENGINE_CALLS, tags={"engine": engine, "cache": cache_hit})
        self.timing(ENGINE_LATENCY_MS, latency_ms, tags={"engine": engine})

    def engine_error(self, engine: str, code: str, latency_ms: float) -> None:
        self.increment(ENGINE_ERRORS, tags={"engine": engine, "code": code})
        self.timing(ENGINE_LATENCY_MS, latency_ms, tags={"engine": engine})

    def search_cache_hit(self, kind: str) -> None:
        self.increment(SEARCH_CACHE_HIT, tags={"kind": kind})

    def discovery_latency(self, engine: str, latency_ms: float, *, cache_hit: bool) -> None:
        """End-to-end latency of one discovery request."""
        self.timing(DISCOVERY_LATENCY_MS, latency_ms, tags={"engine": engine, "cache": cache_hit})

    def _emit(
        self, metric_type: str, metric: str, value: float, *, tags: dict[str, Any] | None
    ) -> None:
        if self._disabled or value is None:
            return
        sampled = metric_type != "gauge" and self._sample_rate < 1.0
        sample_rate = self._sample_rate if sampled else 1.0
        if sampled:
            roll = secrets.randbelow(1_000_000) / 1_000_000
            if roll >= sample_rate:
                return
        name = self._normalize_metric(metric)
        payload = {
            "metric": name,
            "value": round(float(value), 4),
            "type": metric_type,
            "tags": tags or {},
        }
        if sampled:
            payload["sample_rate"] = round(sample_rate, 4)
        logger.info("discovery.metric", extra={"metrics": payload})
        if self._backend == "statsd" and self._statsd is not None:
            try:
                if metric_type == "timing":
                    self._statsd.timing(name, value, rate=sample_rate)
                elif metric_type == "gauge":
                    self._statsd.gauge(name, value)
                else:
                    self._statsd.incr(name, value, rate=sample_rate)
            except OSError as exc:  # pragma: no cover - UDP send failure
                self._log_backend_error(name, exc)

    def _normalize_metric(self, metric: str) -> str:
        trimmed = (metric or "").strip()
        if trimmed.startswith(f"{self._namespace}."):
            return trimmed
        return f"{self._namespace}.{trimmed}" if trimmed else self._namespace

    def _log_backend_error(self, metric: str, exc: Exception) -> None:
        logger.warning(
            "metrics.backend_error",
            extra={"metric": metric, "backend": self._backend, "error": type(exc).__name__},
        )


metrics = MetricsReporter()
