"""Async retry executor with capped exponential backoff and jitter."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from random import SystemRandom
from typing import TypeVar

import httpx

from prospector.clients.errors import HttpStatusError, ProviderError, ProviderTransportError

logger = logging.getLogger(__name__)

_T = TypeVar("_T")
SleepFn = Callable[[float], Awaitable[None]]

RETRYABLE_STATUSES = frozenset({429, 500, 501, 502, 503, 504})
JITTER_RATIO = 0.25

_rng = SystemRandom()


class RetryExhaustedError(ProviderError):
    """Raised when every attempt of a retried operation failed."""

    def __init__(self, last_error: BaseException, *, attempts: int, label: str = "Retry") -> None:
        super().__init__(
            str(last_error),
            code="RETRY_EXHAUSTED",
            provider=getattr(last_error, "provider", label),
        )
        self.last_error = last_error
        self.attempts = attempts
        self.status: int | None = getattr(last_error, "status", None)


def default_retry_on(error: BaseException) -> bool:
    """Retry rate limits, 5xx gateway/server errors and transport failures only."""
    if isinstance(error, HttpStatusError):
        return error.status in RETRYABLE_STATUSES
    if isinstance(error, ProviderTransportError):
        return True
    if isinstance(error, (httpx.TransportError, TimeoutError)):
        return True
    return False


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 2
    base_delay_ms: int = 500
    max_delay_ms: int = 5000
    retry_on: Callable[[BaseException], bool] = field(default=default_retry_on)
    label: str = "Retry"

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValueError("delays must be >= 0")

    def with_label(self, label: str) -> "RetryPolicy":
        return RetryPolicy(
            max_retries=self.max_retries,
            base_delay_ms=self.base_delay_ms,
            max_delay_ms=self.max_delay_ms,
            retry_on=self.retry_on,
            label=label,
        )


def compute_delay(attempt: int, base_delay_ms: float, max_delay_ms: float) -> float:
    """Return the delay in ms before retry ``attempt + 1``."""
    capped = min(base_delay_ms * (2**attempt), max_delay_ms)
    return capped + _rng.uniform(0, capped * JITTER_RATIO)


def _log_retry_event(
    *,
    label: str,
    error: BaseException,
    attempt: int,
    max_attempts: int,
    delay_ms: float,
) -> None:
    logger.warning(
        "provider.retry",
        extra={
            "provider": label,
            "code": getattr(error, "code", type(error).__name__),
            "attempt": attempt,
            "max_attempts": max_attempts,
            "delay_ms": round(delay_ms, 2),
            "error": str(error)[:200],
        },
    )


async def with_retry(
    operation: Callable[[], Awaitable[_T]],
    policy: RetryPolicy | None = None,
    *,
    sleep: SleepFn | None = None,
) -> _T:
    """Await ``operation`` retrying transient failures per ``policy``."""
    resolved = policy or RetryPolicy()
    sleep_fn = sleep or asyncio.sleep
    last_error: BaseException | None = None

    for attempt in range(resolved.max_retries + 1):
        if attempt > 0 and last_error is not None:
            delay_ms = compute_delay(attempt - 1, resolved.base_delay_ms, resolved.max_delay_ms)
            _log_retry_event(
                label=resolved.label,
                error=last_error,
                attempt=attempt,
                max_attempts=resolved.max_retries,
                delay_ms=delay_ms,
            )
            await sleep_fn(delay_ms / 1000)
        try:
            return await operation()
        except Exception as exc:
            if not resolved.retry_on(exc):
                raise
            last_error = exc

    assert last_error is not None
    raise RetryExhaustedError(
        last_error, attempts=resolved.max_retries + 1, label=resolved.label
    ) from last_error
