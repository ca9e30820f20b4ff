"""Translate engine failures into user-facing search error details."""

from __future__ import annotations

import httpx

from prospector.clients.errors import HttpStatusError, ProviderTimeoutError, ProviderTransportError
from prospector.models.search import SearchErrorDetail
from prospector.services.discovery.retry import RetryExhaustedError


def classify_error(error: BaseException, engine: str | None = None) -> SearchErrorDetail:
    """Map an engine exception onto a structured, retry-aware error entry."""
    if isinstance(error, RetryExhaustedError):
        return classify_error(error.last_error, engine)

    if isinstance(error, (ProviderTimeoutError, httpx.TimeoutException, TimeoutError)):
        return SearchErrorDetail(
            code="TIMEOUT",
            message=f"{_label(engine)} timed out.",
            engine=engine,
            retryable=True,
            suggested_action="Try again. The engine may be slow right now.",
        )

    if isinstance(error, HttpStatusError):
        if error.status == 429:
            return SearchErrorDetail(
                code="RATE_LIMITED",
                message=f"{_label(engine)} rate limit reached.",
                engine=engine,
                retryable=True,
                suggested_action="Wait 30 seconds",
            )
        if error.status in (401, 403):
            return SearchErrorDetail(
                code="AUTH_FAILED",
                message=f"{_label(engine)} rejected the API credentials.",
                engine=engine,
                retryable=False,
                suggested_action="Check API key configuration.",
            )
        if error.status >= 500:
            return SearchErrorDetail(
                code="UNKNOWN",
                message=f"{_label(engine)} server error ({error.status}).",
                engine=engine,
                retryable=True,
                suggested_action="Server error. Retry shortly.",
            )
        return SearchErrorDetail(
            code="UNKNOWN",
            message=f"{_label(engine)} request failed: {error}",
            engine=engine,
            retryable=False,
        )

    if isinstance(error, (ProviderTransportError, httpx.TransportError)):
        return SearchErrorDetail(
            code="NETWORK_ERROR",
            message=f"Could not reach {_label(engine)}.",
            engine=engine,
            retryable=True,
            suggested_action="Check your connection and retry.",
        )

    return SearchErrorDetail(
        code="UNKNOWN",
        message=str(error) or type(error).__name__,
        engine=engine,
        retryable=True,
    )


def _label(engine: str | None) -> str:
    return engine.capitalize() if engine else "Search engine"
