"""Error hierarchy shared by the discovery engine clients."""

from __future__ import annotations


class ProviderError(RuntimeError):
    """Base error for discovery engine failures."""

    def __init__(self, message: str, code: str = "PROVIDER_ERROR", *, provider: str = "unknown") -> None:
        super().__init__(message)
        self.code = code
        self.provider = provider


class HttpStatusError(ProviderError):
    """Raised when an engine responds with a non-success HTTP status."""

    def __init__(
        self,
        status: int,
        status_text: str,
        *,
        provider: str = "unknown",
        detail: str | None = None,
    ) -> None:
        super().__init__(
            f"{status} {status_text}".strip(),
            code=f"{provider.upper()}_{status}",
            provider=provider,
        )
        self.status = status
        self.status_text = status_text
        self.detail = detail


class ProviderTransportError(ProviderError):
    """Raised when the request never produced an HTTP response."""

    def __init__(self, message: str, *, provider: str = "unknown") -> None:
        super().__init__(message, code=f"{provider.upper()}_NETWORK", provider=provider)


class ProviderTimeoutError(ProviderTransportError):
    """Raised when an engine request exceeds its timeout."""

    def __init__(self, message: str | None = None, *, provider: str = "unknown") -> None:
        super().__init__(message or f"{provider} request timed out", provider=provider)
        self.code = f"{provider.upper()}_TIMEOUT"


class ProviderSchemaError(ProviderError):
    """Raised when an engine response schema is not as expected."""

    def __init__(self, message: str, *, provider: str = "unknown") -> None:
        super().__init__(message, code=f"{provider.upper()}_SCHEMA_ERR", provider=provider)
