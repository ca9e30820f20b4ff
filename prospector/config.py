from __future__ import annotations

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Prospector"
    app_version: str = "0.1.0"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Discovery engines
    exa_api_key: str | None = None
    parallel_api_key: str | None = None
    serper_api_key: str | None = None
    openai_api_key: str | None = None
    exa_base_url: str = "https://api.exa.ai"
    parallel_base_url: str = "https://api.parallel.ai"
    serper_base_url: str = "https://google.serper.dev"
    exa_timeout_seconds: float = 10.0
    parallel_timeout_seconds: float = 4.0
    serper_timeout_seconds: float = 8.0

    # Engine budgets (per UTC day)
    exa_daily_budget: int = 5
    parallel_daily_budget: int = 800
    serper_daily_budget: int = 100

    # Retry
    retry_max_retries: int = 2
    retry_base_delay_ms: int = 500
    retry_max_delay_ms: int = 5000

    # Fallback thresholds
    discovery_min_results: int = 3
    discovery_min_relevance: float = 0.2
    name_min_results: int = 1

    # Result limits
    name_result_limit: int = 15
    discovery_result_limit: int = 25
    max_results: int = 25

    # Circuit breaker
    circuit_failure_threshold: int = 3
    circuit_open_seconds: float = 60.0

    # Caching
    search_cache_ttl_minutes: int = 360
    reformulation_cache_ttl_minutes: int = 360

    # Reformulation / scoring
    reformulation_model: str = "gpt-4o-mini"
    reformulation_temperature: float = 0.2
    icp_weights_path: str | None = None
    excluded_companies: list[str] = []

    # Security
    cors_origins: list[str] = []

    # Sentry
    sentry_dsn: str | None = None

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Metrics
    metrics_backend: str = "stdout"
    metrics_namespace: str = "discovery"
    metrics_disable: bool = False
    metrics_sample_rate: float = 1.0
    metrics_statsd_host: str = "127.0.0.1"
    metrics_statsd_port: int = 8125

    @property
    def engine_budgets(self) -> dict[str, int]:
        """Return the per-window call budget for every known engine."""
        return {
            "exa": self.exa_daily_budget,
            "parallel": self.parallel_daily_budget,
            "serper": self.serper_daily_budget,
        }

    model_config = ConfigDict(env_file=".env", case_sensitive=False)


settings = Settings()
