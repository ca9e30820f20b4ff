"""Construct the configured discovery engine adapters."""

from __future__ import annotations

import logging

from prospector.clients.base import DiscoveryEngine
from prospector.clients.exa import ExaClient
from prospector.clients.parallel import ParallelClient
from prospector.clients.serper import SerperClient
from prospector.config import Settings
from prospector.services.discovery.cache import SearchCache

logger = logging.getLogger(__name__)


def build_engine_adapters(
    config: Settings,
    *,
    cache: SearchCache | None = None,
) -> dict[str, DiscoveryEngine]:
    """Return adapters keyed by engine name for every engine with an API key."""
    adapters: dict[str, DiscoveryEngine] = {}
    if config.parallel_api_key:
        adapters["parallel"] = ParallelClient(
            config.parallel_api_key,
            base_url=config.parallel_base_url,
            timeout=config.parallel_timeout_seconds,
            cache=cache,
        )
    if config.exa_api_key:
        adapters["exa"] = ExaClient(
            config.exa_api_key,
            base_url=config.exa_base_url,
            timeout=config.exa_timeout_seconds,
            cache=cache,
        )
    if config.serper_api_key:
        adapters["serper"] = SerperClient(
            config.serper_api_key,
            base_url=config.serper_base_url,
            timeout=config.serper_timeout_seconds,
            cache=cache,
        )
    logger.info("discovery.engines.configured", extra={"engines": sorted(adapters)})
    return adapters
