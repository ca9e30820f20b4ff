"""API endpoints for company discovery."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Response, status

from prospector.models.search import DiscoveryRequest, DiscoveryResponse
from prospector.services.discovery.orchestrator import (
    DiscoveryOrchestrator,
    get_discovery_orchestrator,
)

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/search/companies/discover", response_model=DiscoveryResponse)
async def discover_companies(
    payload: DiscoveryRequest,
    response: Response,
    orchestrator: DiscoveryOrchestrator = Depends(get_discovery_orchestrator),
) -> DiscoveryResponse:
    """Run a free-text and/or filter search across the configured engines."""
    result = await orchestrator.discover(payload)
    if result.error is not None:
        response.status_code = _map_error_code(result.error.code)
        logger.error(
            "discovery.api_error",
            extra={"code": result.error.code, "engine": result.error.engine},
        )
    return result


@router.get("/search/usage")
async def engine_usage(
    orchestrator: DiscoveryOrchestrator = Depends(get_discovery_orchestrator),
) -> dict[str, dict[str, object]]:
    """Current per-engine usage against budget."""
    return orchestrator.router.get_usage_summary()


def _map_error_code(code: str) -> int:
    if code == "NO_ENGINE_AVAILABLE":
        return status.HTTP_503_SERVICE_UNAVAILABLE
    if code == "ALL_ENGINES_FAILED":
        return status.HTTP_502_BAD_GATEWAY
    return status.HTTP_200_OK
