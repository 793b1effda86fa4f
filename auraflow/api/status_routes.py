"""
Status API routes - Health of AI providers and the datastore.

Public endpoint (no auth) for status page aggregation.
Checks are live; results are cached briefly to blunt repeated polling.
"""

from datetime import UTC, datetime
from enum import Enum

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from structlog import get_logger

from auraflow.api.dependencies import ServiceContainer, get_services
from auraflow.models.domain import HealthLevel, ServiceHealth

logger = get_logger(__name__)
router = APIRouter(tags=["status"])

_CACHE_TTL_SECONDS = 10
_status_cache: list[tuple[datetime, "ServiceStatusResponse"]] = []


class StatusLevel(str, Enum):
    """Status levels for health checks."""

    OPERATIONAL = "operational"
    DEGRADED = "degraded"
    OUTAGE = "outage"


_LEVELS = {
    HealthLevel.HEALTHY: StatusLevel.OPERATIONAL,
    HealthLevel.DEGRADED: StatusLevel.DEGRADED,
    HealthLevel.UNHEALTHY: StatusLevel.OUTAGE,
}


class ProviderStatus(BaseModel):
    """Status of a single dependency."""

    name: str
    status: StatusLevel


class ServiceStatusResponse(BaseModel):
    """Response for /v1/status endpoint."""

    service: str
    status: StatusLevel
    timestamp: str = Field(..., description="ISO 8601 timestamp")
    version: str
    preferred_provider: str
    fallback_enabled: bool
    providers: list[ProviderStatus]


def build_status_response(
    health: ServiceHealth, service: str, version: str, now: datetime
) -> ServiceStatusResponse:
    """Render service health for the status page."""
    providers = [
        ProviderStatus(
            name=p.name,
            status=StatusLevel.OPERATIONAL if p.healthy else StatusLevel.OUTAGE,
        )
        for p in health.ai.providers
    ]
    providers.append(
        ProviderStatus(
            name="postgresql",
            status=StatusLevel.OPERATIONAL if health.database_healthy else StatusLevel.OUTAGE,
        )
    )
    return ServiceStatusResponse(
        service=service,
        status=_LEVELS[health.status],
        timestamp=now.isoformat(),
        version=version,
        preferred_provider=health.ai.preferred_provider,
        fallback_enabled=health.ai.fallback_enabled,
        providers=providers,
    )


@router.get("/v1/status", response_model=ServiceStatusResponse)
async def get_status(
    services: ServiceContainer = Depends(get_services),
) -> ServiceStatusResponse:
    """
    Get service status.

    Rate limited via a 10-second cache.
    """
    now = datetime.now(UTC)
    if _status_cache:
        cached_time, cached_response = _status_cache[0]
        age_seconds = (now - cached_time).total_seconds()
        if age_seconds < _CACHE_TTL_SECONDS:
            logger.debug("status_cache_hit", age_seconds=age_seconds)
            return cached_response

    health = await services.messages.get_health_status()
    response = build_status_response(
        health, services.settings.service_name, services.settings.api_version, now
    )
    if health.status != HealthLevel.HEALTHY:
        logger.warning("service_status_not_healthy", status=health.status.value)

    _status_cache[:] = [(now, response)]
    return response
