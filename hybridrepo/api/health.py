"""
Database health endpoint.

GET /health/database runs a live SELECT 1 probe and reports the last known
status of the background health check loop next to it.
"""

import time

from fastapi import APIRouter, Response, status

from hybridrepo.api.dependencies import HybridRepoDep
from hybridrepo.core.probes import check_database
from hybridrepo.models.base import utc_now
from hybridrepo.schemas.health import (
    BackgroundCheckStatus,
    DatabaseHealthResponse,
    HealthCheckDetail,
)


router = APIRouter()


@router.get(
    "/health/database",
    response_model=DatabaseHealthResponse,
    summary="Database health",
    description="Live database probe plus the background health check status",
)
async def database_health(
    repo: HybridRepoDep,
    response: Response,
) -> DatabaseHealthResponse:
    """
    Database readiness probe.

    Returns 200 if the live probe passes, 503 otherwise.

    Example response (healthy):
        {
            "status": "healthy",
            "database": {"healthy": true, "latency_ms": 3.1, "error": null},
            "background": {"healthy": true, "last_checked": "...",
                           "last_error": null, "consecutive_failures": 0},
            "timestamp": "2025-11-24T10:30:00.123456"
        }
    """
    start = time.perf_counter()
    healthy = await check_database(repo.session_factory)
    latency_ms = round((time.perf_counter() - start) * 1000, 2)

    background = None
    if repo.health_service is not None:
        last = repo.health_service.last_status
        background = BackgroundCheckStatus(
            healthy=last.healthy,
            last_checked=last.last_checked,
            last_error=last.last_error,
            consecutive_failures=last.consecutive_failures,
        )

    if not healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return DatabaseHealthResponse(
        status="healthy" if healthy else "unhealthy",
        database=HealthCheckDetail(
            healthy=healthy,
            latency_ms=latency_ms,
            error=None if healthy else "Database connection failed or timed out"
        ),
        background=background,
        timestamp=utc_now(),
    )
