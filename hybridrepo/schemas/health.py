"""
Pydantic schemas for the database health endpoint.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class HealthCheckDetail(BaseModel):
    """Outcome of the live ``SELECT 1`` probe made while serving the request."""
    healthy: bool = Field(
        description="True when the probe answered before its timeout"
    )
    latency_ms: Optional[float] = Field(
        default=None,
        description="Probe round trip in milliseconds"
    )
    error: Optional[str] = Field(
        default=None,
        description="Exception type and message when the probe failed"
    )


class BackgroundCheckStatus(BaseModel):
    """
    Last known result of the background health check loop.

    Attributes:
        healthy: Result of the last cycle (None before the first cycle)
        last_checked: When the last cycle finished
        last_error: Error from the last failed cycle
        consecutive_failures: Failed cycles in a row
    """
    healthy: Optional[bool] = None
    last_checked: Optional[datetime] = None
    last_error: Optional[str] = None
    consecutive_failures: int = 0


class DatabaseHealthResponse(BaseModel):
    """
    Response model for GET /health/database.

    Attributes:
        status: "healthy" when the live probe succeeded
        database: Live probe result
        background: Background loop status, null when the loop is disabled
        timestamp: When the response was built (UTC)
    """
    status: Literal["healthy", "unhealthy"] = Field(
        description="Overall database status"
    )
    database: HealthCheckDetail = Field(
        description="Result of the live SELECT 1 probe"
    )
    background: Optional[BackgroundCheckStatus] = Field(
        default=None,
        description="Last known status of the background health check"
    )
    timestamp: datetime = Field(
        description="Response time, UTC"
    )
