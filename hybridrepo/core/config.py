"""
Centralized configuration management using Pydantic Settings.

Settings are read once at startup from environment variables (prefix
``HYBRIDREPO_``) and an optional .env file. Nothing here is consulted
per call: provider, retry counts and the health-check switch are fixed
for the lifetime of the process.
"""

from enum import Enum
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class HealthCheck(str, Enum):
    """Background database health check switch."""

    ACTIVE = "active"      # Check Db connection
    INACTIVE = "inactive"  # Do not check Db connection


class Settings(BaseSettings):
    """
    Data-access layer settings loaded from environment variables.

    Connection strings should never be committed to code - use .env file (gitignored).
    """

    # Storage provider selection
    provider: str = Field(
        default="PostgreSQL",
        description="Storage provider name: PostgreSQL or SQLServer"
    )
    postgres_connection: Optional[str] = Field(
        default=None,
        description="Connection URL used when provider is PostgreSQL"
    )
    sql_connection: Optional[str] = Field(
        default=None,
        description="Connection URL used when provider is SQLServer"
    )
    retry_on_failure: int = Field(
        default=5,
        ge=0,
        description="Retries for transient connection failures at startup"
    )
    echo_sql: bool = Field(
        default=False,
        description="Log emitted SQL (debug only)"
    )

    # Health check loop
    health_check: HealthCheck = Field(
        default=HealthCheck.INACTIVE,
        description="Run the periodic database health check in the background"
    )
    health_check_interval_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Seconds between health probes"
    )
    health_check_max_retries: int = Field(
        default=3,
        ge=0,
        description="Retries per probe before the cycle is reported as failed"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Root log level"
    )
    log_json: bool = Field(
        default=True,
        description="Emit logs as single-line JSON objects"
    )

    model_config = SettingsConfigDict(
        env_prefix="HYBRIDREPO_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("health_check", mode="before")
    @classmethod
    def parse_health_check(cls, v):
        """
        Accept enum names, values and booleans for the health check switch.

        HYBRIDREPO_HEALTH_CHECK=Active, =active, =true and =1 all enable it.
        """
        if isinstance(v, bool):
            return HealthCheck.ACTIVE if v else HealthCheck.INACTIVE
        if isinstance(v, str):
            normalized = v.strip().lower()
            if normalized in {"1", "true", "yes", "on"}:
                return HealthCheck.ACTIVE
            if normalized in {"0", "false", "no", "off"}:
                return HealthCheck.INACTIVE
            return normalized
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Reject unknown log level names early."""
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


def get_settings() -> Settings:
    """Build a Settings instance from the current environment."""
    return Settings()
