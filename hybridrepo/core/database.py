"""
Database engine and session factory setup.

Resolves the configured storage provider to an async SQLAlchemy URL,
builds the AsyncEngine and the AsyncSession factory that every Unit of
Work and health probe draws its transaction context from.
"""

import logging
from enum import Enum
from typing import Optional

from sqlalchemy import event, text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError, DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from hybridrepo.core.config import Settings
from hybridrepo.core.exceptions import UnsupportedProviderError
from hybridrepo.core.retry import retry_with_backoff

logger = logging.getLogger(__name__)


class DatabaseProvider(str, Enum):
    """Supported storage providers."""

    POSTGRESQL = "PostgreSQL"
    SQLSERVER = "SQLServer"

    @classmethod
    def parse(cls, name: str) -> "DatabaseProvider":
        """Case-insensitive lookup; unknown names raise UnsupportedProviderError."""
        for provider in cls:
            if provider.value.lower() == (name or "").strip().lower():
                return provider
        raise UnsupportedProviderError(name)


# Async drivers used when a connection string names only the backend
_ASYNC_DRIVERS = {
    DatabaseProvider.POSTGRESQL: ("postgresql", "postgresql+asyncpg"),
    DatabaseProvider.SQLSERVER: ("mssql", "mssql+aioodbc"),
}


def build_database_url(settings: Settings) -> URL:
    """
    Resolve the configured provider and connection string to an async URL.

    Args:
        settings: Loaded settings

    Returns:
        SQLAlchemy URL using an async driver

    Raises:
        UnsupportedProviderError: Unknown provider, missing connection string,
            or a connection string for a different backend
    """
    provider = DatabaseProvider.parse(settings.provider)

    if provider is DatabaseProvider.POSTGRESQL:
        raw = settings.postgres_connection
    else:
        raw = settings.sql_connection

    if not raw or not raw.strip():
        raise UnsupportedProviderError(
            settings.provider, "no connection string configured"
        )

    try:
        url = make_url(raw)
    except ArgumentError as e:
        raise UnsupportedProviderError(
            settings.provider, f"invalid connection string ({e})"
        ) from e

    backend, async_driver = _ASYNC_DRIVERS[provider]
    if url.get_backend_name() != backend:
        raise UnsupportedProviderError(
            settings.provider,
            f"connection string targets {url.get_backend_name()}, expected {backend}",
        )

    if "+" not in url.drivername:
        url = url.set(drivername=async_driver)

    return url


def create_engine(url, echo: bool = False) -> AsyncEngine:
    """
    Create an AsyncEngine for the given URL.

    For SQLite:
    - In-memory databases use StaticPool so every session sees the same data
    - Foreign keys are enforced on every connection
    """
    url = make_url(url)
    is_sqlite = url.get_backend_name() == "sqlite"

    engine_kwargs: dict = {"echo": echo}
    if is_sqlite:
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        if url.database in (None, "", ":memory:"):
            engine_kwargs["poolclass"] = StaticPool
    else:
        engine_kwargs["pool_pre_ping"] = True

    engine = create_async_engine(url, **engine_kwargs)

    if is_sqlite:
        @event.listens_for(engine.sync_engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record):  # noqa: ANN001
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """Resolve the provider and build the engine; fails at startup, not at query time."""
    url = build_database_url(settings)
    logger.info(
        f"Creating engine for provider {settings.provider}",
        extra={"driver": url.drivername},
    )
    return create_engine(url, echo=settings.echo_sql)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory for Units of Work and probes.

    Note:
        - expire_on_commit=False keeps committed entities readable without I/O
        - autoflush=False keeps staged writes in memory until commit
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_db(
    engine: AsyncEngine,
    retry_on_failure: int = 5,
    base_delay: float = 2.0,
    metadata=None,
) -> None:
    """
    Verify the engine can connect, retrying transient failures.

    Args:
        engine: Engine to verify
        retry_on_failure: Retries after the first failed attempt
        base_delay: Delay before the first retry (doubles each retry)
        metadata: Optional MetaData to create_all() on, for tests and local use

    Raises:
        The last connection error once retries are exhausted
    """
    @retry_with_backoff(
        max_retries=retry_on_failure,
        base_delay=base_delay,
        jitter=False,
        exceptions=(OperationalError, DBAPIError, OSError, TimeoutError),
    )
    async def _connect() -> None:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            if metadata is not None:
                await conn.run_sync(metadata.create_all)

    await _connect()


async def close_db(engine: Optional[AsyncEngine]) -> None:
    """Dispose the engine's connection pool at shutdown."""
    if engine is not None:
        await engine.dispose()
