"""
Host wiring for the data-access layer.

HybridRepo bundles the engine, the session factory, the optional domain
event dispatcher and the optional health check loop, and hands out one
Unit of Work per request or task.

Usage with FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_json)

    repo = HybridRepo.from_settings(settings, dispatcher=DomainEventDispatcher())
    app = FastAPI(lifespan=repo.lifespan)
    app.include_router(health.router)

Usage without a web host:
    async with repo.unit_of_work() as uow:
        uow.repository(Order).add(order)
        await uow.commit()
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import AsyncEngine

from hybridrepo.core.config import HealthCheck, Settings
from hybridrepo.core.database import (
    close_db,
    create_engine_from_settings,
    create_session_factory,
    init_db,
)
from hybridrepo.repositories.repository import Repository
from hybridrepo.repositories.unit_of_work import RepositoryFactory, UnitOfWork
from hybridrepo.services.health_check import HealthCheckService
from hybridrepo.services.interfaces.domain_events import IDomainEventDispatcher

logger = logging.getLogger(__name__)


class HybridRepo:
    """
    Process-wide registration of the data-access layer.

    Args:
        engine: AsyncEngine for the configured provider
        dispatcher: Optional domain event dispatcher shared by every Unit of Work
        health_check: HealthCheck.ACTIVE runs the background probe loop
        health_check_interval_seconds: Pause between probes
        health_check_max_retries: Retries per probe
        retry_on_failure: Connection retries during startup
        metadata: Tables to create at startup (tests and local development)
        repository_factory: Builds the repositories a Unit of Work hands out
    """

    def __init__(
        self,
        engine: AsyncEngine,
        dispatcher: Optional[IDomainEventDispatcher] = None,
        health_check: HealthCheck = HealthCheck.INACTIVE,
        health_check_interval_seconds: float = 30,
        health_check_max_retries: int = 3,
        retry_on_failure: int = 5,
        metadata: Optional[MetaData] = None,
        repository_factory: RepositoryFactory = Repository,
    ):
        self.engine = engine
        self.session_factory = create_session_factory(engine)
        self.dispatcher = dispatcher
        self.retry_on_failure = retry_on_failure
        self.metadata = metadata
        self._repository_factory = repository_factory

        self.health_service: Optional[HealthCheckService] = None
        if HealthCheck(health_check) is HealthCheck.ACTIVE:
            self.health_service = HealthCheckService(
                self.session_factory,
                interval_seconds=health_check_interval_seconds,
                max_retries=health_check_max_retries,
            )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        dispatcher: Optional[IDomainEventDispatcher] = None,
        **kwargs: Any,
    ) -> "HybridRepo":
        """
        Build from Settings.

        Raises:
            UnsupportedProviderError: Unknown provider or unusable connection string
        """
        engine = create_engine_from_settings(settings)
        return cls(
            engine,
            dispatcher=dispatcher,
            health_check=settings.health_check,
            health_check_interval_seconds=settings.health_check_interval_seconds,
            health_check_max_retries=settings.health_check_max_retries,
            retry_on_failure=settings.retry_on_failure,
            **kwargs,
        )

    def create_unit_of_work(self) -> UnitOfWork:
        """New Unit of Work on a fresh session; the caller must dispose it."""
        return UnitOfWork(
            self.session_factory(),
            dispatcher=self.dispatcher,
            repository_factory=self._repository_factory,
        )

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[UnitOfWork]:
        uow = self.create_unit_of_work()
        try:
            yield uow
        finally:
            await uow.dispose()

    async def startup(self) -> None:
        """Verify connectivity (with retries) and start the health loop if enabled."""
        await init_db(
            self.engine,
            retry_on_failure=self.retry_on_failure,
            metadata=self.metadata,
        )
        logger.info("Database connection verified")

        if self.health_service is not None:
            self.health_service.start()

    async def shutdown(self) -> None:
        if self.health_service is not None:
            await self.health_service.stop()
        await close_db(self.engine)
        logger.info("Database engine disposed")

    @asynccontextmanager
    async def lifespan(self, app: Any) -> AsyncIterator[None]:
        """
        FastAPI lifespan handler.

        Startup:
            - Store this instance on app.state.hybrid_repo
            - Verify the database connection
            - Start the health check loop (if enabled)

        Shutdown:
            - Stop the health check loop
            - Dispose the engine
        """
        app.state.hybrid_repo = self
        await self.startup()
        try:
            yield
        finally:
            await self.shutdown()
