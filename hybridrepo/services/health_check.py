"""
Database Health Check Service

Background asyncio task that periodically verifies the store is reachable.
Each cycle runs ``SELECT 1`` on a short-lived session, retrying with
exponential backoff. Failures are logged and recorded as the last known
status; they never stop the loop.

The service owns no Unit of Work and never touches request sessions.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hybridrepo.core.probes import probe_database
from hybridrepo.core.retry import retry_with_backoff
from hybridrepo.models.base import utc_now

logger = logging.getLogger(__name__)


@dataclass
class HealthStatus:
    """Outcome of the most recent health check cycle."""
    healthy: Optional[bool] = None  # None until the first cycle finishes
    last_checked: Optional[datetime] = None
    last_error: Optional[str] = None
    latency_ms: Optional[float] = None
    check_count: int = 0
    consecutive_failures: int = 0


class HealthCheckService:
    """
    Periodic database connectivity monitor.

    Args:
        session_factory: Factory for short-lived probe sessions
        interval_seconds: Pause between cycles
        max_retries: Retries per cycle after the first attempt
        base_delay: First backoff delay; doubles on each retry
        timeout_seconds: Per-attempt probe timeout

    Example:
        service = HealthCheckService(session_factory, interval_seconds=30)
        service.start()
        ...
        await service.stop()
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        interval_seconds: float = 30,
        max_retries: int = 3,
        base_delay: float = 2.0,
        timeout_seconds: float = 5.0,
    ):
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.timeout_seconds = timeout_seconds

        self._status = HealthStatus()
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def last_status(self) -> HealthStatus:
        return self._status

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Launch the background loop; no-op if it is already running."""
        if self.is_running:
            logger.info("Health check service already running")
            return

        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self.run(self._stop_event))
        logger.info(
            f"Health check service started (interval {self.interval_seconds}s, "
            f"max retries {self.max_retries})"
        )

    async def stop(self, timeout: float = 5.0) -> None:
        """
        Signal the loop to stop and wait for it.

        A cycle still busy after ``timeout`` seconds is cancelled.
        """
        if self._task is None:
            return

        task = self._task
        self._task = None
        self._stop_event.set()

        try:
            await asyncio.wait_for(task, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Health check stop timed out, cancelling task")
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        logger.info("Health check service stopped")

    async def run(self, stop_event: asyncio.Event) -> None:
        """Check, then wait ``interval_seconds`` or until stopped."""
        while not stop_event.is_set():
            await self.check_database_connection()

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass

    async def check_database_connection(self) -> bool:
        """
        Run one health check cycle.

        Returns:
            True if the database answered within the allowed retries
        """
        probe = retry_with_backoff(
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            jitter=False,
        )(self._probe)

        logger.info("Testing database connection...")
        start = time.perf_counter()

        try:
            await probe()
        except Exception as e:
            self._record(False, start, error=f"{type(e).__name__}: {e}")
            logger.error(
                f"Database unreachable after {self.max_retries + 1} attempts: {e}",
                extra={"latency_ms": self._status.latency_ms},
            )
            return False

        self._record(True, start)
        logger.info(
            "Database is reachable",
            extra={"latency_ms": self._status.latency_ms},
        )
        return True

    async def _probe(self) -> None:
        await probe_database(self.session_factory, self.timeout_seconds)

    def _record(self, healthy: bool, start: float, error: Optional[str] = None) -> None:
        status = self._status
        status.healthy = healthy
        status.last_checked = utc_now()
        status.last_error = error
        status.latency_ms = round((time.perf_counter() - start) * 1000, 2)
        status.check_count += 1
        status.consecutive_failures = 0 if healthy else status.consecutive_failures + 1
