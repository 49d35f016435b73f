"""
Outbound HTTP resilience policies.

Retry with exponential backoff (backoff library) and a consecutive-failure
circuit breaker for calls made through httpx. Transient outcomes are
transport errors (connection failures, timeouts) and 5xx / 408 responses.

Composition order: retry wraps the breaker, so every attempt is counted by
the breaker and an open circuit ends the retry loop immediately.

Usage:
    async with ResilientHttpClient(base_url="https://api.example.com") as client:
        response = await client.get("/orders")
"""

import functools
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import backoff
import httpx

from hybridrepo.core.exceptions import CircuitOpenError

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (httpx.TransportError,)


def is_transient_response(response: httpx.Response) -> bool:
    """5xx and 408 Request Timeout are worth retrying."""
    return response.status_code >= 500 or response.status_code == 408


class TransientResponseError(Exception):
    """Internal signal carrying a transient response through the retry loop."""

    def __init__(self, response: httpx.Response):
        self.response = response
        super().__init__(f"HTTP {response.status_code}")


def _log_retry(details: dict) -> None:
    error = details.get("exception")
    logger.warning(
        f"HTTP retry {details['tries']} - waiting {details['wait']:.1f}s due to: {error}",
        extra={"attempt": details["tries"]},
    )


def _log_giveup(details: dict) -> None:
    logger.error(
        f"HTTP call gave up after {details['tries']} attempts: {details.get('exception')}",
        extra={"attempt": details["tries"]},
    )


def http_retry_policy(
    max_retries: int = 5,
    backoff_factor: float = 2.0,
    max_delay: Optional[float] = None,
):
    """
    Decorator retrying an async callable that returns an httpx.Response.

    Waits backoff_factor * 2 ** n seconds before retry n + 1, so the
    defaults wait 2, 4, 8, 16 and 32 seconds. Once retries are exhausted
    the last transient response is returned to the caller; a transport
    error is re-raised.

    Args:
        max_retries: Retries after the first attempt
        backoff_factor: First wait in seconds
        max_delay: Optional cap for a single wait

    Example:
        @http_retry_policy(max_retries=3)
        async def fetch():
            return await client.get("/status")
    """
    def decorator(func: Callable[..., Awaitable[httpx.Response]]):
        async def attempt(*args, **kwargs) -> httpx.Response:
            response = await func(*args, **kwargs)
            if is_transient_response(response):
                raise TransientResponseError(response)
            return response

        retrying = backoff.on_exception(
            backoff.expo,
            TRANSIENT_ERRORS + (TransientResponseError,),
            max_tries=max_retries + 1,
            max_value=max_delay,
            factor=backoff_factor,
            base=2,
            jitter=None,
            on_backoff=_log_retry,
            on_giveup=_log_giveup,
        )(attempt)

        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> httpx.Response:
            try:
                return await retrying(*args, **kwargs)
            except TransientResponseError as e:
                return e.response

        return wrapper
    return decorator


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Consecutive-failure circuit breaker.

    Opens after ``failure_threshold`` transient failures in a row and
    rejects calls with CircuitOpenError for ``recovery_timeout`` seconds.
    The first call after the cool-down is a trial: success closes the
    circuit, failure opens it again.

    Attributes:
        failure_threshold: Consecutive failures that trip the breaker
        recovery_timeout: Seconds the circuit stays open
    """

    def __init__(
        self,
        failure_threshold: int = 3,
        recovery_timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock
        self._failures = 0
        self._opened_at: Optional[float] = None

    @property
    def state(self) -> CircuitState:
        if self._opened_at is None:
            return CircuitState.CLOSED
        if self._clock() - self._opened_at >= self.recovery_timeout:
            return CircuitState.HALF_OPEN
        return CircuitState.OPEN

    @property
    def failure_count(self) -> int:
        return self._failures

    async def call(self, func: Callable[..., Awaitable[httpx.Response]], *args, **kwargs) -> httpx.Response:
        """
        Invoke ``func`` through the breaker.

        Raises:
            CircuitOpenError: While the circuit is open
        """
        if self.state is CircuitState.OPEN:
            remaining = self.recovery_timeout - (self._clock() - self._opened_at)
            raise CircuitOpenError(retry_after=max(0.0, remaining))

        try:
            response = await func(*args, **kwargs)
        except TRANSIENT_ERRORS:
            self._on_failure()
            raise

        if is_transient_response(response):
            self._on_failure()
        else:
            self._on_success()
        return response

    def _on_failure(self) -> None:
        self._failures += 1
        if self.state is CircuitState.HALF_OPEN or self._failures >= self.failure_threshold:
            self._opened_at = self._clock()
            logger.warning(
                f"Circuit breaker open - blocking calls for {self.recovery_timeout}s"
            )

    def _on_success(self) -> None:
        if self._opened_at is not None:
            logger.info("Circuit breaker reset - allowing calls again")
        self._failures = 0
        self._opened_at = None

    def reset(self) -> None:
        self._on_success()


class ResilientHttpClient:
    """
    httpx.AsyncClient wrapper applying retry around a circuit breaker.

    Args:
        client: Existing client to wrap; one is created from client_kwargs otherwise
        max_retries: Retries per request
        backoff_factor: First retry wait in seconds
        breaker: Shared CircuitBreaker; a fresh one (3 failures / 30s) by default
        **client_kwargs: Passed to httpx.AsyncClient when no client is given
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        max_retries: int = 5,
        backoff_factor: float = 2.0,
        breaker: Optional[CircuitBreaker] = None,
        **client_kwargs: Any,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(**client_kwargs)
        self.breaker = breaker or CircuitBreaker()
        self._send = http_retry_policy(
            max_retries=max_retries, backoff_factor=backoff_factor
        )(self._send_once)

    async def _send_once(self, method: str, url: Any, **kwargs: Any) -> httpx.Response:
        return await self.breaker.call(self._client.request, method, url, **kwargs)

    async def request(self, method: str, url: Any, **kwargs: Any) -> httpx.Response:
        return await self._send(method, url, **kwargs)

    async def get(self, url: Any, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: Any, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: Any, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", url, **kwargs)

    async def delete(self, url: Any, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ResilientHttpClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
