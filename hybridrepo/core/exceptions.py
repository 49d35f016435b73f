"""
Exception taxonomy for the data-access layer.

Store failures are not wrapped: SQLAlchemy exceptions raised by commit,
rollback and reads reach the caller unchanged. The classes below cover the
conditions the layer itself detects.
"""

from typing import Any, Optional


class HybridRepoError(Exception):
    """Base class for errors raised by hybridrepo itself."""


class InvalidArgumentError(HybridRepoError, ValueError):
    """
    Caller contract violation detected before any I/O.

    Raised for a missing predicate, non-positive paging parameters,
    or an unknown relationship name passed as an include.
    """


class UnsupportedProviderError(HybridRepoError, ValueError):
    """Raised at startup when the configured storage provider is unknown."""

    def __init__(self, provider: str, reason: Optional[str] = None):
        self.provider = provider
        message = f"Provider {provider} not supported"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class UnitOfWorkDisposedError(HybridRepoError, RuntimeError):
    """Raised when a disposed Unit of Work, or one of its repositories, is used."""


class DispatchError(HybridRepoError):
    """
    Domain event delivery failed after a successful commit.

    The physical commit has already happened and is not rolled back.
    Callers decide on compensating action; the core never retries delivery.

    Attributes:
        event: The event whose delivery failed
        entity: The entity the event was queued on
        handler: The subscriber that raised
        committed: Always True, the data is durable
    """

    committed = True

    def __init__(
        self,
        message: str,
        event: Any = None,
        entity: Any = None,
        handler: Any = None,
    ):
        super().__init__(message)
        self.event = event
        self.entity = entity
        self.handler = handler


class CircuitOpenError(HybridRepoError):
    """Raised by CircuitBreaker while the circuit is open."""

    def __init__(self, retry_after: float):
        self.retry_after = retry_after
        super().__init__(f"Circuit is open, calls blocked for another {retry_after:.1f}s")
