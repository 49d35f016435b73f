"""
Unit of Work Interface (IUnitOfWork)

Defines the transactional scope bundling staged writes across
repositories. Commit and rollback are the only transaction-terminating
operations; dispose releases the transaction context.
"""

from abc import ABC, abstractmethod
from typing import Type, TypeVar

from hybridrepo.services.interfaces.repository import IRepository

T = TypeVar("T")


class IUnitOfWork(ABC):
    """
    Abstract interface for a Unit of Work.

    One instance per logical operation (e.g. one request). Not safe for
    concurrent use by several tasks at once.
    """

    @abstractmethod
    def repository(self, model: Type[T]) -> IRepository[T]:
        """
        Repository for the entity type, created on first request.

        Repeated calls with the same type return the identical instance.
        """
        pass

    @abstractmethod
    async def commit(self) -> bool:
        """
        Flush every staged change in one physical transaction.

        On success, pending domain events of tracked entities are handed to
        the dispatcher (if any) strictly after the commit.

        Returns:
            True if at least one row was affected

        Raises:
            sqlalchemy.exc.SQLAlchemyError: Store failure; nothing was committed
                and the dispatcher was not invoked
            DispatchError: Data is committed but event delivery failed
        """
        pass

    @abstractmethod
    async def rollback(self) -> None:
        """Discard staged changes and reload tracked entities from the store."""
        pass

    @abstractmethod
    async def dispose(self) -> None:
        """Release the transaction context. Idempotent."""
        pass

    async def __aenter__(self) -> "IUnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.dispose()
