"""
Unit of Work - Transaction Coordination

Owns one AsyncSession (the transaction context), hands out one cached
repository per entity type, commits every staged change in a single
physical transaction and, only after that commit succeeds, hands the
pending domain events of tracked entities to the dispatcher.

Usage:
    async with UnitOfWork(session, dispatcher) as uow:
        orders = uow.repository(Order)
        order = await orders.find_one(Order.id == order_id)
        order.place()              # queues OrderPlaced
        orders.update(order)
        await uow.commit()         # flush, then dispatch OrderPlaced
"""

import logging
from enum import Enum
from typing import Callable, Dict, List, Optional, Type, TypeVar
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from hybridrepo.core.exceptions import (
    DispatchError,
    InvalidArgumentError,
    UnitOfWorkDisposedError,
)
from hybridrepo.core.logging_config import log_with_context
from hybridrepo.models.base import BaseEntity
from hybridrepo.repositories.repository import Repository
from hybridrepo.services.interfaces.domain_events import IDomainEventDispatcher
from hybridrepo.services.interfaces.repository import IRepository
from hybridrepo.services.interfaces.unit_of_work import IUnitOfWork

logger = logging.getLogger(__name__)

T = TypeVar("T")

RepositoryFactory = Callable[[AsyncSession, Type[T]], IRepository[T]]


class UnitOfWorkState(str, Enum):
    """Lifecycle states of a Unit of Work."""
    OPEN = "open"
    COMMITTING = "committing"
    DISPOSED = "disposed"


class UnitOfWork(IUnitOfWork):
    """
    SQLAlchemy implementation of IUnitOfWork.

    The repository cache is keyed by the entity class itself and only ever
    grows. A Unit of Work belongs to a single task; nothing here is locked.

    Attributes:
        id: Correlation id used in log records
        dispatcher: Optional domain event dispatcher
    """

    def __init__(
        self,
        session: AsyncSession,
        dispatcher: Optional[IDomainEventDispatcher] = None,
        repository_factory: RepositoryFactory = Repository,
    ):
        if session is None:
            raise InvalidArgumentError("session must not be None")

        self.id = str(uuid.uuid4())
        self.dispatcher = dispatcher
        self._session = session
        self._repository_factory = repository_factory
        self._repositories: Dict[type, IRepository] = {}
        self._state = UnitOfWorkState.OPEN

    @property
    def state(self) -> UnitOfWorkState:
        return self._state

    @property
    def session(self) -> AsyncSession:
        return self._require_open()

    def _require_open(self) -> AsyncSession:
        if self._state is UnitOfWorkState.DISPOSED:
            raise UnitOfWorkDisposedError(f"Unit of work {self.id} is disposed")
        return self._session

    def repository(self, model: Type[T]) -> IRepository[T]:
        session = self._require_open()

        repository = self._repositories.get(model)
        if repository is None:
            repository = self._repository_factory(session, model)
            self._repositories[model] = repository
            logger.debug(
                f"Created repository for {model.__name__}",
                extra={"unit_of_work_id": self.id, "entity_type": model.__name__},
            )
        return repository

    def _pending_row_count(self) -> int:
        session = self._session
        modified = sum(1 for obj in session.dirty if session.is_modified(obj))
        return len(session.new) + len(session.deleted) + modified

    def _tracked_entities(self) -> List[BaseEntity]:
        # Deleted and new instances leave or join the identity map during the
        # flush, so candidates are gathered before it
        session = self._session
        seen = set()
        tracked: List[BaseEntity] = []
        for obj in (*session.identity_map.values(), *session.new, *session.deleted):
            if isinstance(obj, BaseEntity) and id(obj) not in seen:
                seen.add(id(obj))
                tracked.append(obj)
        return tracked

    async def commit(self) -> bool:
        session = self._require_open()
        if self._state is UnitOfWorkState.COMMITTING:
            raise RuntimeError(f"Unit of work {self.id} is already committing")

        self._state = UnitOfWorkState.COMMITTING
        try:
            affected = self._pending_row_count()
            candidates = self._tracked_entities()

            try:
                await session.commit()
            except Exception as commit_error:
                logger.warning(
                    f"Commit failed, discarding staged changes: {commit_error}",
                    extra={"unit_of_work_id": self.id},
                )
                try:
                    await self._discard_staged()
                except Exception:
                    # The commit error is what the caller must see
                    logger.error(
                        "Reloading tracked entities after failed commit also failed",
                        extra={"unit_of_work_id": self.id},
                        exc_info=True,
                    )
                raise

            log_with_context(
                logger,
                "debug",
                f"Unit of work committed ({affected} staged rows)",
                unit_of_work_id=self.id,
            )

            if self.dispatcher is not None:
                await self._dispatch(candidates)

            return affected > 0
        finally:
            if self._state is UnitOfWorkState.COMMITTING:
                self._state = UnitOfWorkState.OPEN

    async def _dispatch(self, candidates: List[BaseEntity]) -> None:
        with_events = [entity for entity in candidates if entity.domain_events]
        if not with_events:
            return

        try:
            delivered = await self.dispatcher.dispatch_and_clear(with_events)
        except DispatchError:
            logger.error(
                "Domain event dispatch failed after commit",
                extra={"unit_of_work_id": self.id},
                exc_info=True,
            )
            raise
        except Exception as e:
            logger.error(
                "Domain event dispatch failed after commit",
                extra={"unit_of_work_id": self.id},
                exc_info=True,
            )
            raise DispatchError(
                f"Dispatcher failed after commit: {e}"
            ) from e

        logger.debug(
            f"Dispatched {delivered} domain event deliveries",
            extra={"unit_of_work_id": self.id},
        )

    async def _discard_staged(self) -> None:
        tracked = list(self._session.identity_map.values())
        await self._session.rollback()
        for entity in tracked:
            if entity in self._session:
                await self._session.refresh(entity)

    async def rollback(self) -> None:
        self._require_open()
        await self._discard_staged()
        logger.debug("Unit of work rolled back", extra={"unit_of_work_id": self.id})

    async def dispose(self) -> None:
        if self._state is UnitOfWorkState.DISPOSED:
            return

        self._state = UnitOfWorkState.DISPOSED
        for repository in self._repositories.values():
            detach = getattr(repository, "detach", None)
            if detach is not None:
                detach()

        # Closing rolls back anything staged but never committed
        await self._session.close()
        logger.debug("Unit of work disposed", extra={"unit_of_work_id": self.id})

    def __repr__(self) -> str:
        return f"UnitOfWork(id={self.id!r}, state={self._state.value})"
