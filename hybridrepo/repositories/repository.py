"""
Generic repository over one entity type.

Binds an entity class to the owning Unit of Work's AsyncSession. Staging
calls only touch the session's in-memory state; reads either return a
lazy EntityQuery or execute immediately when awaited.
"""

import logging
from typing import Any, Iterable, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import func, inspect, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import make_transient_to_detached
from sqlalchemy.orm.attributes import flag_modified

from hybridrepo.core.exceptions import InvalidArgumentError, UnitOfWorkDisposedError
from hybridrepo.models.base import BaseEntity
from hybridrepo.repositories.options import QueryOptions
from hybridrepo.repositories.query import EntityQuery, Include
from hybridrepo.services.interfaces.repository import IRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _require_predicate(predicate: Any) -> Any:
    # Clause elements refuse bool(); compare against None explicitly
    if predicate is None:
        raise InvalidArgumentError("predicate must not be None")
    return predicate


def _require_entity(entity: Any) -> Any:
    if entity is None:
        raise InvalidArgumentError("entity must not be None")
    return entity


class Repository(IRepository[T]):
    """
    SQLAlchemy implementation of IRepository.

    Attributes:
        model: The mapped entity class
    """

    def __init__(self, session: AsyncSession, model: Type[T]):
        if session is None:
            raise InvalidArgumentError("session must not be None")
        self._session: Optional[AsyncSession] = session
        self.model = model

    @property
    def session(self) -> AsyncSession:
        """The bound transaction context."""
        if self._session is None:
            raise UnitOfWorkDisposedError(
                f"Repository[{self.model.__name__}] used after its unit of work was disposed"
            )
        return self._session

    def detach(self) -> None:
        """Unbind from the transaction context; further use raises."""
        self._session = None

    def _query(self, options: Optional[QueryOptions] = None) -> EntityQuery[T]:
        return EntityQuery(lambda: self.session, self.model, options=options)

    def _default_ordering(self) -> Sequence[Any]:
        if isinstance(self.model, type) and issubclass(self.model, BaseEntity):
            return (self.model.created_at, self.model.id)
        return tuple(inspect(self.model).primary_key)

    # Reads

    @property
    def entities(self) -> EntityQuery[T]:
        return self._query()

    async def find_one(
        self,
        predicate: Any,
        options: Optional[QueryOptions] = None
    ) -> Optional[T]:
        return await self.find(predicate, options).first()

    def find(
        self,
        predicate: Any,
        options: Optional[QueryOptions] = None
    ) -> EntityQuery[T]:
        return self._query(options).where(_require_predicate(predicate))

    def get_all(
        self,
        predicate: Any = None,
        options: Optional[QueryOptions] = None
    ) -> EntityQuery[T]:
        query = self._query(options)
        if predicate is not None:
            query = query.where(predicate)
        return query

    async def get_all_including(self, *includes: Include) -> List[T]:
        return await self._query().include(*includes).all()

    async def get_all_paged(
        self,
        page_number: int,
        page_size: int,
        *includes: Include,
        order_by: Any = None
    ) -> List[T]:
        if page_number < 1:
            raise InvalidArgumentError(f"page_number must be >= 1, got {page_number}")
        if page_size <= 0:
            raise InvalidArgumentError(f"page_size must be > 0, got {page_size}")

        if order_by is None:
            ordering = self._default_ordering()
        elif isinstance(order_by, (list, tuple)):
            ordering = tuple(order_by)
        else:
            ordering = (order_by,)

        query = (
            self._query()
            .include(*includes)
            .order_by(*ordering)
            .offset((page_number - 1) * page_size)
            .limit(page_size)
        )
        return await query.all()

    async def any(self, predicate: Any) -> bool:
        stmt = select(
            select(self.model).where(_require_predicate(predicate)).exists()
        )
        result = await self.session.execute(stmt)
        return bool(result.scalar())

    async def count(self, predicate: Any) -> int:
        stmt = (
            select(func.count())
            .select_from(self.model)
            .where(_require_predicate(predicate))
        )
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def find_first(self, predicate: Any, *includes: Include) -> Optional[T]:
        query = self._query().where(_require_predicate(predicate)).include(*includes)
        entity = await query.first()

        if entity is None:
            logger.info(
                f"No {self.model.__name__} was found with predicate: {predicate}",
                extra={"entity_type": self.model.__name__},
            )

        return entity

    # Staging

    def add(self, entity: T) -> None:
        self.session.add(_require_entity(entity))

    def add_all(self, entities: Iterable[T]) -> None:
        if entities is None:
            raise InvalidArgumentError("entities must not be None")
        self.session.add_all([_require_entity(entity) for entity in entities])

    def _attach_existing(self, entity: T) -> None:
        state = inspect(entity)
        key_attrs = [
            state.mapper.get_property_by_column(column).key
            for column in state.mapper.primary_key
        ]
        keyed = all(state.dict.get(key) is not None for key in key_attrs)

        if not (state.transient and keyed):
            self.session.add(entity)
            return

        # Built outside any session with a known key: it names an existing
        # row, so every column set on it is written as an UPDATE
        loaded = [
            attr.key
            for attr in state.mapper.column_attrs
            if attr.key in state.dict and attr.key not in key_attrs
        ]
        make_transient_to_detached(entity)
        self.session.add(entity)
        for key in loaded:
            flag_modified(entity, key)

    def update(self, entity: T) -> None:
        _require_entity(entity)
        if isinstance(entity, BaseEntity):
            entity.touch()
        self._attach_existing(entity)

    async def delete(self, entity: T) -> None:
        # AsyncSession.delete may load unloaded cascade collections first
        await self.session.delete(_require_entity(entity))

    async def delete_where(self, predicate: Any) -> int:
        entities = await self.find(predicate).all()
        for entity in entities:
            await self.session.delete(entity)
        return len(entities)

    def soft_delete(self, entity: T) -> None:
        _require_entity(entity)
        if isinstance(entity, BaseEntity):
            entity.mark_deleted()
        self._attach_existing(entity)

    async def soft_delete_where(self, predicate: Any) -> int:
        entities = await self.find(predicate).all()

        for entity in entities:
            if isinstance(entity, BaseEntity):
                entity.mark_deleted()

        self.session.add_all(entities)
        return len(entities)

    def __repr__(self) -> str:
        return f"Repository[{self.model.__name__}]"
