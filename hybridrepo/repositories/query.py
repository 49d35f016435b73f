"""
Lazy query builder for repository reads.

An EntityQuery accumulates filter, ordering, include and paging criteria
without touching the store. Execution only happens through one of the
awaitable materializers (all, first, count, project) or async iteration.
"""

from typing import (
    Any,
    AsyncIterator,
    Callable,
    Generic,
    List,
    Optional,
    Sequence,
    Tuple,
    Type,
    TypeVar,
    Union,
)

from sqlalchemy import func, inspect, select
from sqlalchemy.engine import Row
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import QueryableAttribute, lazyload, selectinload
from sqlalchemy.sql import Select

from hybridrepo.core.exceptions import InvalidArgumentError
from hybridrepo.repositories.options import QueryOptions, resolve_options

T = TypeVar("T")

Include = Union[str, QueryableAttribute]


def resolve_include(model: Type[Any], include: Include) -> QueryableAttribute:
    """
    Turn a relationship name or attribute into a loadable relationship attribute.

    Raises:
        InvalidArgumentError: The name is not a relationship of the model
    """
    relationships = inspect(model).relationships
    if isinstance(include, str):
        if include not in relationships:
            raise InvalidArgumentError(
                f"{model.__name__} has no relationship named {include!r}"
            )
        return getattr(model, include)

    prop = getattr(include, "property", None)
    if prop is None or prop not in relationships.values():
        raise InvalidArgumentError(
            f"{include!r} is not a relationship of {model.__name__}"
        )
    return include


class EntityQuery(Generic[T]):
    """
    Immutable, deferred query over one entity type.

    Every builder method returns a new EntityQuery and leaves its receiver unchanged.
    """

    def __init__(
        self,
        session_getter: Callable[[], AsyncSession],
        model: Type[T],
        criteria: Tuple[Any, ...] = (),
        ordering: Tuple[Any, ...] = (),
        includes: Tuple[QueryableAttribute, ...] = (),
        options: Optional[QueryOptions] = None,
        offset: Optional[int] = None,
        limit: Optional[int] = None,
    ):
        self._session_getter = session_getter
        self.model = model
        self._criteria = criteria
        self._ordering = ordering
        self._includes = includes
        self.options = resolve_options(options)
        self._offset = offset
        self._limit = limit

    def _copy(self, **changes: Any) -> "EntityQuery[T]":
        state = {
            "criteria": self._criteria,
            "ordering": self._ordering,
            "includes": self._includes,
            "options": self.options,
            "offset": self._offset,
            "limit": self._limit,
        }
        state.update(changes)
        return EntityQuery(self._session_getter, self.model, **state)

    # Builders

    def where(self, *criteria: Any) -> "EntityQuery[T]":
        for criterion in criteria:
            if criterion is None:
                raise InvalidArgumentError("predicate must not be None")
        return self._copy(criteria=self._criteria + criteria)

    def order_by(self, *clauses: Any) -> "EntityQuery[T]":
        return self._copy(ordering=self._ordering + clauses)

    def include(self, *relations: Include) -> "EntityQuery[T]":
        resolved = tuple(resolve_include(self.model, rel) for rel in relations)
        return self._copy(includes=self._includes + resolved)

    def with_options(self, options: Optional[QueryOptions]) -> "EntityQuery[T]":
        return self._copy(options=resolve_options(options))

    def offset(self, count: int) -> "EntityQuery[T]":
        if count < 0:
            raise InvalidArgumentError("offset must be >= 0")
        return self._copy(offset=count)

    def limit(self, count: int) -> "EntityQuery[T]":
        if count <= 0:
            raise InvalidArgumentError("limit must be > 0")
        return self._copy(limit=count)

    # Statements

    def _core_statement(self) -> Select:
        stmt = select(self.model)
        if self._criteria:
            stmt = stmt.where(*self._criteria)
        if self._ordering:
            stmt = stmt.order_by(*self._ordering)
        if self._offset is not None:
            stmt = stmt.offset(self._offset)
        if self._limit is not None:
            stmt = stmt.limit(self._limit)
        return stmt

    @property
    def statement(self) -> Select:
        """The composed SELECT, including loader options."""
        stmt = self._core_statement()
        loader_options = []
        if self.options.ignore_auto_includes:
            loader_options.append(lazyload("*"))
        # Named includes override the wildcard for those relationships
        loader_options.extend(selectinload(rel) for rel in self._includes)
        if loader_options:
            stmt = stmt.options(*loader_options)
        return stmt

    # Materializers

    async def _execute(self, stmt: Select) -> List[T]:
        session = self._session_getter()
        if self.options.no_tracking:
            return await self._execute_untracked(session, stmt)

        result = await session.execute(stmt)
        return list(result.scalars().unique().all())

    @staticmethod
    async def _execute_untracked(session: AsyncSession, stmt: Select) -> List[T]:
        # A second session on the caller's connection: same transaction, its
        # own identity map. Closing it detaches the results and leaves the
        # caller's transaction untouched.
        connection = await session.connection()
        async with AsyncSession(
            bind=connection,
            join_transaction_mode="rollback_only",
            expire_on_commit=False,
            autoflush=False,
        ) as reader:
            result = await reader.execute(stmt)
            return list(result.scalars().unique().all())

    async def all(self) -> List[T]:
        return await self._execute(self.statement)

    async def first(self) -> Optional[T]:
        items = await self._execute(self.statement.limit(1))
        return items[0] if items else None

    async def count(self) -> int:
        session = self._session_getter()
        stmt = select(func.count()).select_from(
            self._core_statement().order_by(None).subquery()
        )
        result = await session.execute(stmt)
        return int(result.scalar_one())

    async def project(self, *columns: Any) -> Sequence[Row]:
        """Run the filters and ordering with only the given columns selected."""
        if not columns:
            raise InvalidArgumentError("project() needs at least one column")
        session = self._session_getter()
        stmt = self._core_statement().with_only_columns(*columns)
        result = await session.execute(stmt)
        return result.all()

    async def __aiter__(self) -> AsyncIterator[T]:
        for item in await self.all():
            yield item

    def __repr__(self) -> str:
        return f"EntityQuery({self.model.__name__}, criteria={len(self._criteria)})"
