"""
Repository Interface (IRepository)

Abstract base class defining the CRUD/query contract over one entity type.

Implementation guide:
- Staging methods (add, add_all, update, soft_delete) are synchronous and
  never touch the store; writes reach the database at Unit of Work commit
- Lazy readers (entities, find, get_all) return an EntityQuery and do no I/O
- Every other reader is awaitable and executes immediately
- A None predicate is a contract violation raised before any I/O
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Generic, Iterable, List, Optional, TypeVar

if TYPE_CHECKING:
    from hybridrepo.repositories.options import QueryOptions
    from hybridrepo.repositories.query import EntityQuery, Include

T = TypeVar("T")


class IRepository(ABC, Generic[T]):
    """
    Abstract interface for per-entity-type data access.

    A repository is bound to one entity type and one transaction context
    (the owning Unit of Work's session) and never outlives it.
    """

    @property
    @abstractmethod
    def entities(self) -> "EntityQuery[T]":
        """
        The full, unfiltered query surface of the entity type.

        Use for ad-hoc composition and projection. Soft-deleted rows are
        not filtered out.

        Example:
            >>> rows = await repo.entities.where(Product.price > 10).project(Product.name)
        """
        pass

    @abstractmethod
    async def find_one(
        self,
        predicate: Any,
        options: Optional["QueryOptions"] = None
    ) -> Optional[T]:
        """
        First entity matching the predicate.

        Args:
            predicate: SQLAlchemy boolean expression, e.g. Product.sku == "A-1"
            options: Tracking / auto-include flags (default: tracked, includes applied)

        Returns:
            The entity, or None if nothing matches

        Raises:
            InvalidArgumentError: If predicate is None
        """
        pass

    @abstractmethod
    def find(
        self,
        predicate: Any,
        options: Optional["QueryOptions"] = None
    ) -> "EntityQuery[T]":
        """
        Lazy query of all entities matching the predicate.

        Nothing is executed until the query is materialized.

        Raises:
            InvalidArgumentError: If predicate is None
        """
        pass

    @abstractmethod
    def get_all(
        self,
        predicate: Any = None,
        options: Optional["QueryOptions"] = None
    ) -> "EntityQuery[T]":
        """
        Lazy full scan, optionally filtered.

        Args:
            predicate: Optional filter; None scans every row
            options: Tracking / auto-include flags
        """
        pass

    @abstractmethod
    async def get_all_including(self, *includes: "Include") -> List[T]:
        """
        Materialize every entity, eager-loading the named relationships.

        Named includes are loaded even when auto-includes are suppressed.
        """
        pass

    @abstractmethod
    async def get_all_paged(
        self,
        page_number: int,
        page_size: int,
        *includes: "Include",
        order_by: Any = None
    ) -> List[T]:
        """
        Materialize one page of entities.

        Skips (page_number - 1) * page_size rows and takes page_size.

        Args:
            page_number: 1-based page index
            page_size: Rows per page
            *includes: Relationships to eager-load
            order_by: Ordering clause(s); defaults to a stable key order

        Raises:
            InvalidArgumentError: If page_number < 1 or page_size <= 0
        """
        pass

    @abstractmethod
    def add(self, entity: T) -> None:
        """Stage an insert. No I/O until commit."""
        pass

    @abstractmethod
    def add_all(self, entities: Iterable[T]) -> None:
        """Stage several inserts. No I/O until commit."""
        pass

    @abstractmethod
    def update(self, entity: T) -> None:
        """
        Stage an update.

        BaseEntity instances get updated_at refreshed as part of staging;
        other entity kinds are staged unchanged. An instance built outside
        any session with its primary key set names an existing row: every
        column set on it is written as an UPDATE at commit.
        """
        pass

    @abstractmethod
    async def delete(self, entity: T) -> None:
        """Stage a hard delete of one entity."""
        pass

    @abstractmethod
    async def delete_where(self, predicate: Any) -> int:
        """
        Stage a hard delete of every entity matching the predicate.

        Returns:
            Number of entities staged for removal

        Raises:
            InvalidArgumentError: If predicate is None
        """
        pass

    @abstractmethod
    def soft_delete(self, entity: T) -> None:
        """
        Set the soft-delete flag, refresh updated_at and stage an update.

        The row is not physically removed.
        """
        pass

    @abstractmethod
    async def soft_delete_where(self, predicate: Any) -> int:
        """
        Soft delete every entity matching the predicate at evaluation time.

        Returns:
            Number of entities flagged

        Raises:
            InvalidArgumentError: If predicate is None
        """
        pass

    @abstractmethod
    async def any(self, predicate: Any) -> bool:
        """True if at least one row matches. Executes immediately."""
        pass

    @abstractmethod
    async def count(self, predicate: Any) -> int:
        """Number of matching rows. Executes immediately."""
        pass

    @abstractmethod
    async def find_first(self, predicate: Any, *includes: "Include") -> Optional[T]:
        """
        First match, eager-loading the named relationships.

        Returns:
            The entity, or None. Absence is logged, it is not a failure.

        Raises:
            InvalidArgumentError: If predicate is None
        """
        pass
