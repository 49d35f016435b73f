"""
Repository layer for data access.

Provides the generic repository, its lazy query builder and the Unit of
Work that owns them.
"""

from hybridrepo.repositories.options import QueryOptions
from hybridrepo.repositories.query import EntityQuery
from hybridrepo.repositories.repository import Repository
from hybridrepo.repositories.unit_of_work import UnitOfWork, UnitOfWorkState

__all__ = [
    "EntityQuery",
    "QueryOptions",
    "Repository",
    "UnitOfWork",
    "UnitOfWorkState",
]
