"""
hybridrepo - async Unit of Work and Repository layer over SQLAlchemy.

Entities subclass BaseEntity; a Unit of Work hands out one Repository per
entity type, commits staged changes atomically and dispatches queued
domain events after a successful commit.
"""

from hybridrepo.core.config import HealthCheck, Settings, get_settings
from hybridrepo.core.exceptions import (
    CircuitOpenError,
    DispatchError,
    HybridRepoError,
    InvalidArgumentError,
    UnitOfWorkDisposedError,
    UnsupportedProviderError,
)
from hybridrepo.models import Base, BaseEntity, BaseEvent
from hybridrepo.registration import HybridRepo
from hybridrepo.repositories import EntityQuery, QueryOptions, Repository, UnitOfWork
from hybridrepo.services.domain_events import DomainEventDispatcher

__version__ = "0.1.0"

__all__ = [
    "Base",
    "BaseEntity",
    "BaseEvent",
    "CircuitOpenError",
    "DispatchError",
    "DomainEventDispatcher",
    "EntityQuery",
    "HealthCheck",
    "HybridRepo",
    "HybridRepoError",
    "InvalidArgumentError",
    "QueryOptions",
    "Repository",
    "Settings",
    "UnitOfWork",
    "UnitOfWorkDisposedError",
    "UnsupportedProviderError",
    "get_settings",
]
