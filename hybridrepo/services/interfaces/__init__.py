"""Data-access contracts (ABCs)"""

from hybridrepo.services.interfaces.domain_events import IDomainEventDispatcher
from hybridrepo.services.interfaces.repository import IRepository
from hybridrepo.services.interfaces.unit_of_work import IUnitOfWork

__all__ = [
    'IDomainEventDispatcher',
    'IRepository',
    'IUnitOfWork',
]
