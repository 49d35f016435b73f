"""
Domain Event Dispatcher Interface (IDomainEventDispatcher)

Put the implementation wherever the application's subscribers live;
the Unit of Work only depends on this contract.
"""

from abc import ABC, abstractmethod
from typing import Iterable

from hybridrepo.models.base import BaseEntity


class IDomainEventDispatcher(ABC):
    """Delivers and clears the pending events of committed entities."""

    @abstractmethod
    async def dispatch_and_clear(self, entities: Iterable[BaseEntity]) -> int:
        """
        Deliver each entity's queued events, clearing them first.

        Events of one entity are snapshotted in insertion order and the
        entity's queue is cleared before the first delivery, so a failing
        subscriber never causes a re-delivery.

        Returns:
            Number of deliveries made

        Raises:
            DispatchError: A subscriber failed; the commit is not undone
        """
        pass
