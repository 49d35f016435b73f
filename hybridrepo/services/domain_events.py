"""
Domain Event Dispatcher

In-process, mediator-style publisher for domain events queued on
entities. Subscribers register per event class; a subscriber for a base
class also receives its subclasses.

Delivery is sequential: each delivery is awaited before the next starts,
so a failure is attributable to one event and one subscriber.
"""

import inspect
import logging
from typing import Any, Callable, Iterable, List, Optional, Tuple, Type

from sqlalchemy import inspect as inspect_instance

from hybridrepo.core.exceptions import DispatchError, InvalidArgumentError
from hybridrepo.models.base import BaseEntity
from hybridrepo.models.events import BaseEvent
from hybridrepo.services.interfaces.domain_events import IDomainEventDispatcher

logger = logging.getLogger(__name__)

EventHandler = Callable[[BaseEvent], Any]


def _handler_name(handler: EventHandler) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)


def _entity_key(entity: Any) -> Optional[Any]:
    # Read from instance state; an expired id attribute would need I/O
    state = inspect_instance(entity, raiseerr=False)
    if state is None:
        return getattr(entity, "id", None)
    if state.identity is None:
        return state.dict.get("id")
    identity = state.identity
    return identity[0] if len(identity) == 1 else identity


class DomainEventDispatcher(IDomainEventDispatcher):
    """
    Subscriber registry plus dispatch_and_clear.

    Handlers may be plain callables or coroutine functions. Subscription
    order is delivery order.
    """

    def __init__(self):
        self._subscriptions: List[Tuple[Type[BaseEvent], EventHandler]] = []

    def subscribe(self, event_type: Type[BaseEvent], handler: EventHandler) -> None:
        if not callable(handler):
            raise InvalidArgumentError("handler must be callable")
        self._subscriptions.append((event_type, handler))
        logger.debug(
            f"Subscribed {_handler_name(handler)} to {event_type.__name__}",
            extra={"event_type": event_type.__name__},
        )

    def unsubscribe(self, event_type: Type[BaseEvent], handler: EventHandler) -> bool:
        """Remove a subscription; returns False if it was not registered."""
        try:
            self._subscriptions.remove((event_type, handler))
        except ValueError:
            return False
        return True

    def handlers_for(self, domain_event: BaseEvent) -> List[EventHandler]:
        return [
            handler
            for event_type, handler in self._subscriptions
            if isinstance(domain_event, event_type)
        ]

    async def _deliver(self, handler: EventHandler, domain_event: BaseEvent) -> None:
        result = handler(domain_event)
        if inspect.isawaitable(result):
            await result

    async def publish(self, domain_event: BaseEvent) -> int:
        """
        Deliver one event to every matching subscriber.

        Returns:
            Number of subscribers the event was delivered to

        Raises:
            Whatever the failing subscriber raised
        """
        handlers = self.handlers_for(domain_event)
        for handler in handlers:
            await self._deliver(handler, domain_event)
        return len(handlers)

    async def dispatch_and_clear(self, entities: Iterable[BaseEntity]) -> int:
        delivered = 0

        for entity in entities:
            # Snapshot then clear: a failed delivery never re-queues
            events = entity.take_domain_events()

            for domain_event in events:
                for handler in self.handlers_for(domain_event):
                    try:
                        await self._deliver(handler, domain_event)
                    except Exception as e:
                        raise DispatchError(
                            f"{_handler_name(handler)} failed handling "
                            f"{domain_event.event_type} for {type(entity).__name__} "
                            f"{_entity_key(entity)}: {e}",
                            event=domain_event,
                            entity=entity,
                            handler=handler,
                        ) from e
                    delivered += 1

                logger.debug(
                    f"Delivered {domain_event.event_type}",
                    extra={
                        "entity_type": type(entity).__name__,
                        "event_type": domain_event.event_type,
                    },
                )

        return delivered
