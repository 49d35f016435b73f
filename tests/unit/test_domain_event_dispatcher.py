"""
Unit tests for DomainEventDispatcher.

Covers subscription matching, sync and async subscribers, delivery order,
snapshot-then-clear and failure attribution.
Tests follow AAA (Arrange, Act, Assert) pattern.
"""

import logging

import pytest

from hybridrepo.core.exceptions import DispatchError, InvalidArgumentError
from hybridrepo.models import BaseEvent
from hybridrepo.services.domain_events import DomainEventDispatcher

from sample_models import PriceChanged, Product, ProductCreated


class TestSubscriptions:
    """subscribe / unsubscribe / handlers_for."""

    def test_handler_for_base_class_receives_subclasses(self):
        """
        Test that a BaseEvent subscriber matches every event type.

        Arrange: One catch-all and one specific subscriber
        Act: Look up handlers for a PriceChanged event
        Assert: Both match, in subscription order
        """
        # Arrange
        dispatcher = DomainEventDispatcher()

        def catch_all(event):
            pass

        def on_price(event):
            pass

        dispatcher.subscribe(BaseEvent, catch_all)
        dispatcher.subscribe(PriceChanged, on_price)

        # Act
        handlers = dispatcher.handlers_for(
            PriceChanged(product_id="p", old_price=1.0, new_price=2.0)
        )

        # Assert
        assert handlers == [catch_all, on_price]

    def test_unrelated_handler_does_not_match(self):
        dispatcher = DomainEventDispatcher()
        dispatcher.subscribe(PriceChanged, lambda event: None)

        assert dispatcher.handlers_for(ProductCreated(product_id="p", sku="A")) == []

    def test_unsubscribe(self):
        dispatcher = DomainEventDispatcher()

        def handler(event):
            pass

        dispatcher.subscribe(ProductCreated, handler)

        assert dispatcher.unsubscribe(ProductCreated, handler) is True
        assert dispatcher.unsubscribe(ProductCreated, handler) is False
        assert dispatcher.handlers_for(ProductCreated(product_id="p", sku="A")) == []

    def test_subscribe_rejects_non_callable(self):
        dispatcher = DomainEventDispatcher()

        with pytest.raises(InvalidArgumentError):
            dispatcher.subscribe(ProductCreated, "not callable")


class TestDispatchAndClear:
    """Delivery semantics."""

    @pytest.mark.asyncio
    async def test_delivers_in_insertion_order_and_clears(self):
        """
        Test that each entity's events are delivered in order, then cleared.

        Arrange: Product with three events, sync and async subscribers
        Act: dispatch_and_clear([product])
        Assert: Events delivered in order to both, queue empty, count returned
        """
        # Arrange
        dispatcher = DomainEventDispatcher()
        received_sync = []
        received_async = []

        def sync_handler(event):
            received_sync.append(event)

        async def async_handler(event):
            received_async.append(event)

        dispatcher.subscribe(BaseEvent, sync_handler)
        dispatcher.subscribe(BaseEvent, async_handler)

        product = Product.create("Widget", "W-1", price=1.0)
        product.change_price(2.0)
        product.change_price(3.0)
        queued = product.domain_events

        # Act
        delivered = await dispatcher.dispatch_and_clear([product])

        # Assert
        assert delivered == 6
        assert received_sync == list(queued)
        assert received_async == list(queued)
        assert product.domain_events == ()

    @pytest.mark.asyncio
    async def test_events_without_subscribers_are_still_cleared(self):
        dispatcher = DomainEventDispatcher()
        product = Product.create("Widget", "W-1")

        delivered = await dispatcher.dispatch_and_clear([product])

        assert delivered == 0
        assert product.domain_events == ()

    @pytest.mark.asyncio
    async def test_entities_are_processed_in_given_order(self):
        dispatcher = DomainEventDispatcher()
        seen = []
        dispatcher.subscribe(ProductCreated, lambda event: seen.append(event.sku))

        first = Product.create("A", "A")
        second = Product.create("B", "B")

        await dispatcher.dispatch_and_clear([first, second])

        assert seen == ["A", "B"]

    @pytest.mark.asyncio
    async def test_failure_raises_dispatch_error_with_context(self):
        """
        Test that the first failing delivery raises DispatchError.

        Arrange: Failing subscriber for PriceChanged; two products with events
        Act: dispatch_and_clear([first, second])
        Assert: DispatchError names event, entity and handler, chains the cause;
                the first product's queue is cleared, the second's is untouched
        """
        # Arrange
        dispatcher = DomainEventDispatcher()

        async def broken(event):
            raise RuntimeError("subscriber down")

        dispatcher.subscribe(PriceChanged, broken)

        first = Product.create("A", "A")
        first.change_price(5.0)
        second = Product.create("B", "B")

        # Act
        with pytest.raises(DispatchError) as exc_info:
            await dispatcher.dispatch_and_clear([first, second])

        # Assert
        error = exc_info.value
        assert isinstance(error.event, PriceChanged)
        assert error.entity is first
        assert error.handler is broken
        assert error.committed is True
        assert isinstance(error.__cause__, RuntimeError)
        assert first.domain_events == ()
        assert len(second.domain_events) == 1

    @pytest.mark.asyncio
    async def test_failed_event_is_never_redelivered(self):
        dispatcher = DomainEventDispatcher()
        calls = []

        def flaky(event):
            calls.append(event)
            raise ValueError("boom")

        dispatcher.subscribe(ProductCreated, flaky)
        product = Product.create("A", "A")

        with pytest.raises(DispatchError):
            await dispatcher.dispatch_and_clear([product])

        # Second pass finds an empty queue
        delivered = await dispatcher.dispatch_and_clear([product])

        assert delivered == 0
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_publish_single_event(self):
        dispatcher = DomainEventDispatcher()
        received = []
        dispatcher.subscribe(ProductCreated, received.append)

        count = await dispatcher.publish(ProductCreated(product_id="p", sku="A"))

        assert count == 1
        assert received[0].sku == "A"

    @pytest.mark.asyncio
    async def test_deliveries_logged_at_debug(self, caplog):
        caplog.set_level(logging.DEBUG, logger="hybridrepo.services.domain_events")
        dispatcher = DomainEventDispatcher()

        await dispatcher.dispatch_and_clear([Product.create("A", "A")])

        assert "Delivered ProductCreated" in caplog.text
