"""
Unit tests for BaseEntity, BaseEvent and QueryOptions.

No database involved: these exercise the in-memory entity contract.
Tests follow AAA (Arrange, Act, Assert) pattern.
"""

from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta

import pytest

from hybridrepo.models import utc_now
from hybridrepo.repositories.options import DEFAULT_OPTIONS, QueryOptions, resolve_options

from sample_models import Category, PriceChanged, Product, ProductCreated


class TestBaseEntityDefaults:
    """Identity and timestamp defaults assigned at construction."""

    def test_new_entity_gets_id_and_created_at(self):
        """
        Test that construction assigns id, created_at and is_deleted.

        Arrange: None
        Act: Construct a Product
        Assert: UUID id, naive UTC created_at, not deleted, no updated_at
        """
        # Act
        before = utc_now()
        product = Product(name="Widget", sku="W-1")

        # Assert
        assert len(product.id) == 36
        assert before <= product.created_at <= utc_now()
        assert product.created_at.tzinfo is None
        assert product.updated_at is None
        assert product.is_deleted is False

    def test_ids_are_unique(self):
        first = Product(name="A", sku="A")
        second = Product(name="B", sku="B")

        assert first.id != second.id

    def test_explicit_values_are_kept(self):
        """
        Test that explicitly passed id and created_at are not overwritten.

        Arrange: Fixed id and timestamp
        Act: Construct with both
        Assert: Values unchanged
        """
        # Arrange
        created = datetime(2024, 1, 1, 12, 0, 0)

        # Act
        product = Product(id="fixed-id", name="A", sku="A", created_at=created)

        # Assert
        assert product.id == "fixed-id"
        assert product.created_at == created

    def test_to_dict_contains_columns_only(self):
        product = Product(name="Widget", sku="W-1", price=9.5)

        data = product.to_dict()

        assert data["name"] == "Widget"
        assert data["sku"] == "W-1"
        assert data["is_deleted"] is False
        assert "tags" not in data


class TestTouchAndSoftDelete:
    """updated_at refresh and the soft-delete flag."""

    def test_touch_sets_updated_at(self):
        product = Product(name="A", sku="A")

        stamped = product.touch()

        assert product.updated_at == stamped
        assert stamped >= product.created_at

    def test_touch_is_strictly_increasing_with_frozen_clock(self):
        """
        Test that touch() never repeats or goes back in time.

        Arrange: Entity touched at a fixed instant
        Act: Touch again with the same and an earlier instant
        Assert: Each value is strictly greater than the previous one
        """
        # Arrange
        product = Product(name="A", sku="A")
        instant = datetime(2024, 5, 1, 8, 0, 0)
        first = product.touch(instant)

        # Act
        second = product.touch(instant)
        third = product.touch(instant - timedelta(hours=1))

        # Assert
        assert first < second < third

    def test_mark_deleted_sets_flag_and_touches(self):
        """
        Test that mark_deleted() flags the entity and refreshes updated_at.

        Arrange: Entity with a known updated_at
        Act: mark_deleted()
        Assert: is_deleted True, updated_at strictly later
        """
        # Arrange
        product = Product(name="A", sku="A")
        previous = product.touch()

        # Act
        product.mark_deleted()

        # Assert
        assert product.is_deleted is True
        assert product.updated_at > previous


class TestDomainEventQueue:
    """Pending domain events owned by an entity."""

    def test_events_keep_insertion_order(self):
        """
        Test that queued events are exposed in insertion order.

        Arrange: Product created through its factory (queues ProductCreated)
        Act: Change the price twice
        Assert: Three events in order
        """
        # Arrange
        product = Product.create("Widget", "W-1", price=10.0)

        # Act
        product.change_price(12.0)
        product.change_price(15.0)

        # Assert
        events = product.domain_events
        assert [type(e) for e in events] == [ProductCreated, PriceChanged, PriceChanged]
        assert events[1].old_price == 10.0
        assert events[2].new_price == 15.0

    def test_domain_events_view_is_read_only(self):
        product = Product.create("Widget", "W-1")

        assert isinstance(product.domain_events, tuple)

    def test_remove_and_clear(self):
        product = Product.create("Widget", "W-1")
        created = product.domain_events[0]
        product.change_price(3.0)

        product.remove_domain_event(created)
        assert len(product.domain_events) == 1

        product.clear_domain_events()
        assert product.domain_events == ()

    def test_take_snapshots_then_clears(self):
        """
        Test that take_domain_events() returns the queue and empties it.

        Arrange: Product with two events
        Act: Take events, then queue a new one
        Assert: Snapshot unaffected by later additions, queue holds only the new one
        """
        # Arrange
        product = Product.create("Widget", "W-1")
        product.change_price(2.0)

        # Act
        taken = product.take_domain_events()
        product.change_price(3.0)

        # Assert
        assert len(taken) == 2
        assert len(product.domain_events) == 1

    def test_queues_are_per_instance(self):
        first = Product.create("A", "A")
        second = Product(name="B", sku="B")

        assert len(first.domain_events) == 1
        assert second.domain_events == ()

    def test_plain_entities_have_no_event_queue(self):
        category = Category(name="tools")

        assert not hasattr(category, "domain_events")


class TestBaseEvent:
    """Immutable domain event records."""

    def test_event_type_is_class_name(self):
        event = ProductCreated(product_id="p-1", sku="A")

        assert event.event_type == "ProductCreated"

    def test_event_is_frozen(self):
        event = ProductCreated(product_id="p-1", sku="A")

        with pytest.raises(FrozenInstanceError):
            event.sku = "B"

    def test_occurred_at_defaults_to_now(self):
        before = utc_now()

        event = ProductCreated(product_id="p-1", sku="A")

        assert before <= event.occurred_at <= utc_now()

    def test_to_dict(self):
        when = datetime(2024, 3, 1, 10, 30)
        event = PriceChanged(product_id="p-1", old_price=1.0, new_price=2.0, occurred_at=when)

        data = event.to_dict()

        assert data == {
            "product_id": "p-1",
            "old_price": 1.0,
            "new_price": 2.0,
            "occurred_at": "2024-03-01T10:30:00",
            "event_type": "PriceChanged",
        }


class TestQueryOptions:
    """Read option flags."""

    def test_defaults_are_tracked_with_includes(self):
        options = QueryOptions()

        assert options.no_tracking is False
        assert options.ignore_auto_includes is False

    def test_none_resolves_to_defaults(self):
        assert resolve_options(None) == DEFAULT_OPTIONS

    def test_explicit_options_pass_through(self):
        options = QueryOptions(no_tracking=True)

        assert resolve_options(options) is options

    def test_options_are_immutable(self):
        options = QueryOptions()

        with pytest.raises(FrozenInstanceError):
            options.no_tracking = True
