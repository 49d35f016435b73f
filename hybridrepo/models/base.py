"""
Base models for SQLAlchemy ORM entities.

Provides the declarative base, the BaseEntity contract (identity,
timestamps, soft-delete flag, pending domain events) and common helpers.
"""

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, List, Optional, Tuple
import uuid

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.orm import declarative_base

if TYPE_CHECKING:
    from hybridrepo.models.events import BaseEvent


# SQLAlchemy declarative base for all ORM models
Base = declarative_base()


def utc_now() -> datetime:
    """
    Current UTC time as a naive datetime.

    Naive UTC round-trips unchanged through every supported backend,
    including SQLite which drops tzinfo on reload.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    """Fresh UUID4 in string form."""
    return str(uuid.uuid4())


class ModelMixin:
    """
    Mixin providing common model utilities.

    Adds helper methods for serialization and representation.
    """

    def to_dict(self) -> dict[str, Any]:
        """
        Convert model instance to dictionary.

        Note:
            Only includes columns, not relationships.
        """
        return {
            column.name: getattr(self, column.name)
            for column in self.__table__.columns
        }

    def __repr__(self) -> str:
        attrs = ", ".join(
            f"{key}={repr(value)}"
            for key, value in self.to_dict().items()
            if key in ["id", "name", "title", "is_deleted"]
        )
        return f"{self.__class__.__name__}({attrs})"


class BaseEntity(ModelMixin, Base):
    """
    Base entity contract.

    Every subclass gets:
        id: UUID string, generated at construction, immutable afterwards
        created_at: UTC construction time, immutable
        updated_at: UTC time of the last staged mutation (None until then)
        is_deleted: soft-delete flag

    and an ordered list of pending domain events. The list lives on the
    instance only (it is not a column) and is owned exclusively by it.
    """

    __abstract__ = True

    id = Column(
        String(36),
        primary_key=True,
        default=new_id,
        doc="UUID primary key"
    )

    created_at = Column(
        DateTime,
        nullable=False,
        default=utc_now,
        doc="UTC timestamp when the entity was constructed"
    )

    updated_at = Column(
        DateTime,
        nullable=True,
        doc="UTC timestamp of the last staged mutation"
    )

    is_deleted = Column(
        Boolean,
        nullable=False,
        default=False,
        doc="Soft delete flag"
    )

    def __init__(self, **kwargs: Any):
        kwargs.setdefault("id", new_id())
        kwargs.setdefault("created_at", utc_now())
        kwargs.setdefault("is_deleted", False)
        super().__init__(**kwargs)

    def _pending_events(self) -> List["BaseEvent"]:
        # Instances loaded from the store skip __init__, so create on first use
        events = self.__dict__.get("_domain_events")
        if events is None:
            events = []
            self.__dict__["_domain_events"] = events
        return events

    @property
    def domain_events(self) -> Tuple["BaseEvent", ...]:
        """Pending events in insertion order (read-only view)."""
        return tuple(self._pending_events())

    def add_domain_event(self, domain_event: "BaseEvent") -> None:
        self._pending_events().append(domain_event)

    def remove_domain_event(self, domain_event: "BaseEvent") -> None:
        self._pending_events().remove(domain_event)

    def clear_domain_events(self) -> None:
        self._pending_events().clear()

    def take_domain_events(self) -> Tuple["BaseEvent", ...]:
        """Snapshot then clear the pending events."""
        events = self._pending_events()
        snapshot = tuple(events)
        events.clear()
        return snapshot

    def touch(self, now: Optional[datetime] = None) -> datetime:
        """
        Refresh updated_at.

        The new value is always strictly later than the previous one, even
        when the clock has not advanced between two calls.
        """
        now = now or utc_now()
        previous = self.updated_at
        if previous is not None and now <= previous:
            now = previous + timedelta(microseconds=1)
        self.updated_at = now
        return now

    def mark_deleted(self) -> None:
        """Set the soft-delete flag and refresh updated_at in one change."""
        self.is_deleted = True
        self.touch()
