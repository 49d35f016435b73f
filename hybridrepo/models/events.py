"""
Domain event base type.

A domain event is an immutable fact recorded by entity business logic.
It is queued on the owning entity and delivered after the Unit of Work
commits.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict

from hybridrepo.models.base import utc_now


@dataclass(frozen=True)
class BaseEvent:
    """
    Base class for domain events.

    Subclasses are frozen dataclasses adding their own fields:

        @dataclass(frozen=True)
        class OrderPlaced(BaseEvent):
            order_id: str
            total: float

    Attributes:
        occurred_at: UTC time the fact happened (keyword-only, defaults to now)
    """

    occurred_at: datetime = field(default_factory=utc_now, kw_only=True)

    @property
    def event_type(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["occurred_at"] = self.occurred_at.isoformat()
        data["event_type"] = self.event_type
        return data
