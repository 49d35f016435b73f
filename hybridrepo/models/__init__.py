"""
Entity and event base types.

Application entities subclass BaseEntity (full contract) or Base
(plain mapped class without timestamps or soft delete).
"""

from hybridrepo.models.base import Base, BaseEntity, ModelMixin, new_id, utc_now
from hybridrepo.models.events import BaseEvent

__all__ = [
    "Base",
    "BaseEntity",
    "BaseEvent",
    "ModelMixin",
    "new_id",
    "utc_now",
]
