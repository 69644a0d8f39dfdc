"""SQLAlchemy models package: import all models so Base.metadata is populated."""

from app.models.base import BaseModel, ModelMixin, TimestampedModel
from app.models.enums import (
    EntitlementStatus,
    MasterIpoStatus,
    RevenueEventStatus,
    RevenueSourceType,
)
from app.models.master_ipo import CollaboratorShare, HolderPosition, MasterIpo
from app.models.revenue import DividendEntitlement, ResaleTransaction, RevenueEvent

__all__ = [
    "BaseModel",
    "CollaboratorShare",
    "DividendEntitlement",
    "EntitlementStatus",
    "HolderPosition",
    "MasterIpo",
    "MasterIpoStatus",
    "ModelMixin",
    "ResaleTransaction",
    "RevenueEvent",
    "RevenueEventStatus",
    "RevenueSourceType",
    "TimestampedModel",
]
