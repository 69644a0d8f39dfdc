"""Native enums for all domain models."""

import enum


# ── Master IPO ───────────────────────────────────────────────────────────────


class MasterIpoStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    CLOSED = "closed"
    CANCELLED = "cancelled"


# ── Revenue & Dividends ──────────────────────────────────────────────────────


class RevenueSourceType(str, enum.Enum):
    STREAMING = "streaming"
    SYNC = "sync"
    SALE = "sale"
    OTHER = "other"


class RevenueEventStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSED = "processed"


class EntitlementStatus(str, enum.Enum):
    CLAIMABLE = "claimable"
    CLAIMED = "claimed"
