"""Revenue models: RevenueEvent, DividendEntitlement, ResaleTransaction."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, CheckConstraint, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel, TimestampedModel, utcnow
from app.models.enums import EntitlementStatus, RevenueEventStatus, RevenueSourceType

_JSON = JSON().with_variant(JSONB(), "postgresql")


class RevenueEvent(BaseModel):
    __tablename__ = "revenue_events"
    __table_args__ = (
        Index("ix_revenue_events_master_ipo_id", "master_ipo_id"),
        Index("ix_revenue_events_status", "status"),
        Index("ix_revenue_events_ipo_status", "master_ipo_id", "status"),
    )

    master_ipo_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("master_ipos.id", ondelete="CASCADE"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(16), nullable=False)
    source_type: Mapped[RevenueSourceType] = mapped_column(nullable=False)
    reference: Mapped[str | None] = mapped_column(String(255))
    recorded_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    status: Mapped[RevenueEventStatus] = mapped_column(
        nullable=False, default=RevenueEventStatus.PENDING
    )
    processed_at: Mapped[datetime | None] = mapped_column()
    # Set when processed; pool == sum(entitlements) + unallocated
    dividend_pool: Mapped[Decimal | None] = mapped_column()
    unallocated_amount: Mapped[Decimal | None] = mapped_column()

    def __repr__(self) -> str:
        return f"<RevenueEvent(id={self.id}, amount={self.amount}, status={self.status.value})>"


class DividendEntitlement(BaseModel):
    __tablename__ = "dividend_entitlements"
    __table_args__ = (
        UniqueConstraint(
            "revenue_event_id", "holder_position_id", name="uq_entitlements_event_position"
        ),
        Index("ix_dividend_entitlements_wallet_status", "wallet", "status"),
        Index("ix_dividend_entitlements_master_ipo_id", "master_ipo_id"),
        CheckConstraint("amount >= 0", name="ck_dividend_entitlements_amount_non_negative"),
    )

    revenue_event_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("revenue_events.id", ondelete="CASCADE"),
        nullable=False,
    )
    holder_position_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("holder_positions.id", ondelete="CASCADE"),
        nullable=False,
    )
    master_ipo_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("master_ipos.id", ondelete="CASCADE"),
        nullable=False,
    )
    wallet: Mapped[str] = mapped_column(String(128), nullable=False)
    quantity_snapshot: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[EntitlementStatus] = mapped_column(
        nullable=False, default=EntitlementStatus.CLAIMABLE
    )
    claimed_at: Mapped[datetime | None] = mapped_column()

    def __repr__(self) -> str:
        return (
            f"<DividendEntitlement(id={self.id}, amount={self.amount}, "
            f"status={self.status.value})>"
        )


class ResaleTransaction(TimestampedModel):
    __tablename__ = "resale_transactions"
    __table_args__ = (
        Index("ix_resale_transactions_master_ipo_id", "master_ipo_id"),
        Index("ix_resale_transactions_seller_wallet", "seller_wallet"),
        Index("ix_resale_transactions_buyer_wallet", "buyer_wallet"),
    )

    master_ipo_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("master_ipos.id", ondelete="CASCADE"),
        nullable=False,
    )
    seller_wallet: Mapped[str] = mapped_column(String(128), nullable=False)
    buyer_wallet: Mapped[str] = mapped_column(String(128), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    sale_price: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(16), nullable=False)
    seller_proceeds: Mapped[Decimal] = mapped_column(nullable=False)
    # [{"wallet": ..., "rank": ..., "percent": ..., "amount": "..."}]
    mover_advantage_payouts: Mapped[list[dict[str, Any]]] = mapped_column(
        _JSON, nullable=False, default=list
    )
