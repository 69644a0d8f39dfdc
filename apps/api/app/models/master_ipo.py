"""Master IPO models: MasterIpo, CollaboratorShare, HolderPosition."""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel
from app.models.enums import MasterIpoStatus

DEFAULT_MOVER_TIERS: tuple[int, int, int, int] = (10, 5, 3, 1)


class MasterIpo(BaseModel):
    __tablename__ = "master_ipos"
    __table_args__ = (
        Index("ix_master_ipos_status", "status"),
        Index("ix_master_ipos_artist_wallet", "artist_wallet"),
        CheckConstraint("total_supply >= 1", name="ck_master_ipos_total_supply_positive"),
        CheckConstraint(
            "minted_supply >= 0 AND minted_supply <= total_supply",
            name="ck_master_ipos_minted_within_supply",
        ),
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    artist_wallet: Mapped[str] = mapped_column(String(128), nullable=False)
    total_supply: Mapped[int] = mapped_column(Integer, nullable=False)
    minted_supply: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price_per_unit: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(16), nullable=False, default="ETH")

    # Revenue split (whole percents): holders + artist + collaborators == 100
    holder_revenue_share_percent: Mapped[int] = mapped_column(Integer, nullable=False)
    artist_retained_percent: Mapped[int] = mapped_column(Integer, nullable=False)

    # Mover Advantage resale tiers (whole percents of the sale price)
    mover_rank1_percent: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_MOVER_TIERS[0]
    )
    mover_rank2_percent: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_MOVER_TIERS[1]
    )
    mover_rank3_percent: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_MOVER_TIERS[2]
    )
    mover_rank4_plus_percent: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_MOVER_TIERS[3]
    )

    status: Mapped[MasterIpoStatus] = mapped_column(
        nullable=False, default=MasterIpoStatus.DRAFT
    )
    launched_at: Mapped[datetime | None] = mapped_column()
    closed_at: Mapped[datetime | None] = mapped_column()

    # Relationships
    collaborator_shares: Mapped[list["CollaboratorShare"]] = relationship(
        back_populates="master_ipo",
        order_by="CollaboratorShare.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def remaining_supply(self) -> int:
        return max(0, self.total_supply - self.minted_supply)

    @property
    def collaborator_percent_total(self) -> int:
        return sum(share.percent for share in self.collaborator_shares)

    def __repr__(self) -> str:
        return f"<MasterIpo(id={self.id}, title={self.title!r}, status={self.status.value})>"


class CollaboratorShare(BaseModel):
    __tablename__ = "ipo_collaborator_shares"
    __table_args__ = (
        UniqueConstraint("master_ipo_id", "position", name="uq_ipo_collaborator_position"),
        CheckConstraint("percent >= 0 AND percent <= 100", name="ck_ipo_collaborator_percent"),
    )

    master_ipo_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("master_ipos.id", ondelete="CASCADE"),
        nullable=False,
    )
    collaborator_id: Mapped[str] = mapped_column(String(128), nullable=False)
    percent: Mapped[int] = mapped_column(Integer, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    master_ipo: Mapped["MasterIpo"] = relationship(back_populates="collaborator_shares")


class HolderPosition(BaseModel):
    """One wallet's holdings in one Master IPO.

    Never deleted: a position at zero quantity keeps its mint_order_rank.
    mint_order_rank is NULL for wallets that have only received units by transfer.
    """

    __tablename__ = "holder_positions"
    __table_args__ = (
        UniqueConstraint("master_ipo_id", "wallet", name="uq_holder_positions_ipo_wallet"),
        UniqueConstraint("master_ipo_id", "mint_order_rank", name="uq_holder_positions_ipo_rank"),
        Index("ix_holder_positions_wallet", "wallet"),
        CheckConstraint("quantity_held >= 0", name="ck_holder_positions_quantity_non_negative"),
    )

    master_ipo_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("master_ipos.id", ondelete="CASCADE"),
        nullable=False,
    )
    wallet: Mapped[str] = mapped_column(String(128), nullable=False)
    quantity_held: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    mint_order_rank: Mapped[int | None] = mapped_column(Integer)
    first_minted_at: Mapped[datetime | None] = mapped_column()

    def __repr__(self) -> str:
        return (
            f"<HolderPosition(wallet={self.wallet!r}, quantity={self.quantity_held}, "
            f"rank={self.mint_order_rank})>"
        )
