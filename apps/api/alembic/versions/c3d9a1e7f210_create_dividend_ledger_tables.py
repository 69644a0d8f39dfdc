"""create_dividend_ledger_tables

Revision ID: c3d9a1e7f210
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "c3d9a1e7f210"
down_revision = None
branch_labels = None
depends_on = None

# Enum columns store member names, matching the ORM's default Enum mapping
master_ipo_status = postgresql.ENUM(
    "DRAFT", "ACTIVE", "CLOSED", "CANCELLED", name="masteripostatus", create_type=False
)
revenue_source_type = postgresql.ENUM(
    "STREAMING", "SYNC", "SALE", "OTHER", name="revenuesourcetype", create_type=False
)
revenue_event_status = postgresql.ENUM(
    "PENDING", "PROCESSED", name="revenueeventstatus", create_type=False
)
entitlement_status = postgresql.ENUM(
    "CLAIMABLE", "CLAIMED", name="entitlementstatus", create_type=False
)

_MONEY = sa.Numeric(38, 18)


def _timestamps(updated: bool = True) -> list[sa.Column]:
    cols = [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]
    if updated:
        cols.append(
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False)
        )
    return cols


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in (master_ipo_status, revenue_source_type, revenue_event_status, entitlement_status):
        enum_type.create(bind, checkfirst=True)

    # ── Master IPOs ───────────────────────────────────────────────────────────
    op.create_table(
        "master_ipos",
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("artist_wallet", sa.String(128), nullable=False),
        sa.Column("total_supply", sa.Integer, nullable=False),
        sa.Column("minted_supply", sa.Integer, server_default="0", nullable=False),
        sa.Column("price_per_unit", _MONEY, nullable=False),
        sa.Column("currency", sa.String(16), server_default="ETH", nullable=False),
        sa.Column("holder_revenue_share_percent", sa.Integer, nullable=False),
        sa.Column("artist_retained_percent", sa.Integer, nullable=False),
        sa.Column("mover_rank1_percent", sa.Integer, server_default="10", nullable=False),
        sa.Column("mover_rank2_percent", sa.Integer, server_default="5", nullable=False),
        sa.Column("mover_rank3_percent", sa.Integer, server_default="3", nullable=False),
        sa.Column("mover_rank4_plus_percent", sa.Integer, server_default="1", nullable=False),
        sa.Column("status", master_ipo_status, server_default="DRAFT", nullable=False),
        sa.Column("launched_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("total_supply >= 1", name="ck_master_ipos_total_supply_positive"),
        sa.CheckConstraint(
            "minted_supply >= 0 AND minted_supply <= total_supply",
            name="ck_master_ipos_minted_within_supply",
        ),
    )
    op.create_index("ix_master_ipos_status", "master_ipos", ["status"])
    op.create_index("ix_master_ipos_artist_wallet", "master_ipos", ["artist_wallet"])

    op.create_table(
        "ipo_collaborator_shares",
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("master_ipo_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("collaborator_id", sa.String(128), nullable=False),
        sa.Column("percent", sa.Integer, nullable=False),
        sa.Column("position", sa.Integer, nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["master_ipo_id"], ["master_ipos.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("master_ipo_id", "position", name="uq_ipo_collaborator_position"),
        sa.CheckConstraint("percent >= 0 AND percent <= 100", name="ck_ipo_collaborator_percent"),
    )

    # ── Holder positions ──────────────────────────────────────────────────────
    op.create_table(
        "holder_positions",
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("master_ipo_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("wallet", sa.String(128), nullable=False),
        sa.Column("quantity_held", sa.Integer, server_default="0", nullable=False),
        sa.Column("mint_order_rank", sa.Integer, nullable=True),
        sa.Column("first_minted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["master_ipo_id"], ["master_ipos.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("master_ipo_id", "wallet", name="uq_holder_positions_ipo_wallet"),
        sa.UniqueConstraint("master_ipo_id", "mint_order_rank", name="uq_holder_positions_ipo_rank"),
        sa.CheckConstraint("quantity_held >= 0", name="ck_holder_positions_quantity_non_negative"),
    )
    op.create_index("ix_holder_positions_wallet", "holder_positions", ["wallet"])

    # ── Revenue events & entitlements ─────────────────────────────────────────
    op.create_table(
        "revenue_events",
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("master_ipo_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("amount", _MONEY, nullable=False),
        sa.Column("currency", sa.String(16), nullable=False),
        sa.Column("source_type", revenue_source_type, nullable=False),
        sa.Column("reference", sa.String(255), nullable=True),
        sa.Column("recorded_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("status", revenue_event_status, server_default="PENDING", nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("dividend_pool", _MONEY, nullable=True),
        sa.Column("unallocated_amount", _MONEY, nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["master_ipo_id"], ["master_ipos.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_revenue_events_master_ipo_id", "revenue_events", ["master_ipo_id"])
    op.create_index("ix_revenue_events_status", "revenue_events", ["status"])
    op.create_index("ix_revenue_events_ipo_status", "revenue_events", ["master_ipo_id", "status"])

    op.create_table(
        "dividend_entitlements",
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("revenue_event_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("holder_position_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("master_ipo_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("wallet", sa.String(128), nullable=False),
        sa.Column("quantity_snapshot", sa.Integer, nullable=False),
        sa.Column("amount", _MONEY, nullable=False),
        sa.Column("currency", sa.String(16), nullable=False),
        sa.Column("status", entitlement_status, server_default="CLAIMABLE", nullable=False),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["revenue_event_id"], ["revenue_events.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["holder_position_id"], ["holder_positions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["master_ipo_id"], ["master_ipos.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "revenue_event_id", "holder_position_id", name="uq_entitlements_event_position"
        ),
        sa.CheckConstraint("amount >= 0", name="ck_dividend_entitlements_amount_non_negative"),
    )
    op.create_index(
        "ix_dividend_entitlements_wallet_status", "dividend_entitlements", ["wallet", "status"]
    )
    op.create_index(
        "ix_dividend_entitlements_master_ipo_id", "dividend_entitlements", ["master_ipo_id"]
    )

    # ── Resales ───────────────────────────────────────────────────────────────
    op.create_table(
        "resale_transactions",
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("master_ipo_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("seller_wallet", sa.String(128), nullable=False),
        sa.Column("buyer_wallet", sa.String(128), nullable=False),
        sa.Column("quantity", sa.Integer, nullable=False),
        sa.Column("sale_price", _MONEY, nullable=False),
        sa.Column("currency", sa.String(16), nullable=False),
        sa.Column("seller_proceeds", _MONEY, nullable=False),
        sa.Column(
            "mover_advantage_payouts",
            postgresql.JSONB,
            server_default=sa.text("'[]'::jsonb"),
            nullable=False,
        ),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["master_ipo_id"], ["master_ipos.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_resale_transactions_master_ipo_id", "resale_transactions", ["master_ipo_id"])
    op.create_index("ix_resale_transactions_seller_wallet", "resale_transactions", ["seller_wallet"])
    op.create_index("ix_resale_transactions_buyer_wallet", "resale_transactions", ["buyer_wallet"])


def downgrade() -> None:
    op.drop_table("resale_transactions")
    op.drop_table("dividend_entitlements")
    op.drop_table("revenue_events")
    op.drop_table("holder_positions")
    op.drop_table("ipo_collaborator_shares")
    op.drop_table("master_ipos")

    bind = op.get_bind()
    for enum_type in (entitlement_status, revenue_event_status, revenue_source_type, master_ipo_status):
        enum_type.drop(bind, checkfirst=True)
