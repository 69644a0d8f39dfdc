"""Master IPOs: Pydantic v2 request/response schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.models.enums import MasterIpoStatus
from app.models.master_ipo import DEFAULT_MOVER_TIERS
from app.schemas.common import CurrencyCode, PositiveAmount, WalletAddress

MAX_TOTAL_SUPPLY = 1_000_000


class CollaboratorShareIn(BaseModel):
    collaborator_id: str = Field(min_length=1, max_length=128)
    percent: int = Field(ge=0, le=100)


class CollaboratorShareOut(BaseModel):
    collaborator_id: str
    percent: int
    position: int

    model_config = {"from_attributes": True}


class MasterIpoCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    artist_wallet: WalletAddress
    total_supply: int = Field(ge=1, le=MAX_TOTAL_SUPPLY)
    price_per_unit: PositiveAmount
    currency: CurrencyCode = "ETH"
    holder_revenue_share_percent: int = Field(ge=0, le=100)
    artist_retained_percent: int = Field(ge=0, le=100)
    collaborator_shares: list[CollaboratorShareIn] = []
    mover_rank1_percent: int = Field(default=DEFAULT_MOVER_TIERS[0], ge=0, le=100)
    mover_rank2_percent: int = Field(default=DEFAULT_MOVER_TIERS[1], ge=0, le=100)
    mover_rank3_percent: int = Field(default=DEFAULT_MOVER_TIERS[2], ge=0, le=100)
    mover_rank4_plus_percent: int = Field(default=DEFAULT_MOVER_TIERS[3], ge=0, le=100)


class MasterIpoUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    total_supply: int | None = Field(default=None, ge=1, le=MAX_TOTAL_SUPPLY)
    price_per_unit: PositiveAmount | None = None
    currency: CurrencyCode | None = None
    holder_revenue_share_percent: int | None = Field(default=None, ge=0, le=100)
    artist_retained_percent: int | None = Field(default=None, ge=0, le=100)
    collaborator_shares: list[CollaboratorShareIn] | None = None
    mover_rank1_percent: int | None = Field(default=None, ge=0, le=100)
    mover_rank2_percent: int | None = Field(default=None, ge=0, le=100)
    mover_rank3_percent: int | None = Field(default=None, ge=0, le=100)
    mover_rank4_plus_percent: int | None = Field(default=None, ge=0, le=100)


class MasterIpoResponse(BaseModel):
    id: uuid.UUID
    title: str
    artist_wallet: str
    total_supply: int
    minted_supply: int
    remaining_supply: int
    price_per_unit: Decimal
    currency: str
    holder_revenue_share_percent: int
    artist_retained_percent: int
    collaborator_shares: list[CollaboratorShareOut]
    mover_rank1_percent: int
    mover_rank2_percent: int
    mover_rank3_percent: int
    mover_rank4_plus_percent: int
    status: MasterIpoStatus
    launched_at: datetime | None
    closed_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ── Minting / holders ────────────────────────────────────────────────────────


class MintRequest(BaseModel):
    wallet: WalletAddress
    quantity: int = Field(ge=1, le=MAX_TOTAL_SUPPLY)


class MintResult(BaseModel):
    master_ipo_id: uuid.UUID
    wallet: str
    quantity_minted: int
    quantity_held: int
    mint_order_rank: int
    minted_supply: int
    remaining_supply: int
    total_price: Decimal
    currency: str
    ipo_status: MasterIpoStatus


class MintPreview(BaseModel):
    master_ipo_id: uuid.UUID
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    currency: str
    remaining_supply: int
    available: bool


class HolderPositionResponse(BaseModel):
    id: uuid.UUID
    master_ipo_id: uuid.UUID
    wallet: str
    quantity_held: int
    mint_order_rank: int | None
    first_minted_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class TransferRequest(BaseModel):
    from_wallet: WalletAddress
    to_wallet: WalletAddress
    quantity: int = Field(ge=1, le=MAX_TOTAL_SUPPLY)


class TransferResult(BaseModel):
    master_ipo_id: uuid.UUID
    from_wallet: str
    to_wallet: str
    quantity: int
    from_quantity_held: int
    to_quantity_held: int


# ── Artist reporting ─────────────────────────────────────────────────────────


class ArtistIpoSummary(BaseModel):
    master_ipo_id: uuid.UUID
    title: str
    status: MasterIpoStatus
    currency: str
    total_revenue: Decimal
    pending_revenue: Decimal
    distributed_dividends: Decimal
    unallocated: Decimal
    revenue_event_count: int


class ArtistSummary(BaseModel):
    artist_wallet: str
    ipo_count: int
    ipos: list[ArtistIpoSummary]
