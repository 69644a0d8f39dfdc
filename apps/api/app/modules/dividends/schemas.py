"""Dividends: Pydantic v2 request/response schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.models.enums import EntitlementStatus, RevenueEventStatus, RevenueSourceType
from app.schemas.common import CurrencyCode, CurrencyTotal, PositiveAmount, WalletAddress

# ── Revenue events ───────────────────────────────────────────────────────────


class RevenueEventCreate(BaseModel):
    master_ipo_id: uuid.UUID
    amount: PositiveAmount
    currency: CurrencyCode
    source_type: RevenueSourceType = RevenueSourceType.STREAMING
    reference: str | None = Field(default=None, max_length=255)


class RevenueEventResponse(BaseModel):
    id: uuid.UUID
    master_ipo_id: uuid.UUID
    amount: Decimal
    currency: str
    source_type: RevenueSourceType
    reference: str | None
    recorded_at: datetime
    status: RevenueEventStatus
    processed_at: datetime | None
    dividend_pool: Decimal | None
    unallocated_amount: Decimal | None

    model_config = {"from_attributes": True}


class RevenueEventPage(BaseModel):
    items: list[RevenueEventResponse]
    total: int
    limit: int
    offset: int


class RevenueSummary(BaseModel):
    master_ipo_id: uuid.UUID
    currency: str
    total_revenue: Decimal
    by_source: dict[RevenueSourceType, Decimal]
    processed_revenue: Decimal
    pending_revenue: Decimal
    distributed_dividends: Decimal
    unallocated: Decimal
    event_count: int


# ── Entitlements ─────────────────────────────────────────────────────────────


class EntitlementResponse(BaseModel):
    id: uuid.UUID
    revenue_event_id: uuid.UUID
    holder_position_id: uuid.UUID
    master_ipo_id: uuid.UUID
    wallet: str
    quantity_snapshot: int
    amount: Decimal
    currency: str
    status: EntitlementStatus
    claimed_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ProcessResult(BaseModel):
    event: RevenueEventResponse
    dividend_pool: Decimal
    unallocated_amount: Decimal
    entitlements: list[EntitlementResponse]


# ── Claims ───────────────────────────────────────────────────────────────────


class ClaimRequest(BaseModel):
    entitlement_id: uuid.UUID
    wallet: WalletAddress


class ClaimAllRequest(BaseModel):
    wallet: WalletAddress
    master_ipo_id: uuid.UUID | None = None


class ClaimResult(BaseModel):
    entitlement_id: uuid.UUID
    success: bool
    amount: Decimal | None = None
    currency: str | None = None
    claimed_at: datetime | None = None
    error: str | None = None


class ClaimAllResult(BaseModel):
    wallet: str
    claimed_count: int
    failed_count: int
    totals: list[CurrencyTotal]
    results: list[ClaimResult]


class WalletDividendSummary(BaseModel):
    wallet: str
    claimed: list[CurrencyTotal]
    outstanding: list[CurrencyTotal]
    claimed_count: int
    outstanding_count: int
