"""Mover Advantage: Pydantic v2 request/response schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from app.schemas.common import PositiveAmount, WalletAddress


class TierSchedule(BaseModel):
    master_ipo_id: uuid.UUID
    rank1_percent: int
    rank2_percent: int
    rank3_percent: int
    rank4_plus_percent: int

    def percent_for(self, rank: int) -> int:
        if rank == 1:
            return self.rank1_percent
        if rank == 2:
            return self.rank2_percent
        if rank == 3:
            return self.rank3_percent
        return self.rank4_plus_percent


class MoverPayout(BaseModel):
    wallet: str
    rank: int
    percent: int
    amount: Decimal


class ResaleSplit(BaseModel):
    master_ipo_id: uuid.UUID
    sale_price: Decimal
    currency: str
    applied_percent: int
    seller_proceeds: Decimal
    payouts: list[MoverPayout]


class SplitRequest(BaseModel):
    sale_price: PositiveAmount


class ResaleRequest(BaseModel):
    seller_wallet: WalletAddress
    buyer_wallet: WalletAddress
    quantity: int = Field(ge=1)
    sale_price: PositiveAmount


class ResaleResponse(BaseModel):
    id: uuid.UUID
    master_ipo_id: uuid.UUID
    seller_wallet: str
    buyer_wallet: str
    quantity: int
    sale_price: Decimal
    currency: str
    seller_proceeds: Decimal
    mover_advantage_payouts: list[dict[str, Any]]
    created_at: datetime

    model_config = {"from_attributes": True}
