"""Mover Advantage API router: tier schedule, split quotes and recorded resales."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.modules.mover_advantage.calculator import MoverAdvantageCalculator
from app.modules.mover_advantage.schemas import (
    ResaleRequest,
    ResaleResponse,
    ResaleSplit,
    SplitRequest,
    TierSchedule,
)

router = APIRouter(prefix="/mover-advantage", tags=["Mover Advantage"])


@router.get("/{ipo_id}/tiers", response_model=TierSchedule)
async def get_tiers(
    ipo_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> TierSchedule:
    return await MoverAdvantageCalculator(db).tier_schedule(ipo_id)


@router.post("/{ipo_id}/split", response_model=ResaleSplit)
async def quote_split(
    ipo_id: uuid.UUID,
    body: SplitRequest,
    db: AsyncSession = Depends(get_db),
) -> ResaleSplit:
    """Quote how a resale price would be divided, without recording anything."""
    return await MoverAdvantageCalculator(db).compute_split(ipo_id, body.sale_price)


@router.post(
    "/{ipo_id}/resales",
    status_code=status.HTTP_201_CREATED,
    response_model=ResaleResponse,
)
async def record_resale(
    ipo_id: uuid.UUID,
    body: ResaleRequest,
    db: AsyncSession = Depends(get_db),
) -> ResaleResponse:
    resale = await MoverAdvantageCalculator(db).record_resale(
        ipo_id, body.seller_wallet, body.buyer_wallet, body.quantity, body.sale_price
    )
    await db.commit()
    return ResaleResponse.model_validate(resale)
