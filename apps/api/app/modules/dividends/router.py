"""Dividends API router: revenue events, entitlements and claims."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.models.enums import RevenueEventStatus, RevenueSourceType
from app.modules.dividends.claims import ClaimLedger
from app.modules.dividends.distributor import RevenueDistributor
from app.modules.dividends.schemas import (
    ClaimAllRequest,
    ClaimAllResult,
    ClaimRequest,
    ClaimResult,
    EntitlementResponse,
    ProcessResult,
    RevenueEventCreate,
    RevenueEventPage,
    RevenueEventResponse,
    RevenueSummary,
    WalletDividendSummary,
)
from app.schemas.common import CurrencyTotal

router = APIRouter(prefix="/dividends", tags=["Dividends"])


def _wallet(value: str) -> str:
    return value.strip().lower()


# ── Revenue ──────────────────────────────────────────────────────────────────


@router.post(
    "/revenue",
    status_code=status.HTTP_201_CREATED,
    response_model=RevenueEventResponse,
)
async def register_revenue(
    body: RevenueEventCreate,
    db: AsyncSession = Depends(get_db),
) -> RevenueEventResponse:
    """Record incoming revenue for a Master IPO; it stays pending until processed."""
    event = await RevenueDistributor(db).register_revenue_event(
        body.master_ipo_id, body.amount, body.currency, body.source_type, body.reference
    )
    await db.commit()
    return RevenueEventResponse.model_validate(event)


@router.get("/revenue/{ipo_id}", response_model=RevenueEventPage)
async def list_revenue(
    ipo_id: uuid.UUID,
    source_type: RevenueSourceType | None = None,
    status_filter: RevenueEventStatus | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> RevenueEventPage:
    events, total = await RevenueDistributor(db).list_revenue_events(
        ipo_id, source_type, status_filter, limit, offset
    )
    return RevenueEventPage(
        items=[RevenueEventResponse.model_validate(e) for e in events],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/revenue/{ipo_id}/summary", response_model=RevenueSummary)
async def revenue_summary(
    ipo_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> RevenueSummary:
    return await RevenueDistributor(db).revenue_summary(ipo_id)


@router.post("/revenue/{event_id}/process", response_model=ProcessResult)
async def process_revenue(
    event_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> ProcessResult:
    """Split a pending revenue event into holder entitlements."""
    result = await RevenueDistributor(db).process_revenue_event(event_id)
    await db.commit()
    return result


# ── Claims ───────────────────────────────────────────────────────────────────


@router.get("/claimable/{wallet}", response_model=list[EntitlementResponse])
async def list_claimable(
    wallet: str,
    master_ipo_id: uuid.UUID | None = None,
    db: AsyncSession = Depends(get_db),
) -> list[EntitlementResponse]:
    entitlements = await ClaimLedger(db).outstanding_for(_wallet(wallet), master_ipo_id)
    return [EntitlementResponse.model_validate(e) for e in entitlements]


@router.post("/claim", response_model=ClaimResult)
async def claim(
    body: ClaimRequest,
    db: AsyncSession = Depends(get_db),
) -> ClaimResult:
    result = await ClaimLedger(db).claim(body.entitlement_id, body.wallet)
    await db.commit()
    return result


@router.post("/claim-all", response_model=ClaimAllResult)
async def claim_all(
    body: ClaimAllRequest,
    db: AsyncSession = Depends(get_db),
) -> ClaimAllResult:
    """Claim every outstanding entitlement of a wallet, reporting each item."""
    results = await ClaimLedger(db).claim_all(body.wallet, body.master_ipo_id)
    await db.commit()

    totals: dict[str, CurrencyTotal] = {}
    for r in results:
        if r.success and r.currency is not None and r.amount is not None:
            current = totals.setdefault(r.currency, CurrencyTotal(currency=r.currency, amount=0))
            current.amount += r.amount
    claimed = sum(1 for r in results if r.success)
    return ClaimAllResult(
        wallet=body.wallet,
        claimed_count=claimed,
        failed_count=len(results) - claimed,
        totals=sorted(totals.values(), key=lambda t: t.currency),
        results=results,
    )


@router.get("/history/{wallet}", response_model=list[EntitlementResponse])
async def claim_history(
    wallet: str,
    master_ipo_id: uuid.UUID | None = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> list[EntitlementResponse]:
    entitlements = await ClaimLedger(db).claim_history(
        _wallet(wallet), master_ipo_id, limit, offset
    )
    return [EntitlementResponse.model_validate(e) for e in entitlements]


@router.get("/summary/{wallet}", response_model=WalletDividendSummary)
async def wallet_summary(
    wallet: str,
    db: AsyncSession = Depends(get_db),
) -> WalletDividendSummary:
    return await ClaimLedger(db).wallet_summary(_wallet(wallet))
