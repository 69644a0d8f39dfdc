"""ClaimLedger: at-most-once claiming of dividend entitlements."""

from __future__ import annotations

import uuid
from collections import defaultdict
from collections.abc import Iterable
from decimal import Decimal

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import AlreadyClaimed, DividendsError, EntitlementNotFound, WalletMismatch
from app.models.base import utcnow
from app.models.enums import EntitlementStatus
from app.models.revenue import DividendEntitlement
from app.modules.dividends.schemas import ClaimResult, WalletDividendSummary
from app.schemas.common import CurrencyTotal

logger = structlog.get_logger()


def totals_by_currency(
    entitlements: Iterable[DividendEntitlement],
) -> list[CurrencyTotal]:
    totals: dict[str, Decimal] = defaultdict(Decimal)
    for entitlement in entitlements:
        totals[entitlement.currency] += entitlement.amount
    return [CurrencyTotal(currency=c, amount=a) for c, a in sorted(totals.items())]


class ClaimLedger:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def claim(self, entitlement_id: uuid.UUID, claiming_wallet: str) -> ClaimResult:
        """Mark one entitlement claimed.

        Checks run in a fixed order: existence, ownership, then status. The
        status flip itself is a conditional UPDATE, so two racing claims on
        the same entitlement leave exactly one winner.
        """
        entitlement = (
            await self.db.execute(
                select(DividendEntitlement)
                .where(DividendEntitlement.id == entitlement_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
        ).scalar_one_or_none()
        if entitlement is None:
            raise EntitlementNotFound(
                f"Entitlement {entitlement_id} not found", entitlement_id=entitlement_id
            )
        if entitlement.wallet != claiming_wallet:
            raise WalletMismatch(
                "Entitlement belongs to a different wallet", entitlement_id=entitlement_id
            )
        if entitlement.status != EntitlementStatus.CLAIMABLE:
            raise AlreadyClaimed(
                "Entitlement has already been claimed", entitlement_id=entitlement_id
            )

        now = utcnow()
        result = await self.db.execute(
            update(DividendEntitlement)
            .where(
                DividendEntitlement.id == entitlement_id,
                DividendEntitlement.status == EntitlementStatus.CLAIMABLE,
            )
            .values(status=EntitlementStatus.CLAIMED, claimed_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise AlreadyClaimed(
                "Entitlement has already been claimed", entitlement_id=entitlement_id
            )
        await self.db.refresh(entitlement)

        logger.info(
            "dividends.claimed",
            entitlement_id=str(entitlement.id),
            wallet=claiming_wallet,
            amount=str(entitlement.amount),
            currency=entitlement.currency,
        )
        return ClaimResult(
            entitlement_id=entitlement.id,
            success=True,
            amount=entitlement.amount,
            currency=entitlement.currency,
            claimed_at=entitlement.claimed_at,
        )

    async def claim_all(
        self, wallet: str, master_ipo_id: uuid.UUID | None = None
    ) -> list[ClaimResult]:
        """Claim every outstanding entitlement; each item succeeds or fails on its own."""
        results: list[ClaimResult] = []
        for entitlement in await self.outstanding_for(wallet, master_ipo_id):
            try:
                results.append(await self.claim(entitlement.id, wallet))
            except DividendsError as exc:
                results.append(
                    ClaimResult(entitlement_id=entitlement.id, success=False, error=exc.code)
                )
        return results

    async def outstanding_for(
        self, wallet: str, master_ipo_id: uuid.UUID | None = None
    ) -> list[DividendEntitlement]:
        stmt = select(DividendEntitlement).where(
            DividendEntitlement.wallet == wallet,
            DividendEntitlement.status == EntitlementStatus.CLAIMABLE,
        )
        if master_ipo_id:
            stmt = stmt.where(DividendEntitlement.master_ipo_id == master_ipo_id)
        stmt = stmt.order_by(DividendEntitlement.created_at.asc(), DividendEntitlement.id.asc())
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def claim_history(
        self,
        wallet: str,
        master_ipo_id: uuid.UUID | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[DividendEntitlement]:
        stmt = select(DividendEntitlement).where(
            DividendEntitlement.wallet == wallet,
            DividendEntitlement.status == EntitlementStatus.CLAIMED,
        )
        if master_ipo_id:
            stmt = stmt.where(DividendEntitlement.master_ipo_id == master_ipo_id)
        stmt = (
            stmt.order_by(DividendEntitlement.claimed_at.desc(), DividendEntitlement.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def wallet_summary(self, wallet: str) -> WalletDividendSummary:
        result = await self.db.execute(
            select(DividendEntitlement).where(DividendEntitlement.wallet == wallet)
        )
        entitlements = list(result.scalars().all())
        claimed = [e for e in entitlements if e.status == EntitlementStatus.CLAIMED]
        outstanding = [e for e in entitlements if e.status == EntitlementStatus.CLAIMABLE]
        return WalletDividendSummary(
            wallet=wallet,
            claimed=totals_by_currency(claimed),
            outstanding=totals_by_currency(outstanding),
            claimed_count=len(claimed),
            outstanding_count=len(outstanding),
        )
