"""Mover Advantage: resale price split between the seller and the earliest minters.

Tiers come from the Master IPO configuration (defaults 10/5/3/1 percent):
rank 1, rank 2 and rank 3 are paid once each, and every holder ranked 4 or
later is paid the rank-4+ percent individually. Payouts follow mint history,
so a position that has since sold everything still earns its tier. A tier
whose rank has no position is simply not applied; nothing is redistributed.

Rank-4+ payouts stop once the next one would push the applied total above
100 percent, so the seller's proceeds can never go negative.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from decimal import Decimal

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.currency import fits_minor_unit, percent_of
from app.core.errors import InvalidAmount, IpoNotActive
from app.models.enums import MasterIpoStatus
from app.models.master_ipo import HolderPosition, MasterIpo
from app.models.revenue import ResaleTransaction
from app.modules.master_ipos.ledger import ShareLedger
from app.modules.mover_advantage.schemas import MoverPayout, ResaleSplit, TierSchedule

logger = structlog.get_logger()

_RESALE_STATUSES = (MasterIpoStatus.ACTIVE, MasterIpoStatus.CLOSED)


def tiers_for(ipo: MasterIpo) -> TierSchedule:
    return TierSchedule(
        master_ipo_id=ipo.id,
        rank1_percent=ipo.mover_rank1_percent,
        rank2_percent=ipo.mover_rank2_percent,
        rank3_percent=ipo.mover_rank3_percent,
        rank4_plus_percent=ipo.mover_rank4_plus_percent,
    )


def split_sale(
    master_ipo_id: uuid.UUID,
    sale_price: Decimal,
    currency: str,
    tiers: TierSchedule,
    holders: Iterable[HolderPosition],
) -> ResaleSplit:
    """Pure split computation over a snapshot of holder positions."""
    if sale_price <= 0:
        raise InvalidAmount("Sale price must be positive", sale_price=sale_price)
    if not fits_minor_unit(sale_price, currency):
        raise InvalidAmount(
            f"Sale price is finer than the smallest {currency} unit",
            sale_price=sale_price,
            currency=currency,
        )

    ranked = sorted(
        (h for h in holders if h.mint_order_rank is not None),
        key=lambda h: h.mint_order_rank,
    )

    applied = 0
    payouts: list[MoverPayout] = []
    for holder in ranked:
        percent = tiers.percent_for(holder.mint_order_rank)
        if percent <= 0:
            continue
        if applied + percent > 100:
            break
        applied += percent
        amount = percent_of(sale_price, percent, currency)
        if amount > 0:
            payouts.append(
                MoverPayout(
                    wallet=holder.wallet,
                    rank=holder.mint_order_rank,
                    percent=percent,
                    amount=amount,
                )
            )

    seller_proceeds = sale_price - sum((p.amount for p in payouts), Decimal(0))
    return ResaleSplit(
        master_ipo_id=master_ipo_id,
        sale_price=sale_price,
        currency=currency,
        applied_percent=applied,
        seller_proceeds=seller_proceeds,
        payouts=payouts,
    )


class MoverAdvantageCalculator:
    def __init__(self, db: AsyncSession, ledger: ShareLedger | None = None) -> None:
        self.db = db
        self.ledger = ledger or ShareLedger(db)

    async def tier_schedule(self, master_ipo_id: uuid.UUID) -> TierSchedule:
        ipo = await self.ledger.get_ipo(master_ipo_id)
        return tiers_for(ipo)

    async def compute_split(self, master_ipo_id: uuid.UUID, sale_price: Decimal) -> ResaleSplit:
        if sale_price <= 0:
            raise InvalidAmount("Sale price must be positive", sale_price=sale_price)
        ipo = await self.ledger.get_ipo(master_ipo_id)
        holders = await self.ledger.all_holders(master_ipo_id)
        return split_sale(ipo.id, sale_price, ipo.currency, tiers_for(ipo), holders)

    async def record_resale(
        self,
        master_ipo_id: uuid.UUID,
        seller_wallet: str,
        buyer_wallet: str,
        quantity: int,
        sale_price: Decimal,
    ) -> ResaleTransaction:
        """Split a secondary sale, move the units, and store the transaction."""
        ipo = await self.ledger.get_ipo(master_ipo_id)
        if ipo.status not in _RESALE_STATUSES:
            raise IpoNotActive(
                f"Master IPO is {ipo.status.value}; resales require an active or closed IPO",
                master_ipo_id=ipo.id,
                status=ipo.status.value,
            )

        split = await self.compute_split(master_ipo_id, sale_price)
        await self.ledger.transfer(master_ipo_id, seller_wallet, buyer_wallet, quantity)

        resale = ResaleTransaction(
            master_ipo_id=ipo.id,
            seller_wallet=seller_wallet,
            buyer_wallet=buyer_wallet,
            quantity=quantity,
            sale_price=split.sale_price,
            currency=ipo.currency,
            seller_proceeds=split.seller_proceeds,
            mover_advantage_payouts=[p.model_dump(mode="json") for p in split.payouts],
        )
        self.db.add(resale)
        await self.db.flush()

        logger.info(
            "mover_advantage.resale_recorded",
            master_ipo_id=str(ipo.id),
            resale_id=str(resale.id),
            quantity=quantity,
            applied_percent=split.applied_percent,
        )
        return resale
