"""ShareLedger: authoritative supply and holder state for Master IPOs.

Every mutation runs inside the caller's transaction. The IPO row is locked
with SELECT ... FOR UPDATE and the supply counter is bumped with a
conditional UPDATE, so two concurrent mints can never oversell even when
several API instances share the database.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.currency import round_amount
from app.core.errors import (
    HolderPositionNotFound,
    InsufficientHoldings,
    InvalidQuantity,
    InvalidTransfer,
    IpoNotActive,
    MasterIpoNotFound,
    SupplyExhausted,
)
from app.models.base import utcnow
from app.models.enums import MasterIpoStatus
from app.models.master_ipo import HolderPosition, MasterIpo
from app.modules.master_ipos.schemas import MintResult, TransferResult

logger = structlog.get_logger()


class ShareLedger:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # ── Lookups ──────────────────────────────────────────────────────────────

    async def get_ipo(
        self, master_ipo_id: uuid.UUID, *, for_update: bool = False
    ) -> MasterIpo:
        stmt = select(MasterIpo).where(MasterIpo.id == master_ipo_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        ipo = (await self.db.execute(stmt)).scalar_one_or_none()
        if ipo is None:
            raise MasterIpoNotFound(
                f"Master IPO {master_ipo_id} not found", master_ipo_id=master_ipo_id
            )
        return ipo

    async def _find_position(
        self, master_ipo_id: uuid.UUID, wallet: str, *, for_update: bool = False
    ) -> HolderPosition | None:
        stmt = select(HolderPosition).where(
            HolderPosition.master_ipo_id == master_ipo_id,
            HolderPosition.wallet == wallet,
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def _ranked_holder_count(self, master_ipo_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count(HolderPosition.id)).where(
                HolderPosition.master_ipo_id == master_ipo_id,
                HolderPosition.mint_order_rank.is_not(None),
            )
        )
        return result.scalar_one() or 0

    async def remaining_supply(self, master_ipo_id: uuid.UUID) -> int:
        ipo = await self.get_ipo(master_ipo_id)
        return ipo.remaining_supply

    async def holder_position(self, master_ipo_id: uuid.UUID, wallet: str) -> HolderPosition:
        await self.get_ipo(master_ipo_id)
        position = await self._find_position(master_ipo_id, wallet)
        if position is None:
            raise HolderPositionNotFound(
                f"Wallet {wallet} holds no position in Master IPO {master_ipo_id}",
                master_ipo_id=master_ipo_id,
                wallet=wallet,
            )
        return position

    async def all_holders(self, master_ipo_id: uuid.UUID) -> list[HolderPosition]:
        """Every position of the IPO, earliest minter first.

        Transfer-only positions (no rank) come last, in creation order.
        """
        await self.get_ipo(master_ipo_id)
        result = await self.db.execute(
            select(HolderPosition)
            .where(HolderPosition.master_ipo_id == master_ipo_id)
            .order_by(
                HolderPosition.mint_order_rank.asc().nulls_last(),
                HolderPosition.created_at.asc(),
                HolderPosition.id.asc(),
            )
        )
        return list(result.scalars().all())

    # ── Mutations ────────────────────────────────────────────────────────────

    async def record_mint(
        self, master_ipo_id: uuid.UUID, wallet: str, quantity: int
    ) -> MintResult:
        if quantity <= 0:
            raise InvalidQuantity("Mint quantity must be positive", quantity=quantity)

        ipo = await self.get_ipo(master_ipo_id, for_update=True)
        # Supply first: a sold-out IPO is also closed, and reports exhaustion
        if ipo.minted_supply + quantity > ipo.total_supply:
            raise SupplyExhausted(
                "Not enough supply left for this mint",
                requested=quantity,
                remaining=ipo.remaining_supply,
            )
        if ipo.status != MasterIpoStatus.ACTIVE:
            raise IpoNotActive(
                f"Master IPO is {ipo.status.value}; minting requires an active IPO",
                master_ipo_id=ipo.id,
                status=ipo.status.value,
            )

        result = await self.db.execute(
            update(MasterIpo)
            .where(
                MasterIpo.id == ipo.id,
                MasterIpo.minted_supply + quantity <= MasterIpo.total_supply,
            )
            .values(minted_supply=MasterIpo.minted_supply + quantity, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise SupplyExhausted(
                "Not enough supply left for this mint",
                requested=quantity,
                remaining=ipo.remaining_supply,
            )

        now = utcnow()
        position = await self._find_position(ipo.id, wallet, for_update=True)
        if position is None:
            position = HolderPosition(master_ipo_id=ipo.id, wallet=wallet, quantity_held=0)
            self.db.add(position)
        if position.mint_order_rank is None:
            # First-ever mint for this wallet: rank is fixed from here on
            position.mint_order_rank = await self._ranked_holder_count(ipo.id) + 1
            position.first_minted_at = now
        position.quantity_held += quantity
        await self.db.flush()

        await self.db.refresh(ipo)
        if ipo.minted_supply == ipo.total_supply:
            ipo.status = MasterIpoStatus.CLOSED
            ipo.closed_at = now
            await self.db.flush()
            logger.info("master_ipo.sold_out", master_ipo_id=str(ipo.id))

        logger.info(
            "share_ledger.minted",
            master_ipo_id=str(ipo.id),
            wallet=wallet,
            quantity=quantity,
            rank=position.mint_order_rank,
        )
        return MintResult(
            master_ipo_id=ipo.id,
            wallet=wallet,
            quantity_minted=quantity,
            quantity_held=position.quantity_held,
            mint_order_rank=position.mint_order_rank,
            minted_supply=ipo.minted_supply,
            remaining_supply=ipo.remaining_supply,
            total_price=round_amount(ipo.price_per_unit * quantity, ipo.currency),
            currency=ipo.currency,
            ipo_status=ipo.status.value,
        )

    async def transfer(
        self,
        master_ipo_id: uuid.UUID,
        from_wallet: str,
        to_wallet: str,
        quantity: int,
    ) -> TransferResult:
        """Move units between wallets. Ranks are never touched by transfers."""
        if quantity <= 0:
            raise InvalidQuantity("Transfer quantity must be positive", quantity=quantity)
        if from_wallet == to_wallet:
            raise InvalidTransfer("Sender and recipient wallets must differ", wallet=from_wallet)

        await self.get_ipo(master_ipo_id)

        # Lock both rows in a stable order so opposing transfers cannot deadlock
        result = await self.db.execute(
            select(HolderPosition)
            .where(
                HolderPosition.master_ipo_id == master_ipo_id,
                HolderPosition.wallet.in_([from_wallet, to_wallet]),
            )
            .order_by(HolderPosition.wallet)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        positions = {p.wallet: p for p in result.scalars().all()}

        source = positions.get(from_wallet)
        if source is None:
            raise HolderPositionNotFound(
                f"Wallet {from_wallet} holds no position in Master IPO {master_ipo_id}",
                master_ipo_id=master_ipo_id,
                wallet=from_wallet,
            )
        if source.quantity_held < quantity:
            raise InsufficientHoldings(
                "Sender does not hold enough units",
                held=source.quantity_held,
                requested=quantity,
            )

        target = positions.get(to_wallet)
        if target is None:
            target = HolderPosition(
                master_ipo_id=master_ipo_id, wallet=to_wallet, quantity_held=0
            )
            self.db.add(target)

        source.quantity_held -= quantity
        target.quantity_held += quantity
        await self.db.flush()

        logger.info(
            "share_ledger.transferred",
            master_ipo_id=str(master_ipo_id),
            from_wallet=from_wallet,
            to_wallet=to_wallet,
            quantity=quantity,
        )
        return TransferResult(
            master_ipo_id=master_ipo_id,
            from_wallet=from_wallet,
            to_wallet=to_wallet,
            quantity=quantity,
            from_quantity_held=source.quantity_held,
            to_quantity_held=target.quantity_held,
        )
