"""RevenueDistributor: turns revenue events into per-holder dividend entitlements.

Processing is a single transaction: the event row is locked, flipped from
pending to processed with a conditional UPDATE, and the full entitlement
batch is inserted before the caller commits. A second processing attempt,
concurrent or not, sees zero affected rows and raises AlreadyProcessed.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from decimal import Decimal

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.currency import fits_minor_unit, percent_of, prorate
from app.core.database import async_session_factory
from app.core.errors import (
    AlreadyProcessed,
    CurrencyMismatch,
    DividendsError,
    InvalidAmount,
    IpoNotActive,
    RevenueEventNotFound,
)
from app.models.base import utcnow
from app.models.enums import (
    EntitlementStatus,
    MasterIpoStatus,
    RevenueEventStatus,
    RevenueSourceType,
)
from app.models.master_ipo import HolderPosition
from app.models.revenue import DividendEntitlement, RevenueEvent
from app.modules.dividends.schemas import (
    EntitlementResponse,
    ProcessResult,
    RevenueEventResponse,
    RevenueSummary,
)
from app.modules.master_ipos.ledger import ShareLedger

logger = structlog.get_logger()

_REVENUE_STATUSES = (MasterIpoStatus.ACTIVE, MasterIpoStatus.CLOSED)


def allocate_pool(
    pool: Decimal, currency: str, holders: Sequence[HolderPosition]
) -> list[tuple[HolderPosition, Decimal]]:
    """Split ``pool`` pro rata by quantity held.

    Holders with nothing left are skipped. Each share is rounded to the
    currency unit and the rounding residual goes to the earliest-ranked
    holder (unranked holders follow, in list order), so the shares always
    add up to the pool exactly. A negative residual is taken from the
    earliest holder whose share can absorb it whole; when no single share
    can, it is taken in rank order until exhausted. No share goes below
    zero. Returns an empty list when no units are outstanding.
    """
    eligible = [h for h in holders if h.quantity_held > 0]
    total_units = sum(h.quantity_held for h in eligible)
    if total_units == 0:
        return []

    shares = [(h, prorate(pool, h.quantity_held, total_units, currency)) for h in eligible]
    residual = pool - sum((amount for _, amount in shares), Decimal(0))
    if not residual:
        return shares

    def _rank_key(i: int) -> tuple[bool, int, int]:
        rank = shares[i][0].mint_order_rank
        return (rank is None, rank or 0, i)

    order = sorted(range(len(shares)), key=_rank_key)
    if residual > 0:
        _adjust(shares, order[0], residual)
        return shares

    for i in order:
        if shares[i][1] + residual >= 0:
            _adjust(shares, i, residual)
            return shares
    for i in order:
        taken = max(residual, -shares[i][1])
        _adjust(shares, i, taken)
        residual -= taken
        if not residual:
            break
    return shares


def _adjust(shares: list[tuple[HolderPosition, Decimal]], index: int, delta: Decimal) -> None:
    holder, amount = shares[index]
    shares[index] = (holder, amount + delta)


class RevenueDistributor:
    def __init__(self, db: AsyncSession, ledger: ShareLedger | None = None) -> None:
        self.db = db
        self.ledger = ledger or ShareLedger(db)

    # ── Registration ─────────────────────────────────────────────────────────

    async def register_revenue_event(
        self,
        master_ipo_id: uuid.UUID,
        amount: Decimal,
        currency: str,
        source_type: RevenueSourceType = RevenueSourceType.STREAMING,
        reference: str | None = None,
    ) -> RevenueEvent:
        if amount <= 0:
            raise InvalidAmount("Revenue amount must be positive", amount=amount)

        ipo = await self.ledger.get_ipo(master_ipo_id)
        if ipo.status not in _REVENUE_STATUSES:
            raise IpoNotActive(
                f"Master IPO is {ipo.status.value}; revenue needs an active or closed IPO",
                master_ipo_id=ipo.id,
                status=ipo.status.value,
            )
        if currency.upper() != ipo.currency.upper():
            raise CurrencyMismatch(
                "Revenue must be recorded in the Master IPO's currency",
                expected=ipo.currency,
                received=currency,
            )
        if not fits_minor_unit(amount, ipo.currency):
            raise InvalidAmount(
                f"Revenue amount is finer than the smallest {ipo.currency} unit",
                amount=amount,
                currency=ipo.currency,
            )

        event = RevenueEvent(
            master_ipo_id=ipo.id,
            amount=amount,
            currency=ipo.currency,
            source_type=source_type,
            reference=reference,
            recorded_at=utcnow(),
            status=RevenueEventStatus.PENDING,
        )
        self.db.add(event)
        await self.db.flush()
        logger.info(
            "dividends.revenue_registered",
            event_id=str(event.id),
            master_ipo_id=str(ipo.id),
            amount=str(amount),
            currency=event.currency,
        )
        return event

    async def get_revenue_event(
        self, event_id: uuid.UUID, *, for_update: bool = False
    ) -> RevenueEvent:
        stmt = select(RevenueEvent).where(RevenueEvent.id == event_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        event = (await self.db.execute(stmt)).scalar_one_or_none()
        if event is None:
            raise RevenueEventNotFound(f"Revenue event {event_id} not found", event_id=event_id)
        return event

    # ── Processing ───────────────────────────────────────────────────────────

    async def process_revenue_event(self, event_id: uuid.UUID) -> ProcessResult:
        event = await self.get_revenue_event(event_id, for_update=True)
        if event.status != RevenueEventStatus.PENDING:
            raise AlreadyProcessed(
                "Revenue event has already been processed", event_id=event.id
            )
        ipo = await self.ledger.get_ipo(event.master_ipo_id)

        pool = percent_of(event.amount, ipo.holder_revenue_share_percent, event.currency)
        holders = await self.ledger.all_holders(ipo.id)
        shares = allocate_pool(pool, event.currency, holders)
        distributed = sum((amount for _, amount in shares), Decimal(0))
        unallocated = pool - distributed

        now = utcnow()
        result = await self.db.execute(
            update(RevenueEvent)
            .where(
                RevenueEvent.id == event.id,
                RevenueEvent.status == RevenueEventStatus.PENDING,
            )
            .values(
                status=RevenueEventStatus.PROCESSED,
                processed_at=now,
                dividend_pool=pool,
                unallocated_amount=unallocated,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise AlreadyProcessed(
                "Revenue event has already been processed", event_id=event.id
            )

        entitlements = [
            DividendEntitlement(
                revenue_event_id=event.id,
                holder_position_id=holder.id,
                master_ipo_id=ipo.id,
                wallet=holder.wallet,
                quantity_snapshot=holder.quantity_held,
                amount=amount,
                currency=event.currency,
                status=EntitlementStatus.CLAIMABLE,
            )
            for holder, amount in shares
        ]
        self.db.add_all(entitlements)
        await self.db.flush()
        await self.db.refresh(event)

        logger.info(
            "dividends.revenue_processed",
            event_id=str(event.id),
            master_ipo_id=str(ipo.id),
            dividend_pool=str(pool),
            holders=len(entitlements),
            unallocated=str(unallocated),
        )
        return ProcessResult(
            event=RevenueEventResponse.model_validate(event),
            dividend_pool=pool,
            unallocated_amount=unallocated,
            entitlements=[EntitlementResponse.model_validate(e) for e in entitlements],
        )

    async def pending_event_ids(self, limit: int = 100) -> list[uuid.UUID]:
        result = await self.db.execute(
            select(RevenueEvent.id)
            .where(RevenueEvent.status == RevenueEventStatus.PENDING)
            .order_by(RevenueEvent.recorded_at.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    # ── Queries ──────────────────────────────────────────────────────────────

    async def list_revenue_events(
        self,
        master_ipo_id: uuid.UUID,
        source_type: RevenueSourceType | None = None,
        status: RevenueEventStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[RevenueEvent], int]:
        await self.ledger.get_ipo(master_ipo_id)
        filters = [RevenueEvent.master_ipo_id == master_ipo_id]
        if source_type:
            filters.append(RevenueEvent.source_type == source_type)
        if status:
            filters.append(RevenueEvent.status == status)

        total = (
            await self.db.execute(select(func.count(RevenueEvent.id)).where(*filters))
        ).scalar_one()
        result = await self.db.execute(
            select(RevenueEvent)
            .where(*filters)
            .order_by(RevenueEvent.recorded_at.desc(), RevenueEvent.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all()), total

    async def revenue_summary(self, master_ipo_id: uuid.UUID) -> RevenueSummary:
        ipo = await self.ledger.get_ipo(master_ipo_id)
        result = await self.db.execute(
            select(RevenueEvent).where(RevenueEvent.master_ipo_id == master_ipo_id)
        )
        events = list(result.scalars().all())

        zero = Decimal(0)
        by_source: dict[RevenueSourceType, Decimal] = {}
        total = processed = pending = distributed = unallocated = zero
        for event in events:
            total += event.amount
            by_source[event.source_type] = by_source.get(event.source_type, zero) + event.amount
            if event.status == RevenueEventStatus.PENDING:
                pending += event.amount
                continue
            processed += event.amount
            event_unallocated = event.unallocated_amount or zero
            unallocated += event_unallocated
            distributed += (event.dividend_pool or zero) - event_unallocated

        return RevenueSummary(
            master_ipo_id=ipo.id,
            currency=ipo.currency,
            total_revenue=total,
            by_source=by_source,
            processed_revenue=processed,
            pending_revenue=pending,
            distributed_dividends=distributed,
            unallocated=unallocated,
            event_count=len(events),
        )


async def process_pending_events(
    limit: int = 100,
    session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
) -> dict[str, int]:
    """Process every pending revenue event, each in its own transaction.

    Used by the background sweep. An event that fails is rolled back and
    left pending for the next run; the others are unaffected.
    """
    async with session_factory() as session:
        event_ids = await RevenueDistributor(session).pending_event_ids(limit)

    processed = skipped = failed = 0
    for event_id in event_ids:
        async with session_factory() as session:
            try:
                await RevenueDistributor(session).process_revenue_event(event_id)
                await session.commit()
                processed += 1
            except AlreadyProcessed:
                await session.rollback()
                skipped += 1
            except DividendsError as exc:
                await session.rollback()
                failed += 1
                logger.warning(
                    "dividends.revenue_sweep_event_failed",
                    event_id=str(event_id),
                    error=exc.code,
                )

    logger.info(
        "dividends.revenue_sweep_complete",
        processed=processed,
        skipped=skipped,
        failed=failed,
    )
    return {"processed": processed, "skipped": skipped, "failed": failed}
