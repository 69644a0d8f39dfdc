"""Master IPOs: lifecycle service (create, configure, launch, close, cancel)."""

from __future__ import annotations

import uuid
from collections import defaultdict
from decimal import Decimal
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.currency import fits_minor_unit, round_amount
from app.core.errors import InvalidConfiguration, InvalidQuantity, InvalidStatusTransition
from app.models.base import utcnow
from app.models.enums import MasterIpoStatus, RevenueEventStatus
from app.models.master_ipo import CollaboratorShare, MasterIpo
from app.models.revenue import RevenueEvent
from app.modules.master_ipos.ledger import ShareLedger
from app.modules.master_ipos.schemas import (
    MAX_TOTAL_SUPPLY,
    ArtistIpoSummary,
    ArtistSummary,
    CollaboratorShareIn,
    MasterIpoCreate,
    MasterIpoUpdate,
    MintPreview,
)

logger = structlog.get_logger()

_CONFIG_FIELDS = (
    "title",
    "total_supply",
    "price_per_unit",
    "currency",
    "holder_revenue_share_percent",
    "artist_retained_percent",
    "mover_rank1_percent",
    "mover_rank2_percent",
    "mover_rank3_percent",
    "mover_rank4_plus_percent",
)

# Allowed lifecycle moves: target -> statuses it may be reached from
_TRANSITIONS: dict[MasterIpoStatus, tuple[MasterIpoStatus, ...]] = {
    MasterIpoStatus.ACTIVE: (MasterIpoStatus.DRAFT,),
    MasterIpoStatus.CLOSED: (MasterIpoStatus.ACTIVE,),
    MasterIpoStatus.CANCELLED: (MasterIpoStatus.DRAFT, MasterIpoStatus.ACTIVE),
}


def validate_configuration(ipo: MasterIpo) -> None:
    """Check the split and tier invariants of a (possibly unsaved) IPO."""
    if not 1 <= ipo.total_supply <= MAX_TOTAL_SUPPLY:
        raise InvalidConfiguration(
            f"Total supply must be between 1 and {MAX_TOTAL_SUPPLY:,}",
            total_supply=ipo.total_supply,
        )
    if ipo.price_per_unit <= 0:
        raise InvalidConfiguration("Price per unit must be positive", price=ipo.price_per_unit)
    if not fits_minor_unit(ipo.price_per_unit, ipo.currency):
        raise InvalidConfiguration(
            f"Price per unit is finer than the smallest {ipo.currency} unit",
            price=ipo.price_per_unit,
        )

    split_total = (
        ipo.holder_revenue_share_percent
        + ipo.artist_retained_percent
        + ipo.collaborator_percent_total
    )
    if split_total != 100:
        raise InvalidConfiguration(
            "Holder, artist and collaborator percents must sum to 100",
            total=split_total,
        )

    fixed_tiers = ipo.mover_rank1_percent + ipo.mover_rank2_percent + ipo.mover_rank3_percent
    if fixed_tiers > 100:
        raise InvalidConfiguration(
            "Mover Advantage rank 1-3 percents cannot exceed 100 in total",
            total=fixed_tiers,
        )


class MasterIpoService:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.ledger = ShareLedger(db)

    # ── CRUD ─────────────────────────────────────────────────────────────────

    async def create(self, data: MasterIpoCreate) -> MasterIpo:
        ipo = MasterIpo(
            title=data.title,
            artist_wallet=data.artist_wallet,
            total_supply=data.total_supply,
            minted_supply=0,
            price_per_unit=data.price_per_unit,
            currency=data.currency,
            holder_revenue_share_percent=data.holder_revenue_share_percent,
            artist_retained_percent=data.artist_retained_percent,
            mover_rank1_percent=data.mover_rank1_percent,
            mover_rank2_percent=data.mover_rank2_percent,
            mover_rank3_percent=data.mover_rank3_percent,
            mover_rank4_plus_percent=data.mover_rank4_plus_percent,
            status=MasterIpoStatus.DRAFT,
            collaborator_shares=_build_shares(data.collaborator_shares),
        )
        validate_configuration(ipo)
        self.db.add(ipo)
        await self.db.flush()
        logger.info(
            "master_ipo.created",
            master_ipo_id=str(ipo.id),
            artist_wallet=ipo.artist_wallet,
            total_supply=ipo.total_supply,
        )
        return ipo

    async def get(self, ipo_id: uuid.UUID) -> MasterIpo:
        return await self.ledger.get_ipo(ipo_id)

    async def list(
        self,
        status: MasterIpoStatus | None = None,
        artist_wallet: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[MasterIpo]:
        stmt = select(MasterIpo)
        if status:
            stmt = stmt.where(MasterIpo.status == status)
        if artist_wallet:
            stmt = stmt.where(MasterIpo.artist_wallet == artist_wallet)
        stmt = stmt.order_by(MasterIpo.created_at.desc()).limit(limit).offset(offset)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def update(self, ipo_id: uuid.UUID, data: MasterIpoUpdate) -> MasterIpo:
        ipo = await self.ledger.get_ipo(ipo_id, for_update=True)
        if ipo.status != MasterIpoStatus.DRAFT:
            raise InvalidStatusTransition(
                "Configuration can only be changed while the IPO is a draft",
                status=ipo.status.value,
            )

        changes: dict[str, Any] = data.model_dump(exclude_unset=True)
        shares = changes.pop("collaborator_shares", None)
        for field in _CONFIG_FIELDS:
            if field in changes and changes[field] is not None:
                setattr(ipo, field, changes[field])
        if shares is not None:
            _replace_shares(ipo, data.collaborator_shares or [])

        validate_configuration(ipo)
        await self.db.flush()
        await self.db.refresh(ipo)
        logger.info("master_ipo.updated", master_ipo_id=str(ipo.id), fields=sorted(changes))
        return ipo

    # ── Lifecycle ────────────────────────────────────────────────────────────

    async def _transition(self, ipo_id: uuid.UUID, target: MasterIpoStatus) -> MasterIpo:
        ipo = await self.ledger.get_ipo(ipo_id, for_update=True)
        if ipo.status not in _TRANSITIONS[target]:
            raise InvalidStatusTransition(
                f"Cannot move Master IPO from {ipo.status.value} to {target.value}",
                status=ipo.status.value,
                target=target.value,
            )
        now = utcnow()
        ipo.status = target
        if target == MasterIpoStatus.ACTIVE:
            ipo.launched_at = now
        elif target in (MasterIpoStatus.CLOSED, MasterIpoStatus.CANCELLED):
            ipo.closed_at = now
        await self.db.flush()
        logger.info("master_ipo.status_changed", master_ipo_id=str(ipo.id), status=target.value)
        return ipo

    async def launch(self, ipo_id: uuid.UUID) -> MasterIpo:
        return await self._transition(ipo_id, MasterIpoStatus.ACTIVE)

    async def close(self, ipo_id: uuid.UUID) -> MasterIpo:
        return await self._transition(ipo_id, MasterIpoStatus.CLOSED)

    async def cancel(self, ipo_id: uuid.UUID) -> MasterIpo:
        return await self._transition(ipo_id, MasterIpoStatus.CANCELLED)

    # ── Read models ──────────────────────────────────────────────────────────

    async def mint_preview(self, ipo_id: uuid.UUID, quantity: int) -> MintPreview:
        if quantity <= 0:
            raise InvalidQuantity("Preview quantity must be positive", quantity=quantity)
        ipo = await self.ledger.get_ipo(ipo_id)
        return MintPreview(
            master_ipo_id=ipo.id,
            quantity=quantity,
            unit_price=ipo.price_per_unit,
            total_price=round_amount(ipo.price_per_unit * quantity, ipo.currency),
            currency=ipo.currency,
            remaining_supply=ipo.remaining_supply,
            available=(
                ipo.status == MasterIpoStatus.ACTIVE and quantity <= ipo.remaining_supply
            ),
        )

    async def artist_summary(self, artist_wallet: str) -> ArtistSummary:
        """Revenue and dividend totals over every IPO owned by an artist wallet."""
        ipos = await self.list(artist_wallet=artist_wallet, limit=1000)
        if not ipos:
            return ArtistSummary(artist_wallet=artist_wallet, ipo_count=0, ipos=[])

        result = await self.db.execute(
            select(RevenueEvent).where(RevenueEvent.master_ipo_id.in_([i.id for i in ipos]))
        )
        events_by_ipo: dict[uuid.UUID, list[RevenueEvent]] = defaultdict(list)
        for event in result.scalars().all():
            events_by_ipo[event.master_ipo_id].append(event)

        summaries: list[ArtistIpoSummary] = []
        for ipo in ipos:
            events = events_by_ipo.get(ipo.id, [])
            total = pending = distributed = unallocated = Decimal(0)
            for event in events:
                total += event.amount
                if event.status == RevenueEventStatus.PENDING:
                    pending += event.amount
                    continue
                event_unallocated = event.unallocated_amount or Decimal(0)
                unallocated += event_unallocated
                distributed += (event.dividend_pool or Decimal(0)) - event_unallocated
            summaries.append(
                ArtistIpoSummary(
                    master_ipo_id=ipo.id,
                    title=ipo.title,
                    status=ipo.status,
                    currency=ipo.currency,
                    total_revenue=total,
                    pending_revenue=pending,
                    distributed_dividends=distributed,
                    unallocated=unallocated,
                    revenue_event_count=len(events),
                )
            )
        return ArtistSummary(artist_wallet=artist_wallet, ipo_count=len(ipos), ipos=summaries)


def _build_shares(shares: list[CollaboratorShareIn]) -> list[CollaboratorShare]:
    return [
        CollaboratorShare(collaborator_id=s.collaborator_id, percent=s.percent, position=i)
        for i, s in enumerate(shares)
    ]


def _replace_shares(ipo: MasterIpo, shares: list[CollaboratorShareIn]) -> None:
    # Rows are rewritten in place by position; (ipo, position) is unique
    existing = list(ipo.collaborator_shares)
    for i, share in enumerate(shares):
        if i < len(existing):
            existing[i].collaborator_id = share.collaborator_id
            existing[i].percent = share.percent
        else:
            ipo.collaborator_shares.append(
                CollaboratorShare(
                    collaborator_id=share.collaborator_id, percent=share.percent, position=i
                )
            )
    del ipo.collaborator_shares[len(shares):]
