"""Tests for Master IPO configuration and lifecycle."""

from __future__ import annotations

from decimal import Decimal

import pytest
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InvalidConfiguration, InvalidQuantity, InvalidStatusTransition
from app.models.enums import MasterIpoStatus
from app.modules.dividends.distributor import RevenueDistributor
from app.modules.master_ipos.ledger import ShareLedger
from app.modules.master_ipos.schemas import (
    CollaboratorShareIn,
    MasterIpoCreate,
    MasterIpoUpdate,
)
from app.modules.master_ipos.service import MasterIpoService
from conftest import ARTIST_WALLET, WALLET_A, MakeIpo, ipo_payload

pytestmark = pytest.mark.anyio


class TestCreate:
    async def test_create_starts_as_draft(self, db: AsyncSession):
        ipo = await MasterIpoService(db).create(MasterIpoCreate(**ipo_payload()))

        assert ipo.status == MasterIpoStatus.DRAFT
        assert ipo.minted_supply == 0
        assert ipo.remaining_supply == 100
        assert [(s.collaborator_id, s.percent) for s in ipo.collaborator_shares] == [
            ("producer-1", 10)
        ]
        assert (
            ipo.mover_rank1_percent,
            ipo.mover_rank2_percent,
            ipo.mover_rank3_percent,
            ipo.mover_rank4_plus_percent,
        ) == (10, 5, 3, 1)

    async def test_split_must_sum_to_hundred(self, db: AsyncSession):
        payload = ipo_payload(holder_revenue_share_percent=45)
        with pytest.raises(InvalidConfiguration):
            await MasterIpoService(db).create(MasterIpoCreate(**payload))

    async def test_price_finer_than_currency_unit(self, db: AsyncSession):
        payload = ipo_payload(price_per_unit=Decimal("0.055"))
        with pytest.raises(InvalidConfiguration):
            await MasterIpoService(db).create(MasterIpoCreate(**payload))

    async def test_fixed_tiers_cannot_exceed_hundred(self, db: AsyncSession):
        payload = ipo_payload(
            mover_rank1_percent=60, mover_rank2_percent=30, mover_rank3_percent=20
        )
        with pytest.raises(InvalidConfiguration):
            await MasterIpoService(db).create(MasterIpoCreate(**payload))

    def test_schema_normalises_wallet_and_currency(self):
        data = MasterIpoCreate(**ipo_payload(artist_wallet="  0xABCDEF  ", currency="usdc"))

        assert data.artist_wallet == "0xabcdef"
        assert data.currency == "USDC"

    def test_schema_rejects_out_of_range_supply(self):
        with pytest.raises(ValidationError):
            MasterIpoCreate(**ipo_payload(total_supply=0))
        with pytest.raises(ValidationError):
            MasterIpoCreate(**ipo_payload(total_supply=1_000_001))

    def test_schema_rejects_non_positive_price(self):
        with pytest.raises(ValidationError):
            MasterIpoCreate(**ipo_payload(price_per_unit=Decimal("0")))


class TestUpdate:
    async def test_draft_can_be_reconfigured(self, db: AsyncSession, make_ipo: MakeIpo):
        draft = await make_ipo(launch=False)

        updated = await MasterIpoService(db).update(
            draft.id,
            MasterIpoUpdate(
                holder_revenue_share_percent=30,
                collaborator_shares=[
                    CollaboratorShareIn(collaborator_id="producer-1", percent=12),
                    CollaboratorShareIn(collaborator_id="mix-engineer", percent=8),
                ],
            ),
        )

        assert updated.holder_revenue_share_percent == 30
        shares = [(s.collaborator_id, s.percent, s.position) for s in updated.collaborator_shares]
        assert shares == [
            ("producer-1", 12, 0),
            ("mix-engineer", 8, 1),
        ]

    async def test_invalid_update_rejected(self, db: AsyncSession, make_ipo: MakeIpo):
        draft = await make_ipo(launch=False)
        with pytest.raises(InvalidConfiguration):
            await MasterIpoService(db).update(draft.id, MasterIpoUpdate(artist_retained_percent=70))

    async def test_active_ipo_is_frozen(self, db: AsyncSession, active_ipo):
        with pytest.raises(InvalidStatusTransition):
            await MasterIpoService(db).update(active_ipo.id, MasterIpoUpdate(title="Renamed"))


class TestLifecycle:
    async def test_launch_then_close(self, db: AsyncSession, make_ipo: MakeIpo):
        svc = MasterIpoService(db)
        draft = await make_ipo(launch=False)

        launched = await svc.launch(draft.id)
        assert launched.status == MasterIpoStatus.ACTIVE
        assert launched.launched_at is not None

        closed = await svc.close(draft.id)
        assert closed.status == MasterIpoStatus.CLOSED
        assert closed.closed_at is not None

    async def test_cannot_close_draft(self, db: AsyncSession, make_ipo: MakeIpo):
        draft = await make_ipo(launch=False)
        with pytest.raises(InvalidStatusTransition):
            await MasterIpoService(db).close(draft.id)

    async def test_cannot_relaunch_closed(self, db: AsyncSession, active_ipo):
        svc = MasterIpoService(db)
        await svc.close(active_ipo.id)
        with pytest.raises(InvalidStatusTransition):
            await svc.launch(active_ipo.id)

    async def test_cancel_active(self, db: AsyncSession, active_ipo):
        cancelled = await MasterIpoService(db).cancel(active_ipo.id)
        assert cancelled.status == MasterIpoStatus.CANCELLED

    async def test_list_filters(self, db: AsyncSession, make_ipo: MakeIpo):
        await make_ipo(launch=False)
        await make_ipo()
        await make_ipo(artist_wallet="0xsomeoneelse")
        svc = MasterIpoService(db)

        assert len(await svc.list()) == 3
        assert len(await svc.list(status=MasterIpoStatus.DRAFT)) == 1
        assert len(await svc.list(artist_wallet=ARTIST_WALLET)) == 2


class TestReadModels:
    async def test_mint_preview(self, db: AsyncSession, ledger: ShareLedger, active_ipo):
        await ledger.record_mint(active_ipo.id, WALLET_A, 98)
        svc = MasterIpoService(db)

        fits = await svc.mint_preview(active_ipo.id, 2)
        assert fits.available is True
        assert fits.total_price == Decimal("0.10")
        assert fits.remaining_supply == 2

        too_many = await svc.mint_preview(active_ipo.id, 3)
        assert too_many.available is False

        with pytest.raises(InvalidQuantity):
            await svc.mint_preview(active_ipo.id, 0)

    async def test_preview_on_draft_not_available(self, db: AsyncSession, make_ipo: MakeIpo):
        draft = await make_ipo(launch=False)
        preview = await MasterIpoService(db).mint_preview(draft.id, 1)
        assert preview.available is False

    async def test_artist_summary(self, db: AsyncSession, ledger: ShareLedger, make_ipo: MakeIpo):
        first = await make_ipo()
        await make_ipo(launch=False)
        await ledger.record_mint(first.id, WALLET_A, 10)
        distributor = RevenueDistributor(db)
        processed = await distributor.register_revenue_event(first.id, Decimal("100"), "USD")
        await distributor.register_revenue_event(first.id, Decimal("25"), "USD")
        await distributor.process_revenue_event(processed.id)

        summary = await MasterIpoService(db).artist_summary(ARTIST_WALLET)

        assert summary.ipo_count == 2
        by_id = {s.master_ipo_id: s for s in summary.ipos}
        first_summary = by_id[first.id]
        assert first_summary.total_revenue == Decimal("125")
        assert first_summary.pending_revenue == Decimal("25")
        assert first_summary.distributed_dividends == Decimal("40.00")
        assert first_summary.unallocated == 0
        assert first_summary.revenue_event_count == 2

    async def test_artist_summary_for_unknown_wallet(self, db: AsyncSession):
        summary = await MasterIpoService(db).artist_summary("0xnobody")
        assert summary.ipo_count == 0
        assert summary.ipos == []
