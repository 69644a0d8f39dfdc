"""Tests for the Mover Advantage resale split."""

from __future__ import annotations

import uuid
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InsufficientHoldings, InvalidAmount, IpoNotActive
from app.models.master_ipo import HolderPosition
from app.models.revenue import ResaleTransaction
from app.modules.master_ipos.ledger import ShareLedger
from app.modules.mover_advantage.calculator import MoverAdvantageCalculator, split_sale
from app.modules.mover_advantage.schemas import TierSchedule
from conftest import WALLET_A, WALLET_B, WALLET_C, WALLET_D, WALLET_E, MakeIpo

pytestmark = pytest.mark.anyio

IPO_ID = uuid.UUID("00000000-0000-0002-0000-000000000001")
DEFAULT_TIERS = TierSchedule(
    master_ipo_id=IPO_ID,
    rank1_percent=10,
    rank2_percent=5,
    rank3_percent=3,
    rank4_plus_percent=1,
)


def _holder(wallet: str, rank: int | None, quantity: int = 1) -> HolderPosition:
    return HolderPosition(
        master_ipo_id=IPO_ID, wallet=wallet, quantity_held=quantity, mint_order_rank=rank
    )


class TestSplitSale:
    def test_two_ranked_holders(self):
        holders = [_holder(WALLET_A, 1), _holder(WALLET_B, 2)]

        split = split_sale(IPO_ID, Decimal("10"), "USD", DEFAULT_TIERS, holders)

        assert split.applied_percent == 15
        assert split.seller_proceeds == Decimal("8.5")
        assert [(p.wallet, p.amount) for p in split.payouts] == [
            (WALLET_A, Decimal("1.00")),
            (WALLET_B, Decimal("0.50")),
        ]
        total = split.seller_proceeds + sum(p.amount for p in split.payouts)
        assert total == Decimal("10")

    def test_rank_four_plus_paid_per_holder(self):
        holders = [
            _holder(WALLET_A, 1),
            _holder(WALLET_B, 2),
            _holder(WALLET_C, 3),
            _holder(WALLET_D, 4),
            _holder(WALLET_E, 5),
        ]

        split = split_sale(IPO_ID, Decimal("1000"), "USD", DEFAULT_TIERS, holders)

        assert split.applied_percent == 20
        assert [p.amount for p in split.payouts] == [
            Decimal("100.00"),
            Decimal("50.00"),
            Decimal("30.00"),
            Decimal("10.00"),
            Decimal("10.00"),
        ]
        assert split.seller_proceeds == Decimal("800.00")

    def test_zero_quantity_holders_still_paid(self):
        holders = [_holder(WALLET_A, 1, quantity=0), _holder(WALLET_B, 2)]

        split = split_sale(IPO_ID, Decimal("10"), "USD", DEFAULT_TIERS, holders)

        assert split.payouts[0].wallet == WALLET_A
        assert split.payouts[0].amount == Decimal("1.00")

    def test_unranked_positions_ignored(self):
        holders = [_holder(WALLET_A, 1), _holder(WALLET_D, None, quantity=50)]

        split = split_sale(IPO_ID, Decimal("10"), "USD", DEFAULT_TIERS, holders)

        assert [p.wallet for p in split.payouts] == [WALLET_A]
        assert split.seller_proceeds == Decimal("9.00")

    def test_no_holders_seller_keeps_everything(self):
        split = split_sale(IPO_ID, Decimal("42"), "USD", DEFAULT_TIERS, [])

        assert split.payouts == []
        assert split.applied_percent == 0
        assert split.seller_proceeds == Decimal("42")

    def test_payouts_never_exceed_sale_price(self):
        tiers = DEFAULT_TIERS.model_copy(update={"rank4_plus_percent": 30})
        holders = [_holder(f"0xw{i}", i) for i in range(1, 10)]

        split = split_sale(IPO_ID, Decimal("100"), "USD", tiers, holders)

        # 10 + 5 + 3 + 30 + 30 = 78; a third rank-4+ payout would reach 108
        assert split.applied_percent == 78
        assert len(split.payouts) == 5
        assert split.seller_proceeds == Decimal("22.00")

    def test_rounding_to_currency_unit(self):
        holders = [_holder(WALLET_A, 1), _holder(WALLET_B, 2)]

        split = split_sale(IPO_ID, Decimal("0.33"), "USD", DEFAULT_TIERS, holders)

        # 10% of 0.33 = 0.033 -> 0.03; 5% = 0.0165 -> 0.02
        assert [p.amount for p in split.payouts] == [Decimal("0.03"), Decimal("0.02")]
        assert split.seller_proceeds == Decimal("0.28")

    def test_non_positive_price_rejected(self):
        with pytest.raises(InvalidAmount):
            split_sale(IPO_ID, Decimal("0"), "USD", DEFAULT_TIERS, [])

    def test_price_finer_than_currency_unit_rejected(self):
        with pytest.raises(InvalidAmount):
            split_sale(IPO_ID, Decimal("10.005"), "USD", DEFAULT_TIERS, [])

    def test_price_at_eth_precision_accepted(self):
        split = split_sale(IPO_ID, Decimal("0.000000000000000001"), "ETH", DEFAULT_TIERS, [])
        assert split.seller_proceeds == Decimal("0.000000000000000001")


class TestMoverAdvantageCalculator:
    async def test_tier_schedule_reflects_configuration(
        self, db: AsyncSession, make_ipo: MakeIpo
    ):
        ipo = await make_ipo(
            mover_rank1_percent=20,
            mover_rank2_percent=10,
            mover_rank3_percent=5,
            mover_rank4_plus_percent=2,
        )

        tiers = await MoverAdvantageCalculator(db).tier_schedule(ipo.id)

        assert (tiers.rank1_percent, tiers.rank2_percent) == (20, 10)
        assert tiers.percent_for(3) == 5
        assert tiers.percent_for(17) == 2

    async def test_compute_split_from_ledger(
        self, db: AsyncSession, ledger: ShareLedger, active_ipo
    ):
        await ledger.record_mint(active_ipo.id, WALLET_A, 10)
        await ledger.record_mint(active_ipo.id, WALLET_B, 5)

        split = await MoverAdvantageCalculator(db).compute_split(active_ipo.id, Decimal("10"))

        assert split.currency == "USD"
        assert split.seller_proceeds == Decimal("8.50")
        assert [(p.rank, p.amount) for p in split.payouts] == [
            (1, Decimal("1.00")),
            (2, Decimal("0.50")),
        ]

    async def test_record_resale_moves_units_and_stores_split(
        self, db: AsyncSession, ledger: ShareLedger, active_ipo
    ):
        await ledger.record_mint(active_ipo.id, WALLET_A, 10)
        await ledger.record_mint(active_ipo.id, WALLET_B, 5)

        resale = await MoverAdvantageCalculator(db).record_resale(
            active_ipo.id, WALLET_B, WALLET_C, 2, Decimal("10")
        )

        assert resale.seller_proceeds == Decimal("8.50")
        assert [p["wallet"] for p in resale.mover_advantage_payouts] == [WALLET_A, WALLET_B]
        assert (await ledger.holder_position(active_ipo.id, WALLET_B)).quantity_held == 3
        buyer = await ledger.holder_position(active_ipo.id, WALLET_C)
        assert buyer.quantity_held == 2
        assert buyer.mint_order_rank is None

        stored = (await db.execute(select(ResaleTransaction))).scalars().all()
        assert len(stored) == 1

    async def test_record_resale_on_draft_ipo(self, db: AsyncSession, make_ipo: MakeIpo):
        draft = await make_ipo(launch=False)
        with pytest.raises(IpoNotActive):
            await MoverAdvantageCalculator(db).record_resale(
                draft.id, WALLET_A, WALLET_B, 1, Decimal("5")
            )

    async def test_record_resale_insufficient_holdings(
        self, db: AsyncSession, ledger: ShareLedger, active_ipo
    ):
        await ledger.record_mint(active_ipo.id, WALLET_A, 1)
        with pytest.raises(InsufficientHoldings):
            await MoverAdvantageCalculator(db).record_resale(
                active_ipo.id, WALLET_A, WALLET_B, 2, Decimal("5")
            )
