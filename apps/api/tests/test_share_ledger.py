"""Tests for ShareLedger: minting, mint ranks, supply bounds and transfers."""

from __future__ import annotations

import uuid
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import (
    HolderPositionNotFound,
    InsufficientHoldings,
    InvalidQuantity,
    InvalidTransfer,
    IpoNotActive,
    MasterIpoNotFound,
    SupplyExhausted,
)
from app.models.enums import MasterIpoStatus
from app.modules.master_ipos.ledger import ShareLedger
from app.modules.master_ipos.service import MasterIpoService
from conftest import WALLET_A, WALLET_B, WALLET_C, WALLET_D, MakeIpo

pytestmark = pytest.mark.anyio


class TestRecordMint:
    async def test_first_mint_assigns_rank_one(self, ledger: ShareLedger, active_ipo):
        result = await ledger.record_mint(active_ipo.id, WALLET_A, 10)

        assert result.mint_order_rank == 1
        assert result.quantity_minted == 10
        assert result.quantity_held == 10
        assert result.minted_supply == 10
        assert result.remaining_supply == 90
        assert result.total_price == Decimal("0.50")
        assert result.ipo_status == MasterIpoStatus.ACTIVE

    async def test_ranks_follow_first_mint_order(self, ledger: ShareLedger, active_ipo):
        await ledger.record_mint(active_ipo.id, WALLET_A, 1)
        await ledger.record_mint(active_ipo.id, WALLET_B, 1)
        await ledger.record_mint(active_ipo.id, WALLET_C, 1)

        holders = await ledger.all_holders(active_ipo.id)
        assert [(h.wallet, h.mint_order_rank) for h in holders] == [
            (WALLET_A, 1),
            (WALLET_B, 2),
            (WALLET_C, 3),
        ]

    async def test_repeat_mint_keeps_rank(self, ledger: ShareLedger, active_ipo):
        await ledger.record_mint(active_ipo.id, WALLET_A, 2)
        await ledger.record_mint(active_ipo.id, WALLET_B, 2)
        again = await ledger.record_mint(active_ipo.id, WALLET_A, 3)

        assert again.mint_order_rank == 1
        assert again.quantity_held == 5
        position = await ledger.holder_position(active_ipo.id, WALLET_A)
        assert position.mint_order_rank == 1
        assert position.first_minted_at is not None

    async def test_non_positive_quantity_rejected(self, ledger: ShareLedger, active_ipo):
        with pytest.raises(InvalidQuantity):
            await ledger.record_mint(active_ipo.id, WALLET_A, 0)
        with pytest.raises(InvalidQuantity):
            await ledger.record_mint(active_ipo.id, WALLET_A, -3)

    async def test_unknown_ipo(self, ledger: ShareLedger):
        with pytest.raises(MasterIpoNotFound):
            await ledger.record_mint(uuid.uuid4(), WALLET_A, 1)

    async def test_draft_ipo_cannot_mint(self, ledger: ShareLedger, make_ipo: MakeIpo):
        draft = await make_ipo(launch=False)
        with pytest.raises(IpoNotActive):
            await ledger.record_mint(draft.id, WALLET_A, 1)

    async def test_cancelled_ipo_cannot_mint(
        self, db: AsyncSession, ledger: ShareLedger, active_ipo
    ):
        await MasterIpoService(db).cancel(active_ipo.id)
        with pytest.raises(IpoNotActive):
            await ledger.record_mint(active_ipo.id, WALLET_A, 1)

    async def test_mint_beyond_remaining_supply(self, ledger: ShareLedger, active_ipo):
        await ledger.record_mint(active_ipo.id, WALLET_A, 95)

        with pytest.raises(SupplyExhausted):
            await ledger.record_mint(active_ipo.id, WALLET_B, 6)

        assert await ledger.remaining_supply(active_ipo.id) == 5
        with pytest.raises(HolderPositionNotFound):
            await ledger.holder_position(active_ipo.id, WALLET_B)

    async def test_sell_out_closes_ipo(self, ledger: ShareLedger, active_ipo):
        result = await ledger.record_mint(active_ipo.id, WALLET_A, 100)

        assert result.remaining_supply == 0
        assert result.ipo_status == MasterIpoStatus.CLOSED
        ipo = await ledger.get_ipo(active_ipo.id)
        assert ipo.status == MasterIpoStatus.CLOSED
        assert ipo.closed_at is not None

    async def test_mint_on_sold_out_ipo_leaves_supply_unchanged(
        self, ledger: ShareLedger, make_ipo: MakeIpo
    ):
        ipo = await make_ipo(total_supply=100)
        await ledger.record_mint(ipo.id, WALLET_A, 60)
        await ledger.record_mint(ipo.id, WALLET_B, 40)

        with pytest.raises(SupplyExhausted):
            await ledger.record_mint(ipo.id, WALLET_C, 1)

        refreshed = await ledger.get_ipo(ipo.id)
        assert refreshed.status == MasterIpoStatus.CLOSED
        assert refreshed.minted_supply == 100
        assert refreshed.remaining_supply == 0

    async def test_minted_supply_matches_holdings(self, ledger: ShareLedger, active_ipo):
        for wallet, quantity in ((WALLET_A, 7), (WALLET_B, 13), (WALLET_A, 5), (WALLET_C, 1)):
            await ledger.record_mint(active_ipo.id, wallet, quantity)

        holders = await ledger.all_holders(active_ipo.id)
        ipo = await ledger.get_ipo(active_ipo.id)
        assert sum(h.quantity_held for h in holders) == ipo.minted_supply == 26


class TestTransfer:
    async def test_transfer_moves_units_and_keeps_ranks(
        self, db: AsyncSession, ledger: ShareLedger, active_ipo
    ):
        await ledger.record_mint(active_ipo.id, WALLET_A, 10)
        await ledger.record_mint(active_ipo.id, WALLET_B, 5)

        result = await ledger.transfer(active_ipo.id, WALLET_A, WALLET_B, 4)

        assert result.from_quantity_held == 6
        assert result.to_quantity_held == 9
        a = await ledger.holder_position(active_ipo.id, WALLET_A)
        b = await ledger.holder_position(active_ipo.id, WALLET_B)
        assert (a.mint_order_rank, b.mint_order_rank) == (1, 2)

    async def test_transfer_to_new_wallet_creates_unranked_position(
        self, ledger: ShareLedger, active_ipo
    ):
        await ledger.record_mint(active_ipo.id, WALLET_A, 10)

        await ledger.transfer(active_ipo.id, WALLET_A, WALLET_D, 10)

        receiver = await ledger.holder_position(active_ipo.id, WALLET_D)
        assert receiver.quantity_held == 10
        assert receiver.mint_order_rank is None
        sender = await ledger.holder_position(active_ipo.id, WALLET_A)
        assert sender.quantity_held == 0
        assert sender.mint_order_rank == 1

    async def test_unranked_receiver_gets_rank_on_first_mint(
        self, ledger: ShareLedger, active_ipo
    ):
        await ledger.record_mint(active_ipo.id, WALLET_A, 10)
        await ledger.transfer(active_ipo.id, WALLET_A, WALLET_D, 2)
        await ledger.record_mint(active_ipo.id, WALLET_B, 1)

        result = await ledger.record_mint(active_ipo.id, WALLET_D, 1)

        assert result.mint_order_rank == 3
        assert result.quantity_held == 3

    async def test_transfer_more_than_held(self, ledger: ShareLedger, active_ipo):
        await ledger.record_mint(active_ipo.id, WALLET_A, 3)
        with pytest.raises(InsufficientHoldings):
            await ledger.transfer(active_ipo.id, WALLET_A, WALLET_B, 4)

    async def test_transfer_from_unknown_wallet(self, ledger: ShareLedger, active_ipo):
        with pytest.raises(HolderPositionNotFound):
            await ledger.transfer(active_ipo.id, WALLET_C, WALLET_B, 1)

    async def test_transfer_to_self_rejected(self, ledger: ShareLedger, active_ipo):
        await ledger.record_mint(active_ipo.id, WALLET_A, 3)
        with pytest.raises(InvalidTransfer):
            await ledger.transfer(active_ipo.id, WALLET_A, WALLET_A, 1)

    async def test_transfer_zero_rejected(self, ledger: ShareLedger, active_ipo):
        await ledger.record_mint(active_ipo.id, WALLET_A, 3)
        with pytest.raises(InvalidQuantity):
            await ledger.transfer(active_ipo.id, WALLET_A, WALLET_B, 0)

    async def test_transfer_does_not_change_minted_supply(
        self, ledger: ShareLedger, active_ipo
    ):
        await ledger.record_mint(active_ipo.id, WALLET_A, 10)
        await ledger.transfer(active_ipo.id, WALLET_A, WALLET_B, 3)

        ipo = await ledger.get_ipo(active_ipo.id)
        holders = await ledger.all_holders(active_ipo.id)
        assert ipo.minted_supply == 10
        assert sum(h.quantity_held for h in holders) == 10
