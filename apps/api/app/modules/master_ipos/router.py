"""Master IPOs API router: lifecycle, minting and holder ledger."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.models.enums import MasterIpoStatus
from app.modules.master_ipos.ledger import ShareLedger
from app.modules.master_ipos.schemas import (
    ArtistSummary,
    HolderPositionResponse,
    MasterIpoCreate,
    MasterIpoResponse,
    MasterIpoUpdate,
    MintPreview,
    MintRequest,
    MintResult,
    TransferRequest,
    TransferResult,
)
from app.modules.master_ipos.service import MasterIpoService

router = APIRouter(prefix="/master-ipos", tags=["Master IPOs"])


# ── Lifecycle ────────────────────────────────────────────────────────────────


@router.post("", status_code=status.HTTP_201_CREATED, response_model=MasterIpoResponse)
async def create_master_ipo(
    body: MasterIpoCreate,
    db: AsyncSession = Depends(get_db),
) -> MasterIpoResponse:
    """Create a Master IPO in draft status."""
    ipo = await MasterIpoService(db).create(body)
    await db.commit()
    return MasterIpoResponse.model_validate(ipo)


@router.get("", response_model=list[MasterIpoResponse])
async def list_master_ipos(
    status_filter: MasterIpoStatus | None = Query(None, alias="status"),
    artist_wallet: str | None = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> list[MasterIpoResponse]:
    wallet = artist_wallet.strip().lower() if artist_wallet else None
    ipos = await MasterIpoService(db).list(status_filter, wallet, limit, offset)
    return [MasterIpoResponse.model_validate(i) for i in ipos]


@router.get("/artists/{artist_wallet}/summary", response_model=ArtistSummary)
async def artist_summary(
    artist_wallet: str,
    db: AsyncSession = Depends(get_db),
) -> ArtistSummary:
    """Revenue and dividend totals across an artist's Master IPOs."""
    return await MasterIpoService(db).artist_summary(artist_wallet.strip().lower())


@router.get("/{ipo_id}", response_model=MasterIpoResponse)
async def get_master_ipo(
    ipo_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> MasterIpoResponse:
    ipo = await MasterIpoService(db).get(ipo_id)
    return MasterIpoResponse.model_validate(ipo)


@router.patch("/{ipo_id}", response_model=MasterIpoResponse)
async def update_master_ipo(
    ipo_id: uuid.UUID,
    body: MasterIpoUpdate,
    db: AsyncSession = Depends(get_db),
) -> MasterIpoResponse:
    """Change the configuration of a draft Master IPO."""
    ipo = await MasterIpoService(db).update(ipo_id, body)
    await db.commit()
    return MasterIpoResponse.model_validate(ipo)


@router.post("/{ipo_id}/launch", response_model=MasterIpoResponse)
async def launch_master_ipo(
    ipo_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> MasterIpoResponse:
    ipo = await MasterIpoService(db).launch(ipo_id)
    await db.commit()
    return MasterIpoResponse.model_validate(ipo)


@router.post("/{ipo_id}/close", response_model=MasterIpoResponse)
async def close_master_ipo(
    ipo_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> MasterIpoResponse:
    ipo = await MasterIpoService(db).close(ipo_id)
    await db.commit()
    return MasterIpoResponse.model_validate(ipo)


@router.post("/{ipo_id}/cancel", response_model=MasterIpoResponse)
async def cancel_master_ipo(
    ipo_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> MasterIpoResponse:
    ipo = await MasterIpoService(db).cancel(ipo_id)
    await db.commit()
    return MasterIpoResponse.model_validate(ipo)


# ── Minting ──────────────────────────────────────────────────────────────────


@router.get("/{ipo_id}/mint-preview", response_model=MintPreview)
async def mint_preview(
    ipo_id: uuid.UUID,
    quantity: int = Query(1, ge=1),
    db: AsyncSession = Depends(get_db),
) -> MintPreview:
    return await MasterIpoService(db).mint_preview(ipo_id, quantity)


@router.post("/{ipo_id}/mint", status_code=status.HTTP_201_CREATED, response_model=MintResult)
async def mint(
    ipo_id: uuid.UUID,
    body: MintRequest,
    db: AsyncSession = Depends(get_db),
) -> MintResult:
    """Record a primary-sale mint and assign the wallet's mint-order rank."""
    result = await ShareLedger(db).record_mint(ipo_id, body.wallet, body.quantity)
    await db.commit()
    return result


# ── Holders ──────────────────────────────────────────────────────────────────


@router.get("/{ipo_id}/holders", response_model=list[HolderPositionResponse])
async def list_holders(
    ipo_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> list[HolderPositionResponse]:
    positions = await ShareLedger(db).all_holders(ipo_id)
    return [HolderPositionResponse.model_validate(p) for p in positions]


@router.get("/{ipo_id}/holders/{wallet}", response_model=HolderPositionResponse)
async def get_holder(
    ipo_id: uuid.UUID,
    wallet: str,
    db: AsyncSession = Depends(get_db),
) -> HolderPositionResponse:
    position = await ShareLedger(db).holder_position(ipo_id, wallet.strip().lower())
    return HolderPositionResponse.model_validate(position)


@router.post("/{ipo_id}/transfers", response_model=TransferResult)
async def transfer_units(
    ipo_id: uuid.UUID,
    body: TransferRequest,
    db: AsyncSession = Depends(get_db),
) -> TransferResult:
    """Move units between wallets without touching mint-order ranks."""
    result = await ShareLedger(db).transfer(
        ipo_id, body.from_wallet, body.to_wallet, body.quantity
    )
    await db.commit()
    return result
