"""Celery task: process pending revenue events into holder entitlements."""

from __future__ import annotations

import asyncio

import structlog
from celery import shared_task

logger = structlog.get_logger()


@shared_task(
    name="tasks.process_pending_revenue_events",
    bind=True,
    max_retries=3,
    default_retry_delay=300,
)
def process_pending_revenue_events(self, limit: int | None = None) -> dict:  # type: ignore[type-arg]
    """Sweep pending revenue events, one transaction per event.

    Scheduled by Celery Beat every REVENUE_SWEEP_INTERVAL_SECONDS.
    """
    from app.core.config import settings

    try:
        return asyncio.run(_run(limit or settings.REVENUE_SWEEP_BATCH_SIZE))
    except Exception as exc:
        logger.error("tasks.process_pending_revenue_events.failed", error=str(exc))
        raise self.retry(exc=exc) from exc


async def _run(limit: int) -> dict:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
    from sqlalchemy.pool import NullPool

    from app.core.config import settings
    from app.modules.dividends.distributor import process_pending_events

    # Each asyncio.run() gets a fresh loop, so pooled connections cannot be reused
    engine = create_async_engine(settings.DATABASE_URL, poolclass=NullPool)
    try:
        session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        counts = await process_pending_events(limit, session_factory)
    finally:
        await engine.dispose()

    return {"status": "ok", **counts}
