"""
Celery worker for the AudiFi Dividends API.

Start worker:    celery -A app.worker worker --loglevel=info
Start beat:      celery -A app.worker beat --loglevel=info
Start both:      celery -A app.worker worker --beat --loglevel=info
"""
from celery import Celery

from app.core.config import settings
from app.core.sentry import init_sentry

celery_app = Celery(
    "audifi_worker",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.REDIS_URL,
    include=[
        "app.tasks.revenue",
    ],
)

init_sentry(
    settings.SENTRY_DSN,
    settings.SENTRY_ENVIRONMENT,
    settings.APP_VERSION,
    service="worker",
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    result_expires=86400,  # 24h
)

celery_app.conf.beat_schedule = {}

if settings.REVENUE_SWEEP_ENABLED:
    # ── Revenue ingestion sweep ──────────────────────────────────────────────
    celery_app.conf.beat_schedule["process-pending-revenue-events"] = {
        "task": "tasks.process_pending_revenue_events",
        "schedule": settings.REVENUE_SWEEP_INTERVAL_SECONDS,
    }
