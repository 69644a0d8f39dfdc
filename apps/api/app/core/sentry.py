"""Sentry setup shared by the dividends API and the revenue worker.

Holder wallets appear in URLs (``/holders/{wallet}``, ``/claimable/{wallet}``)
and in breadcrumb messages, so events are scrubbed of wallet addresses before
they leave the process.
"""

import re
from typing import Any

import sentry_sdk
import structlog
from sentry_sdk.integrations.celery import CeleryIntegration
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.redis import RedisIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

logger = structlog.get_logger()

_SENSITIVE_HEADERS = {"authorization", "cookie", "x-api-key"}
_WALLET_RE = re.compile(r"0x[0-9a-zA-Z]{6,}")
WALLET_MASK = "0x[wallet]"


def mask_wallets(value: Any) -> Any:
    if isinstance(value, str):
        return _WALLET_RE.sub(WALLET_MASK, value)
    return value


def scrub_event(event: dict, hint: dict) -> dict:
    """Redact auth headers and mask wallet addresses in request data and breadcrumbs."""
    request = event.get("request") or {}
    headers = request.get("headers") or {}
    for header in list(headers):
        if header.lower() in _SENSITIVE_HEADERS:
            headers[header] = "[REDACTED]"
    for key in ("url", "query_string"):
        if key in request:
            request[key] = mask_wallets(request[key])

    breadcrumbs = event.get("breadcrumbs") or {}
    # The SDK sends {"values": [...]}; older payloads carry a bare list
    crumbs = breadcrumbs.get("values", []) if isinstance(breadcrumbs, dict) else breadcrumbs
    for crumb in crumbs:
        crumb["message"] = mask_wallets(crumb.get("message"))

    transaction = event.get("transaction")
    if transaction:
        event["transaction"] = mask_wallets(transaction)
    return event


def init_sentry(
    dsn: str | None,
    environment: str = "development",
    release: str | None = None,
    service: str = "api",
) -> bool:
    """Initialise Sentry for ``service`` ("api" or "worker").

    Call before the FastAPI app or Celery instance is built. Returns False
    without touching the SDK when no DSN is configured.
    """
    if not dsn:
        logger.warning("sentry.disabled", service=service, reason="SENTRY_DSN not set")
        return False

    traces_sample_rate = 0.1 if environment == "production" else 1.0
    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        release=release,
        traces_sample_rate=traces_sample_rate,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
            CeleryIntegration(monitor_beat_tasks=True),
            RedisIntegration(),
        ],
        send_default_pii=False,
        before_send=scrub_event,
    )
    sentry_sdk.set_tag("service", service)
    logger.info(
        "sentry.initialized",
        service=service,
        environment=environment,
        traces_sample_rate=traces_sample_rate,
    )
    return True
