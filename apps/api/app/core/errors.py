"""Domain error taxonomy and standardized error responses across all API endpoints."""
from typing import Any

import sentry_sdk
import structlog
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error envelope returned by all API error handlers."""
    error: str
    message: str
    detail: Any = None
    request_id: str = "unknown"

logger = structlog.get_logger()


# ── Domain errors ─────────────────────────────────────────────────────────────
# Raised by the ledger services; rendered by domain_exception_handler.


class DividendsError(Exception):
    """Base class for every recoverable ledger error."""

    code = "dividends_error"
    status_code = 400

    def __init__(self, message: str, **detail: Any) -> None:
        super().__init__(message)
        self.message = message
        self.detail = {k: str(v) for k, v in detail.items()} or None


class NotFound(DividendsError, LookupError):
    code = "not_found"
    status_code = 404


class ConflictError(DividendsError):
    code = "conflict"
    status_code = 409


class InvalidQuantity(DividendsError, ValueError):
    code = "invalid_quantity"
    status_code = 422


class InvalidAmount(DividendsError, ValueError):
    code = "invalid_amount"
    status_code = 422


class CurrencyMismatch(InvalidAmount):
    code = "currency_mismatch"


class InvalidConfiguration(DividendsError, ValueError):
    code = "invalid_configuration"
    status_code = 422


class InvalidTransfer(DividendsError, ValueError):
    code = "invalid_transfer"
    status_code = 422


class SupplyExhausted(DividendsError, ValueError):
    code = "supply_exhausted"
    status_code = 409


class InsufficientHoldings(DividendsError, ValueError):
    code = "insufficient_holdings"
    status_code = 409


class MasterIpoNotFound(NotFound):
    code = "master_ipo_not_found"


class HolderPositionNotFound(NotFound):
    code = "holder_position_not_found"


class RevenueEventNotFound(NotFound):
    code = "revenue_event_not_found"


class EntitlementNotFound(NotFound):
    code = "entitlement_not_found"


class AlreadyProcessed(ConflictError):
    code = "already_processed"


class AlreadyClaimed(ConflictError):
    code = "already_claimed"


class IpoNotActive(ConflictError):
    code = "ipo_not_active"


class InvalidStatusTransition(ConflictError):
    code = "invalid_status_transition"


class WalletMismatch(DividendsError):
    code = "wallet_mismatch"
    status_code = 403


# ── Handlers ──────────────────────────────────────────────────────────────────


async def domain_exception_handler(request: Request, exc: DividendsError) -> JSONResponse:
    """Render a ledger error in the standard envelope with its mapped status."""
    request_id = request.headers.get("x-request-id", "unknown")

    logger.info(
        "domain_error",
        error=exc.code,
        path=request.url.path,
        method=request.method,
        request_id=request_id,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.code,
            "message": exc.message,
            "detail": exc.detail,
            "request_id": request_id,
        },
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch unhandled exceptions and return a consistent JSON envelope."""
    request_id = request.headers.get("x-request-id", "unknown")

    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
        request_id=request_id,
    )

    sentry_sdk.capture_exception(exc)

    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred. Our team has been notified.",
            "request_id": request_id,
        },
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Standardize HTTPException responses into the same JSON envelope."""
    request_id = request.headers.get("x-request-id", "unknown")

    if isinstance(exc.detail, dict):
        error = exc.detail.get("error", f"http_{exc.status_code}")
        message = exc.detail.get("message", str(exc.detail))
        detail: Any = exc.detail.get("detail")
    else:
        error = f"http_{exc.status_code}"
        message = str(exc.detail)
        detail = exc.detail

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": error,
            "message": message,
            "detail": detail,
            "request_id": request_id,
        },
        headers=dict(exc.headers or {}),
    )
