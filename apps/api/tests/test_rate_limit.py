"""Tests for the per-route Redis rate limiter."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient
from starlette.types import Receive, Scope, Send

from app.middleware.security import RateLimitMiddleware
from conftest import WALLET_A

pytestmark = pytest.mark.anyio


async def _ok_app(scope: Scope, receive: Receive, send: Send) -> None:
    await send(
        {
            "type": "http.response.start",
            "status": 200,
            "headers": [(b"content-type", b"application/json")],
        }
    )
    await send({"type": "http.response.body", "body": b"{}"})


def _client() -> AsyncClient:
    limiter = RateLimitMiddleware(_ok_app, redis_url="redis://localhost:6379/0", enabled=True)
    return AsyncClient(transport=ASGITransport(app=limiter), base_url="http://test")


class TestRateLimitRules:
    async def test_claim_route_uses_claim_limit(self):
        window = AsyncMock(return_value=(True, 29))
        with patch.object(RateLimitMiddleware, "_sliding_window", window):
            async with _client() as ac:
                resp = await ac.post("/v1/dividends/claim", json={})

        assert resp.status_code == 200
        assert resp.headers["x-ratelimit-limit"] == "30"
        assert resp.headers["x-ratelimit-remaining"] == "29"
        _, key, limit, seconds = window.call_args.args
        assert key.endswith(":dividends/claim")
        assert (limit, seconds) == (30, 60)

    async def test_claimable_listing_not_held_to_claim_limit(self):
        window = AsyncMock(return_value=(True, 299))
        with patch.object(RateLimitMiddleware, "_sliding_window", window):
            async with _client() as ac:
                resp = await ac.get(f"/v1/dividends/claimable/{WALLET_A}")

        assert resp.headers["x-ratelimit-limit"] == "300"

    async def test_claim_and_revenue_use_separate_buckets(self):
        window = AsyncMock(return_value=(True, 1))
        with patch.object(RateLimitMiddleware, "_sliding_window", window):
            async with _client() as ac:
                await ac.post("/v1/dividends/claim", json={})
                await ac.post("/v1/dividends/revenue", json={})

        keys = [call.args[1] for call in window.call_args_list]
        assert len(set(keys)) == 2
        assert window.call_args_list[1].args[2] == 60

    async def test_unmatched_route_uses_default(self):
        window = AsyncMock(return_value=(True, 10))
        with patch.object(RateLimitMiddleware, "_sliding_window", window):
            async with _client() as ac:
                resp = await ac.get("/v1/master-ipos")

        assert resp.headers["x-ratelimit-limit"] == "300"
        assert window.call_args.args[1].endswith(":master-ipos")

    async def test_exhausted_window_returns_429(self):
        window = AsyncMock(return_value=(False, 0))
        with patch.object(RateLimitMiddleware, "_sliding_window", window):
            async with _client() as ac:
                resp = await ac.post("/v1/dividends/claim", json={})

        assert resp.status_code == 429
        assert resp.json()["error"] == "rate_limit_exceeded"
        assert resp.headers["retry-after"] == "60"

    async def test_redis_failure_fails_open(self):
        window = AsyncMock(side_effect=ConnectionError("redis down"))
        with patch.object(RateLimitMiddleware, "_sliding_window", window):
            async with _client() as ac:
                resp = await ac.post("/v1/dividends/claim", json={})

        assert resp.status_code == 200
        assert resp.headers["x-ratelimit-remaining"] == "30"

    async def test_health_is_never_limited(self):
        window = AsyncMock(return_value=(False, 0))
        with patch.object(RateLimitMiddleware, "_sliding_window", window):
            async with _client() as ac:
                resp = await ac.get("/health")

        assert resp.status_code == 200
        window.assert_not_called()
