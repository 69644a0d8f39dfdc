"""Security middleware: HTTP headers, rate limiting, body size enforcement.

All three are implemented as pure ASGI middleware (no BaseHTTPMiddleware)
so they are compatible with streaming responses.
"""

import json
import time

import structlog
import redis.asyncio as aioredis
from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Receive, Scope, Send

logger = structlog.get_logger()

# ── 1. Security Headers ───────────────────────────────────────────────────────


class SecurityHeadersMiddleware:
    """Append security headers to every HTTP response."""

    _STATIC_HEADERS = [
        ("x-content-type-options", "nosniff"),
        ("x-frame-options", "DENY"),
        # XSS-Protection 0 is the modern recommendation (disables the broken IE filter)
        ("x-xss-protection", "0"),
        ("referrer-policy", "strict-origin-when-cross-origin"),
    ]
    _HSTS_HEADER = ("strict-transport-security", "max-age=63072000; includeSubDomains; preload")

    def __init__(self, app: ASGIApp, is_production: bool = False) -> None:
        self.app = app
        self._headers = list(self._STATIC_HEADERS)
        if is_production:
            self._headers.append(self._HSTS_HEADER)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def _send(message: dict) -> None:
            if message["type"] == "http.response.start":
                raw = MutableHeaders(scope=message)
                for name, value in self._headers:
                    raw.append(name, value)
                # Strip server fingerprint
                raw.update({"server": "AudiFi"})
            await send(message)

        await self.app(scope, receive, _send)


# ── 2. Request Body Size Limiter ──────────────────────────────────────────────


class RequestBodySizeLimitMiddleware:
    """Reject requests whose Content-Length exceeds max_bytes before they hit handlers."""

    def __init__(self, app: ASGIApp, max_bytes: int = 1_048_576) -> None:
        self.app = app
        self.max_bytes = max_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        raw_cl = headers.get(b"content-length")
        if raw_cl:
            try:
                if int(raw_cl) > self.max_bytes:
                    body = json.dumps(
                        {
                            "error": "payload_too_large",
                            "message": f"Request body too large. Maximum {self.max_bytes} bytes.",
                        }
                    ).encode()
                    await send(
                        {
                            "type": "http.response.start",
                            "status": 413,
                            "headers": [
                                (b"content-type", b"application/json"),
                                (b"content-length", str(len(body)).encode()),
                            ],
                        }
                    )
                    await send({"type": "http.response.body", "body": body, "more_body": False})
                    return
            except ValueError:
                pass  # Malformed header; let downstream handle it

        await self.app(scope, receive, send)


# ── 3. Redis Sliding-Window Rate Limiter ──────────────────────────────────────


# (path_prefix, requests_allowed, window_seconds)
# More specific prefixes must come before generic ones.
_RATE_RULES: list[tuple[str, int, int]] = [
    ("/dividends/claimable/", 300, 60),  # Read-only, so not caught by the claim rule
    ("/dividends/claim", 30, 60),         # Claims: 30/min per IP
    ("/dividends/revenue", 60, 60),       # Revenue registration and processing
    ("/mover-advantage/", 120, 60),
]
_DEFAULT_RATE: tuple[int, int] = (300, 60)  # 300 req/min default per IP

_SKIP_PATHS: frozenset[str] = frozenset(
    ["/health", "/docs", "/redoc", "/openapi.json", "/favicon.ico"]
)


class RateLimitMiddleware:
    """IP-based sliding-window rate limiter backed by Redis.

    Fails *open* if Redis is unavailable: requests are never blocked due to
    a Redis outage.  Rate-limit headers are added to all passing responses.
    """

    def __init__(self, app: ASGIApp, redis_url: str, enabled: bool = True) -> None:
        self.app = app
        self.enabled = enabled
        self._redis_url = redis_url
        self._redis: aioredis.Redis | None = None

    def _client(self) -> aioredis.Redis:
        if self._redis is None:
            self._redis = aioredis.from_url(
                self._redis_url,
                decode_responses=True,
                socket_connect_timeout=0.5,
                socket_timeout=0.5,
            )
        return self._redis

    @staticmethod
    async def _sliding_window(
        redis: aioredis.Redis,
        key: str,
        limit: int,
        window: int,
    ) -> tuple[bool, int]:
        """Execute sliding-window counter. Returns (allowed, remaining)."""
        now = time.time()
        pipe = redis.pipeline()
        pipe.zadd(key, {str(now): now})
        pipe.zremrangebyscore(key, 0, now - window)
        pipe.zcard(key)
        pipe.expire(key, window + 1)
        results = await pipe.execute()
        count: int = results[2]
        return count <= limit, max(0, limit - count)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not self.enabled:
            await self.app(scope, receive, send)
            return

        path: str = scope.get("path", "")
        if path in _SKIP_PATHS:
            await self.app(scope, receive, send)
            return

        raw_headers: dict[bytes, bytes] = {k: v for k, v in scope.get("headers", [])}

        # Resolve client IP (respect X-Forwarded-For from a trusted proxy)
        xff = raw_headers.get(b"x-forwarded-for", b"").decode()
        ip = xff.split(",")[0].strip() if xff else (scope.get("client") or ["unknown"])[0]

        # Strip /v1 prefix for consistent rule matching
        effective_path = path[3:] if path.startswith("/v1") else path

        limit, window = _DEFAULT_RATE
        bucket: str | None = None
        for prefix, r_lim, r_win in _RATE_RULES:
            if effective_path.startswith(prefix):
                limit, window, bucket = r_lim, r_win, prefix.strip("/")
                break

        allowed = True
        remaining = limit
        try:
            # Each rule has its own bucket; unmatched paths share one per top-level segment
            segment = bucket or (
                effective_path.split("/")[1]
                if "/" in effective_path[1:]
                else effective_path.lstrip("/")
            )
            allowed, remaining = await self._sliding_window(
                self._client(), f"rl:ip:{ip}:{segment}", limit, window
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("rate_limit.redis_error", error=str(exc))

        if not allowed:
            body = json.dumps(
                {"error": "rate_limit_exceeded", "message": "Too many requests. Please slow down."}
            ).encode()
            await send(
                {
                    "type": "http.response.start",
                    "status": 429,
                    "headers": [
                        (b"content-type", b"application/json"),
                        (b"content-length", str(len(body)).encode()),
                        (b"retry-after", str(window).encode()),
                    ],
                }
            )
            await send({"type": "http.response.body", "body": body, "more_body": False})
            return

        async def _send_with_rl_headers(message: dict) -> None:
            if message["type"] == "http.response.start":
                h = MutableHeaders(scope=message)
                h.append("x-ratelimit-limit", str(limit))
                h.append("x-ratelimit-remaining", str(remaining))
                h.append("x-ratelimit-window", str(window))
            await send(message)

        await self.app(scope, receive, _send_with_rl_headers)
