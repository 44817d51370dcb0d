"""
Security headers, request size limits and rate limiting.
"""

import json

import pytest

from apikit.config import RateLimitConfig
from apikit.faults import PayloadTooLargeFault
from apikit.middleware_ext.rate_limit import RateLimitMiddleware
from apikit.middleware_ext.security import (
    DEFAULT_SECURITY_HEADERS,
    RequestSizeLimitMiddleware,
    SecurityHeadersMiddleware,
)
from apikit.response import Response
from apikit.testing import make_test_ctx, make_test_request


async def ok_handler(request, ctx):
    return Response.json({"ok": True})


async def framing_handler(request, ctx):
    return Response.json({"ok": True}, headers={"x-frame-options": "SAMEORIGIN"})


class FakeClock:

    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


# ============================================================================
# SecurityHeadersMiddleware
# ============================================================================

class TestSecurityHeaders:

    @pytest.mark.asyncio
    async def test_defaults_applied(self):
        request = make_test_request()
        response = await SecurityHeadersMiddleware()(request, make_test_ctx(request), ok_handler)

        for name, value in DEFAULT_SECURITY_HEADERS.items():
            assert response.headers[name] == value
        assert response.headers["x-frame-options"] == "DENY"
        assert response.headers["strict-transport-security"] == "max-age=31536000; includeSubDomains"

    @pytest.mark.asyncio
    async def test_handler_headers_win(self):
        request = make_test_request()
        response = await SecurityHeadersMiddleware()(request, make_test_ctx(request), framing_handler)
        assert response.headers["x-frame-options"] == "SAMEORIGIN"

    def test_overrides(self):
        middleware = SecurityHeadersMiddleware({
            "Content-Security-Policy": "default-src 'none'",
            "Permissions-Policy": None,
        })
        assert middleware.headers["content-security-policy"] == "default-src 'none'"
        assert "permissions-policy" not in middleware.headers
        assert "permissions-policy" in DEFAULT_SECURITY_HEADERS


# ============================================================================
# RequestSizeLimitMiddleware
# ============================================================================

class TestRequestSizeLimit:

    @pytest.mark.asyncio
    async def test_within_limit(self):
        request = make_test_request("POST", "/", json={"a": 1})
        response = await RequestSizeLimitMiddleware(1024)(request, make_test_ctx(request), ok_handler)
        assert response.status == 200

    @pytest.mark.asyncio
    async def test_over_limit(self):
        request = make_test_request("POST", "/", json={"data": "x" * 200})
        with pytest.raises(PayloadTooLargeFault) as exc:
            await RequestSizeLimitMiddleware(100)(request, make_test_ctx(request), ok_handler)
        assert exc.value.status == 413
        assert exc.value.details == {"max_size": 100}

    @pytest.mark.asyncio
    async def test_no_content_length(self):
        request = make_test_request("GET", "/")
        response = await RequestSizeLimitMiddleware(0)(request, make_test_ctx(request), ok_handler)
        assert response.status == 200


# ============================================================================
# RateLimitMiddleware
# ============================================================================

class TestRateLimit:

    def setup_method(self):
        self.clock = FakeClock()
        self.config = RateLimitConfig(
            max_requests=2,
            window=60.0,
            max_requests_per_ip=10,
            ban_threshold=2,
            ban_duration=300.0,
        )
        self.middleware = RateLimitMiddleware(self.config, clock=self.clock)

    async def call(self, path="/api/users", ip=None):
        headers = [("x-forwarded-for", ip)] if ip else []
        request = make_test_request("GET", path, headers=headers, state={"request_id": "rid"})
        return await self.middleware(request, make_test_ctx(request), ok_handler)

    @pytest.mark.asyncio
    async def test_allowed_with_headers(self):
        first = await self.call()
        second = await self.call()

        assert first.status == 200
        assert first.headers["x-ratelimit-limit"] == "2"
        assert first.headers["x-ratelimit-remaining"] == "1"
        assert second.headers["x-ratelimit-remaining"] == "0"

    @pytest.mark.asyncio
    async def test_limit_exceeded(self):
        await self.call()
        await self.call()
        response = await self.call()

        assert response.status == 429
        assert response.headers["retry-after"] == "60"
        assert response.headers["x-ratelimit-remaining"] == "0"
        assert "x-ratelimit-reset" in response.headers
        assert response.headers["x-request-id"] == "rid"

        body = json.loads(response.body)
        assert body["success"] is False
        assert body["error"]["code"] == "RATE_LIMIT_EXCEEDED"
        assert body["error"]["message"] == "Rate limit exceeded (2 requests per 60s)"
        assert body["error"]["details"] == {"retry_after": 60}

    @pytest.mark.asyncio
    async def test_window_slides(self):
        await self.call()
        await self.call()
        self.clock.advance(61)
        assert (await self.call()).status == 200

    @pytest.mark.asyncio
    async def test_ban_after_repeated_violations(self):
        await self.call()
        await self.call()
        await self.call()
        banned = await self.call()

        assert banned.status == 429
        assert banned.headers["retry-after"] == "300"
        assert json.loads(banned.body)["error"]["message"] == "IP temporarily banned"
        assert self.middleware.is_banned("127.0.0.1")

        # still banned after the window has passed
        self.clock.advance(120)
        assert (await self.call()).status == 429

    @pytest.mark.asyncio
    async def test_ban_expires(self):
        for _ in range(4):
            await self.call()
        self.clock.advance(301)

        assert not self.middleware.is_banned("127.0.0.1")
        assert (await self.call()).status == 200

    @pytest.mark.asyncio
    async def test_clients_are_independent(self):
        await self.call(ip="10.0.0.1")
        await self.call(ip="10.0.0.1")
        assert (await self.call(ip="10.0.0.1")).status == 429
        assert (await self.call(ip="10.0.0.2")).status == 200

    @pytest.mark.asyncio
    async def test_exempt_paths(self):
        middleware = RateLimitMiddleware(self.config, clock=self.clock, exempt_paths=["/health"])
        request = make_test_request("GET", "/health")
        for _ in range(5):
            response = await middleware(request, make_test_ctx(request), ok_handler)
            assert response.status == 200
            assert "x-ratelimit-limit" not in response.headers

    @pytest.mark.asyncio
    async def test_reset(self):
        await self.call()
        await self.call()
        self.middleware.reset("127.0.0.1")
        assert (await self.call()).status == 200

        await self.call()
        self.middleware.reset()
        assert (await self.call()).status == 200

    def test_consume(self):
        assert self.middleware.consume("1.2.3.4")[:2] == (True, 1)
        assert self.middleware.consume("1.2.3.4")[:2] == (True, 0)
        allowed, remaining, fault = self.middleware.consume("1.2.3.4")
        assert (allowed, remaining) == (False, 0)
        assert fault.status == 429
        assert fault.metadata["banned"] is False
