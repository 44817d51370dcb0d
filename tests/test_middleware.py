"""
Middleware stack and the default middleware implementations.
"""

import json
import logging
from unittest.mock import MagicMock

import pytest

from apikit.faults import ForbiddenFault, MethodNotAllowedFault
from apikit.middleware import (
    CORSMiddleware,
    ExceptionMiddleware,
    LoggingMiddleware,
    MiddlewareStack,
    RequestIdMiddleware,
)
from apikit.config import CorsConfig
from apikit.response import Response
from apikit.testing import make_test_ctx, make_test_request


async def ok_handler(request, ctx):
    return Response.json({"ok": True})


# ============================================================================
# MiddlewareStack
# ============================================================================

class TestMiddlewareStack:

    def test_init(self):
        assert MiddlewareStack().middlewares == []

    def test_name_defaults_to_function_name(self):
        stack = MiddlewareStack()

        async def audit(request, ctx, next_handler):
            return await next_handler(request, ctx)

        stack.add(audit)
        assert stack.names() == ["audit"]

    def test_priority_order(self):
        stack = MiddlewareStack()
        stack.add(MagicMock(), priority=50, name="late")
        stack.add(MagicMock(), priority=1, name="early")
        stack.add(MagicMock(), priority=50, name="late_second")
        assert stack.names() == ["early", "late", "late_second"]

    def test_scope_order(self):
        stack = MiddlewareStack()
        stack.add(MagicMock(), scope="route:/x", priority=1, name="route")
        stack.add(MagicMock(), scope="global", priority=99, name="global")
        stack.add(MagicMock(), scope="controller:Users", priority=1, name="controller")
        assert stack.names() == ["global", "controller", "route"]

    def test_remove(self):
        stack = MiddlewareStack()
        stack.add(MagicMock(), name="a")
        stack.add(MagicMock(), name="b")
        assert stack.remove("a") is True
        assert stack.remove("a") is False
        assert stack.names() == ["b"]

    @pytest.mark.asyncio
    async def test_build_handler_order(self):
        stack = MiddlewareStack()
        calls = []

        def make(name):
            async def mw(request, ctx, next_handler):
                calls.append(f"{name}_before")
                response = await next_handler(request, ctx)
                calls.append(f"{name}_after")
                return response
            return mw

        async def handler(request, ctx):
            calls.append("handler")
            return "ok"

        stack.add(make("inner"), priority=20)
        stack.add(make("outer"), priority=10)
        result = await stack.build_handler(handler)(MagicMock(), MagicMock())

        assert result == "ok"
        assert calls == ["outer_before", "inner_before", "handler", "inner_after", "outer_after"]

    @pytest.mark.asyncio
    async def test_short_circuit(self):
        stack = MiddlewareStack()

        async def gate(request, ctx, next_handler):
            return Response.text("blocked", status=418)

        stack.add(gate)
        handler = MagicMock()
        response = await stack.build_handler(handler)(MagicMock(), MagicMock())
        assert response.status == 418
        handler.assert_not_called()


# ============================================================================
# RequestIdMiddleware
# ============================================================================

class TestRequestIdMiddleware:

    @pytest.mark.asyncio
    async def test_generates_id(self):
        request = make_test_request()
        ctx = make_test_ctx(request)
        response = await RequestIdMiddleware()(request, ctx, ok_handler)

        request_id = request.state["request_id"]
        assert len(request_id) == 32
        assert ctx.request_id == request_id
        assert response.headers["x-request-id"] == request_id

    @pytest.mark.asyncio
    async def test_honours_incoming_header(self):
        request = make_test_request(headers=[("X-Request-ID", "client-supplied")])
        response = await RequestIdMiddleware()(request, make_test_ctx(request), ok_handler)
        assert response.headers["x-request-id"] == "client-supplied"

    @pytest.mark.asyncio
    async def test_ids_are_unique(self):
        ids = set()
        for _ in range(5):
            request = make_test_request()
            await RequestIdMiddleware()(request, make_test_ctx(request), ok_handler)
            ids.add(request.state["request_id"])
        assert len(ids) == 5


# ============================================================================
# ExceptionMiddleware
# ============================================================================

class TestExceptionMiddleware:

    @pytest.mark.asyncio
    async def test_passthrough(self):
        request = make_test_request()
        response = await ExceptionMiddleware()(request, make_test_ctx(request), ok_handler)
        assert response.status == 200

    @pytest.mark.asyncio
    async def test_fault_rendered(self):
        async def handler(request, ctx):
            raise ForbiddenFault("User must be an administrator")

        request = make_test_request(state={"request_id": "rid"})
        response = await ExceptionMiddleware()(request, make_test_ctx(request), handler)
        body = json.loads(response.body)

        assert response.status == 403
        assert body["error"]["code"] == "FORBIDDEN"
        assert body["error"]["message"] == "User must be an administrator"
        assert body["request_id"] == "rid"

    @pytest.mark.asyncio
    async def test_method_not_allowed_sets_allow(self):
        async def handler(request, ctx):
            raise MethodNotAllowedFault("POST", "/x", ["GET", "PUT"])

        request = make_test_request()
        response = await ExceptionMiddleware()(request, make_test_ctx(request), handler)
        assert response.status == 405
        assert response.headers["allow"] == "GET, PUT"

    @pytest.mark.asyncio
    async def test_unexpected_error_is_generic_500(self, caplog):
        async def handler(request, ctx):
            raise ValueError("secret internals")

        request = make_test_request(state={"request_id": "rid"})
        with caplog.at_level(logging.ERROR, logger="apikit.exceptions"):
            response = await ExceptionMiddleware()(request, make_test_ctx(request), handler)

        body = json.loads(response.body)
        assert response.status == 500
        assert body["error"]["code"] == "INTERNAL_ERROR"
        assert "secret internals" not in response.body.decode()
        assert any("rid" in record.getMessage() for record in caplog.records)


# ============================================================================
# LoggingMiddleware
# ============================================================================

class TestLoggingMiddleware:

    @pytest.mark.asyncio
    async def test_logs_request_line(self, caplog):
        request = make_test_request("GET", "/api/users", state={"request_id": "rid"})
        with caplog.at_level(logging.INFO, logger="apikit.requests"):
            await LoggingMiddleware()(request, make_test_ctx(request), ok_handler)
        messages = [r.getMessage() for r in caplog.records if r.name == "apikit.requests"]
        assert any(m.startswith("GET /api/users - 200") and "rid" in m for m in messages)

    @pytest.mark.asyncio
    async def test_slow_request_warning(self, caplog):
        request = make_test_request()
        with caplog.at_level(logging.INFO, logger="apikit.requests"):
            await LoggingMiddleware(slow_threshold_ms=-1)(request, make_test_ctx(request), ok_handler)
        assert any(r.levelno == logging.WARNING and "Slow request" in r.getMessage() for r in caplog.records)


# ============================================================================
# CORSMiddleware
# ============================================================================

class TestCORSMiddleware:

    @pytest.mark.asyncio
    async def test_preflight(self):
        cors = CORSMiddleware(allow_origins=["https://app.example"], allow_methods=["GET", "POST"])
        request = make_test_request("OPTIONS", "/api/users", headers=[("origin", "https://app.example")])
        handler = MagicMock()
        response = await cors(request, make_test_ctx(request), handler)

        assert response.status == 204
        assert response.headers["access-control-allow-origin"] == "https://app.example"
        assert response.headers["access-control-allow-methods"] == "GET, POST"
        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_wildcard_without_credentials(self):
        cors = CORSMiddleware.from_config(CorsConfig.development())
        request = make_test_request(headers=[("origin", "https://any.example")])
        response = await cors(request, make_test_ctx(request), ok_handler)
        assert response.headers["access-control-allow-origin"] == "*"
        assert "access-control-allow-credentials" not in response.headers

    @pytest.mark.asyncio
    async def test_disallowed_origin(self):
        cors = CORSMiddleware.from_config(CorsConfig.production())
        request = make_test_request(headers=[("origin", "https://evil.example")])
        response = await cors(request, make_test_ctx(request), ok_handler)
        assert "access-control-allow-origin" not in response.headers
        assert response.headers["access-control-allow-credentials"] == "true"
