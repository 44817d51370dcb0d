"""
Middleware pipeline for apikit.

Every middleware is an async callable ``(request, ctx, next) -> Response``.
``MiddlewareStack`` orders them by scope, then priority, and folds them
around the router dispatch.
"""

from __future__ import annotations

from typing import Callable, Awaitable, Optional, List, TYPE_CHECKING
from dataclasses import dataclass
import logging
import os
import time

from .request import Request
from .response import Response
from .faults import Fault

if TYPE_CHECKING:
    from .config import CorsConfig
    from .controller.base import RequestCtx

Handler = Callable[[Request, "RequestCtx"], Awaitable[Response]]
Middleware = Callable[[Request, "RequestCtx", Handler], Awaitable[Response]]

_SCOPE_RANK = {"global": 0, "controller": 1, "route": 2}


@dataclass
class MiddlewareEntry:
    """One registered middleware."""
    middleware: Middleware
    scope: str  # "global", "controller:<name>" or "route:<pattern>"
    priority: int
    name: str

    @property
    def rank(self) -> tuple:
        return (_SCOPE_RANK.get(self.scope.split(":", 1)[0], 99), self.priority)


class MiddlewareStack:
    """
    Ordered middleware registry.

    Global middleware runs outside controller middleware, which runs
    outside route middleware; inside a scope a lower priority is outer.
    Entries with equal rank keep registration order.
    """

    def __init__(self):
        self.middlewares: List[MiddlewareEntry] = []
        self._dirty = False

    def add(
        self,
        middleware: Middleware,
        scope: str = "global",
        priority: int = 50,
        name: Optional[str] = None,
    ):
        """Register ``middleware``; ``name`` defaults to its function or class name."""
        if name is None:
            name = getattr(middleware, "__name__", type(middleware).__name__)
        self.middlewares.append(MiddlewareEntry(middleware, scope, priority, name))
        self._dirty = True

    def remove(self, name: str) -> bool:
        """Drop every entry registered as ``name``; True when one existed."""
        kept = [entry for entry in self.middlewares if entry.name != name]
        removed = len(kept) != len(self.middlewares)
        self.middlewares = kept
        return removed

    def names(self) -> List[str]:
        """Middleware names, outermost first."""
        return [entry.name for entry in self._ordered()]

    def _ordered(self) -> List[MiddlewareEntry]:
        if self._dirty:
            self.middlewares.sort(key=lambda entry: entry.rank)
            self._dirty = False
        return self.middlewares

    def build_handler(self, final_handler: Handler) -> Handler:
        """Compose the stack around ``final_handler``."""
        handler = final_handler
        for entry in reversed(self._ordered()):
            handler = _chain(entry.middleware, handler)
        return handler


def _chain(middleware: Middleware, next_handler: Handler) -> Handler:
    async def call(request: Request, ctx: RequestCtx) -> Response:
        return await middleware(request, ctx, next_handler)

    return call


class RequestIdMiddleware:
    """
    Tags each request with an id.

    A client-supplied ``X-Request-ID`` is reused; otherwise a random
    32-character hex id is minted. The id lands in ``request.state``, on
    the context and on the response.
    """

    def __init__(self, header_name: str = "X-Request-ID"):
        self.header_name = header_name.lower()

    async def __call__(self, request: Request, ctx: RequestCtx, next: Handler) -> Response:
        request_id = request.header(self.header_name) or os.urandom(16).hex()
        request.state["request_id"] = request_id
        ctx.request_id = request_id

        response = await next(request, ctx)
        response.headers[self.header_name] = request_id
        return response


class ExceptionMiddleware:
    """
    Turns raised exceptions into error envelopes.

    Faults render with their own status and code. Anything else is an
    unexpected error: logged with traceback and request id, answered with
    a generic 500 that carries no detail.
    """

    def __init__(self):
        self.logger = logging.getLogger("apikit.exceptions")

    async def __call__(self, request: Request, ctx: RequestCtx, next: Handler) -> Response:
        request_id = request.state.get("request_id")
        try:
            return await next(request, ctx)

        except Fault as e:
            if e.status >= 500:
                self.logger.error("Fault %s: %s [request_id=%s]", e.code, e.message, request_id)
            else:
                self.logger.warning("Fault %s: %s [request_id=%s]", e.code, e.message, request_id)

            headers = None
            if e.status == 405 and e.metadata.get("allowed"):
                headers = {"allow": ", ".join(e.metadata["allowed"])}
            return Response.from_fault(e, request_id=request_id, headers=headers)

        except Exception as e:
            self.logger.error(
                "Unhandled exception: %s [request_id=%s]", e, request_id, exc_info=True,
            )
            return Response.error(
                "INTERNAL_ERROR",
                "Internal server error",
                500,
                request_id=request_id,
            )


class LoggingMiddleware:
    """
    One INFO line per request with status and duration; a WARNING when the
    request took longer than ``slow_threshold_ms``.
    """

    def __init__(self, slow_threshold_ms: float = 1000.0):
        self.logger = logging.getLogger("apikit.requests")
        self.slow_threshold_ms = slow_threshold_ms

    async def __call__(self, request: Request, ctx: RequestCtx, next: Handler) -> Response:
        if not self.logger.isEnabledFor(logging.INFO):
            return await next(request, ctx)

        started = time.perf_counter()
        response = await next(request, ctx)
        duration_ms = (time.perf_counter() - started) * 1000.0

        self.logger.info(
            "%s %s - %d (%.1fms) [request_id=%s]",
            request.method, request.path, response.status, duration_ms,
            request.state.get("request_id"),
        )
        if duration_ms > self.slow_threshold_ms:
            self.logger.warning(
                "Slow request: %s %s took %.1fms (threshold %.0fms)",
                request.method, request.path, duration_ms, self.slow_threshold_ms,
            )
        return response


class CORSMiddleware:
    """
    Cross-origin resource sharing.

    OPTIONS requests are answered here with 204 and never reach the
    router. Other responses get ``Access-Control-Allow-Origin`` when the
    request's ``Origin`` is allowed.
    """

    def __init__(
        self,
        allow_origins: Optional[List[str]] = None,
        allow_methods: Optional[List[str]] = None,
        allow_headers: Optional[List[str]] = None,
        allow_credentials: bool = False,
        max_age: int = 3600,
    ):
        self.allow_origins = ["*"] if allow_origins is None else list(allow_origins)
        self.allow_methods = list(allow_methods or ("GET", "POST", "PUT", "DELETE", "OPTIONS"))
        self.allow_headers = list(allow_headers or ("*",))
        self.allow_credentials = allow_credentials
        self.max_age = max_age

    @classmethod
    def from_config(cls, config: "CorsConfig") -> "CORSMiddleware":
        return cls(
            allow_origins=config.allowed_origins,
            allow_methods=config.allowed_methods,
            allow_headers=config.allowed_headers,
            allow_credentials=config.credentials,
        )

    async def __call__(self, request: Request, ctx: RequestCtx, next: Handler) -> Response:
        if request.method == "OPTIONS":
            headers = {
                "access-control-allow-methods": ", ".join(self.allow_methods),
                "access-control-allow-headers": ", ".join(self.allow_headers),
                "access-control-max-age": str(self.max_age),
            }
            headers.update(self.origin_headers(request.header("origin")))
            return Response(b"", status=204, headers=headers)

        response = await next(request, ctx)
        response.headers.update(self.origin_headers(request.header("origin")))
        return response

    def origin_headers(self, origin: Optional[str]) -> dict:
        """CORS response headers for a request from ``origin``."""
        headers = {}
        wildcard = "*" in self.allow_origins
        if origin and (wildcard or origin in self.allow_origins):
            # a credentialed response cannot use "*"
            headers["access-control-allow-origin"] = (
                "*" if wildcard and not self.allow_credentials else origin
            )
        if self.allow_credentials:
            headers["access-control-allow-credentials"] = "true"
        return headers
