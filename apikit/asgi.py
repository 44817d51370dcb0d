"""
ASGI adapter - Bridges ASGI protocol to apikit's request/response system.

- Middleware chain is built once and cached; ``invalidate()`` forces a
  rebuild after the server changes its middleware.
- Routing runs inside the chain, so 404/405 responses pass through the
  same middleware (request id, error envelope, CORS) as handler results.
"""

from __future__ import annotations

from typing import Any, Callable, Optional
import logging

from .request import Request
from .response import Response
from .middleware import MiddlewareStack, Handler
from .controller.base import RequestCtx
from .controller.engine import ControllerEngine
from .controller.router import Router
from .faults import MethodNotAllowedFault, RouteNotFoundFault


class ASGIAdapter:
    """
    ASGI application adapter.
    Converts ASGI events to apikit Request/Response.
    """

    __slots__ = (
        'router', 'engine', 'middleware_stack', 'server',
        'max_body_size', 'logger', '_cached_middleware_chain',
    )

    def __init__(
        self,
        router: Router,
        engine: ControllerEngine,
        middleware_stack: MiddlewareStack,
        server: Optional[Any] = None,
        *,
        max_body_size: int = 10_485_760,
    ):
        self.router = router
        self.engine = engine
        self.middleware_stack = middleware_stack
        self.server = server
        self.max_body_size = max_body_size
        self.logger = logging.getLogger("apikit.asgi")
        self._cached_middleware_chain: Optional[Handler] = None

    # ------------------------------------------------------------------
    # Middleware chain building (cached)
    # ------------------------------------------------------------------

    def invalidate(self) -> None:
        """Drop the cached chain; the next request rebuilds it."""
        self._cached_middleware_chain = None

    def _build_cached_chain(self) -> Handler:
        async def _final_handler(request: Request, ctx: RequestCtx) -> Response:
            """Route and dispatch to the matched controller method."""
            method = request.method
            path = request.path

            match = self.router.match(method, path)
            if match is None:
                allowed = self.router.allowed_methods(path)
                if allowed:
                    raise MethodNotAllowedFault(method, path, allowed)
                raise RouteNotFoundFault(method, path)

            request.state["route_pattern"] = match.full_path
            return await self.engine.execute(match.route, request, match.params, ctx)

        chain = self.middleware_stack.build_handler(_final_handler)
        self._cached_middleware_chain = chain
        return chain

    # ------------------------------------------------------------------
    # ASGI entry point
    # ------------------------------------------------------------------

    async def __call__(self, scope: dict, receive: Callable, send: Callable):
        scope_type = scope["type"]
        if scope_type == "http":
            await self.handle_http(scope, receive, send)
        elif scope_type == "lifespan":
            await self.handle_lifespan(scope, receive, send)
        else:
            self.logger.warning("Unsupported ASGI scope type: %s", scope_type)

    async def handle_http(self, scope: dict, receive: Callable, send: Callable):
        chain = self._cached_middleware_chain or self._build_cached_chain()

        request = Request(scope, receive, max_body_size=self.max_body_size)
        ctx = RequestCtx(request=request)

        try:
            response = await chain(request, ctx)
        except Exception as e:
            # Only reachable when ExceptionMiddleware is not installed
            self.logger.error("Critical error in request pipeline: %s", e, exc_info=True)
            response = Response.error(
                "INTERNAL_ERROR",
                "Internal server error",
                500,
                request_id=request.state.get("request_id"),
            )

        await response.send_asgi(send)

    async def handle_lifespan(self, scope: dict, receive: Callable, send: Callable):
        """Handle ASGI lifespan events."""
        while True:
            message = await receive()

            if message["type"] == "lifespan.startup":
                try:
                    if self.server is not None:
                        await self.server.startup()
                    self.invalidate()
                    await send({"type": "lifespan.startup.complete"})
                except Exception as e:
                    self.logger.error("Startup error: %s", e, exc_info=True)
                    await send({"type": "lifespan.startup.failed", "message": str(e)})
                    raise

            elif message["type"] == "lifespan.shutdown":
                try:
                    if self.server is not None:
                        await self.server.shutdown()
                    await send({"type": "lifespan.shutdown.complete"})
                except Exception as e:
                    self.logger.error("Shutdown error: %s", e, exc_info=True)
                    await send({"type": "lifespan.shutdown.failed", "message": str(e)})
                break
