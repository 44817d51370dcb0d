"""
Rate Limiting Middleware - per-client sliding window log with temporary bans.

Each client IP keeps the timestamps of its accepted requests inside the
window. A request arriving with the log full is a violation; enough
violations inside one window ban the IP for ``ban_duration`` seconds.

Standard rate-limit headers:
- X-RateLimit-Limit
- X-RateLimit-Remaining
- X-RateLimit-Reset (on 429)
- Retry-After (on 429)

All middleware follow the apikit async signature:
    async def __call__(self, request, ctx, next) -> Response
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections import deque
from typing import Awaitable, Callable, Deque, Dict, Optional, Tuple, TYPE_CHECKING

from apikit.config import RateLimitConfig
from apikit.faults.domains import RateLimitExceededFault
from apikit.request import Request
from apikit.response import Response

if TYPE_CHECKING:
    from apikit.controller.base import RequestCtx

Handler = Callable[[Request, "RequestCtx"], Awaitable[Response]]

logger = logging.getLogger("apikit.ratelimit")


# ─── Per-client state ────────────────────────────────────────────────────────

class _ClientLog:
    """Accepted request times and violation times for one client."""

    __slots__ = ("requests", "violations", "banned_until")

    def __init__(self):
        self.requests: Deque[float] = deque()
        self.violations: Deque[float] = deque()
        self.banned_until: Optional[float] = None

    def prune(self, now: float, window: float) -> None:
        cutoff = now - window
        while self.requests and self.requests[0] <= cutoff:
            self.requests.popleft()
        while self.violations and self.violations[0] <= cutoff:
            self.violations.popleft()

    def is_idle(self) -> bool:
        return not self.requests and not self.violations and self.banned_until is None


# ─── Rate Limit Middleware ────────────────────────────────────────────────────

class RateLimitMiddleware:
    """
    Sliding-window rate limiting keyed by ``Request.client_ip()``.

    Args:
        config: Limits, window and ban policy
        clock: Monotonic time source in seconds (injectable for tests)
        exempt_paths: Paths never limited
    """

    def __init__(
        self,
        config: RateLimitConfig,
        *,
        clock: Callable[[], float] = time.monotonic,
        exempt_paths: Optional[list] = None,
    ):
        self.config = config
        self._clock = clock
        self._exempt_paths = set(exempt_paths or [])
        self._clients: Dict[str, _ClientLog] = {}
        self._lock = threading.Lock()
        self._last_cleanup = clock()

    async def __call__(
        self,
        request: Request,
        ctx: "RequestCtx",
        next_handler: Handler,
    ) -> Response:
        if request.path in self._exempt_paths:
            return await next_handler(request, ctx)

        ip = request.client_ip()
        allowed, remaining, fault = self.consume(ip)
        if not allowed:
            return self._rate_limited_response(request, fault)

        response = await next_handler(request, ctx)
        response.headers["x-ratelimit-limit"] = str(self.config.max_requests)
        response.headers["x-ratelimit-remaining"] = str(remaining)
        return response

    def consume(self, ip: str) -> Tuple[bool, int, Optional[RateLimitExceededFault]]:
        """
        Account one request from ``ip``.

        Returns ``(allowed, remaining, fault)``; ``fault`` is set when the
        request is rejected.
        """
        config = self.config
        now = self._clock()

        with self._lock:
            self._maybe_cleanup(now)
            client = self._clients.get(ip)
            if client is None:
                client = self._clients[ip] = _ClientLog()

            if client.banned_until is not None:
                if now < client.banned_until:
                    logger.warning("Blocked request from banned IP: %s", ip)
                    return False, 0, RateLimitExceededFault(
                        config.max_requests,
                        config.window,
                        retry_after=client.banned_until - now,
                        banned=True,
                    )
                client.banned_until = None
                client.violations.clear()

            client.prune(now, config.window)

            if len(client.requests) >= config.max_requests:
                logger.warning("Rate limit exceeded for IP: %s", ip)
                client.violations.append(now)

                if len(client.violations) >= config.ban_threshold:
                    client.banned_until = now + config.ban_duration
                    logger.warning("IP banned for %d seconds: %s", int(config.ban_duration), ip)
                    return False, 0, RateLimitExceededFault(
                        config.max_requests,
                        config.window,
                        retry_after=config.ban_duration,
                        banned=True,
                    )

                return False, 0, RateLimitExceededFault(
                    config.max_requests,
                    config.window,
                    retry_after=config.window,
                )

            client.requests.append(now)
            return True, config.max_requests - len(client.requests), None

    def is_banned(self, ip: str) -> bool:
        with self._lock:
            client = self._clients.get(ip)
            return (
                client is not None
                and client.banned_until is not None
                and self._clock() < client.banned_until
            )

    def reset(self, ip: Optional[str] = None) -> None:
        """Forget one client, or every client."""
        with self._lock:
            if ip is None:
                self._clients.clear()
            else:
                self._clients.pop(ip, None)

    def _maybe_cleanup(self, now: float) -> None:
        # Drop idle clients at most once per window
        if now - self._last_cleanup < self.config.window:
            return
        self._last_cleanup = now
        for ip in list(self._clients):
            client = self._clients[ip]
            if client.banned_until is not None and now >= client.banned_until:
                client.banned_until = None
                client.violations.clear()
            client.prune(now, self.config.window)
            if client.is_idle():
                del self._clients[ip]

    def _rate_limited_response(self, request: Request, fault: RateLimitExceededFault) -> Response:
        retry_after = int(math.ceil(fault.details["retry_after"]))
        headers = {
            "retry-after": str(retry_after),
            "x-ratelimit-limit": str(self.config.max_requests),
            "x-ratelimit-remaining": "0",
            "x-ratelimit-reset": str(int(time.time()) + retry_after),
        }
        return Response.from_fault(
            fault,
            request_id=request.state.get("request_id"),
            headers=headers,
        )


__all__ = ["RateLimitMiddleware"]
