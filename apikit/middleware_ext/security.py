"""
Security Middleware - response hardening headers and request size limits.

All middleware follow the apikit async signature:
    async def __call__(self, request, ctx, next) -> Response
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Dict, Optional, TYPE_CHECKING

from apikit.faults.domains import PayloadTooLargeFault
from apikit.request import Request
from apikit.response import Response

if TYPE_CHECKING:
    from apikit.controller.base import RequestCtx

Handler = Callable[[Request, "RequestCtx"], Awaitable[Response]]

logger = logging.getLogger("apikit.security")


# ═══════════════════════════════════════════════════════════════════════════════
#  Security Headers
# ═══════════════════════════════════════════════════════════════════════════════

DEFAULT_SECURITY_HEADERS: Dict[str, str] = {
    "x-frame-options": "DENY",
    "x-content-type-options": "nosniff",
    "x-xss-protection": "1; mode=block",
    "strict-transport-security": "max-age=31536000; includeSubDomains",
    "content-security-policy": "default-src 'self'",
    "referrer-policy": "strict-origin-when-cross-origin",
    "permissions-policy": "geolocation=(), microphone=(), camera=()",
}


class SecurityHeadersMiddleware:
    """
    Applies OWASP-style security headers to every response.

    Headers already set by a handler are left alone.

    Args:
        overrides: Header values replacing (or, with None, removing)
                   entries of the default set.
    """

    def __init__(self, overrides: Optional[Dict[str, Optional[str]]] = None):
        self._headers: Dict[str, str] = dict(DEFAULT_SECURITY_HEADERS)
        for name, value in (overrides or {}).items():
            if value is None:
                self._headers.pop(name.lower(), None)
            else:
                self._headers[name.lower()] = value

    @property
    def headers(self) -> Dict[str, str]:
        return dict(self._headers)

    async def __call__(
        self, request: Request, ctx: "RequestCtx", next_handler: Handler
    ) -> Response:
        response = await next_handler(request, ctx)

        for name, value in self._headers.items():
            response.headers.setdefault(name, value)

        return response


# ═══════════════════════════════════════════════════════════════════════════════
#  Request Size Limit
# ═══════════════════════════════════════════════════════════════════════════════

class RequestSizeLimitMiddleware:
    """
    Rejects requests whose declared ``Content-Length`` exceeds ``max_bytes``.

    Bodies without a Content-Length are bounded when read (see
    ``Request.body``).
    """

    def __init__(self, max_bytes: int):
        self.max_bytes = max_bytes

    async def __call__(
        self, request: Request, ctx: "RequestCtx", next_handler: Handler
    ) -> Response:
        length = request.content_length()
        if length is not None and length > self.max_bytes:
            logger.warning("Request size limit exceeded: %d bytes", length)
            raise PayloadTooLargeFault(self.max_bytes, length)
        return await next_handler(request, ctx)


__all__ = [
    "DEFAULT_SECURITY_HEADERS",
    "SecurityHeadersMiddleware",
    "RequestSizeLimitMiddleware",
]
