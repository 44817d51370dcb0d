"""
JWT middleware - token extraction and access logging.

``JWTExtractionMiddleware`` only establishes identity: it decodes the
bearer token and stores the payload in ``request.state``. Whether a route
needs that identity is decided later by the route's JWTGuard.
"""

from __future__ import annotations

from typing import Iterable, Optional, TYPE_CHECKING
import logging

from ..faults import InvalidTokenFault, TokenBlacklistedFault, UnauthorizedFault
from .blacklist import TokenBlacklist
from .tokens import TokenCodec

if TYPE_CHECKING:
    from ..controller.base import RequestCtx
    from ..middleware import Handler
    from ..request import Request
    from ..response import Response

logger = logging.getLogger("apikit.auth.jwt")
access_logger = logging.getLogger("apikit.auth.access")

DEFAULT_EXCLUDE_PATHS = ("/api/auth", "/api/public", "/health")


class JWTExtractionMiddleware:
    """
    Decodes ``Authorization: Bearer <token>`` into ``request.state``.

    - path under an excluded prefix: untouched
    - no bearer header: ``jwt_payload`` is None, request continues
    - empty token: 401 "Invalid JWT token format"
    - undecodable, badly signed or expired token: 401
    - revoked token: 401 TOKEN_BLACKLISTED

    On success ``jwt_payload``, ``user_id``, ``user_email`` and
    ``user_role`` are set.
    """

    def __init__(
        self,
        codec: TokenCodec,
        blacklist: Optional[TokenBlacklist] = None,
        exclude_paths: Iterable[str] = DEFAULT_EXCLUDE_PATHS,
    ):
        self.codec = codec
        self.blacklist = blacklist if blacklist is not None else TokenBlacklist()
        self.exclude_paths = tuple(exclude_paths)

    def is_excluded(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in self.exclude_paths)

    async def __call__(self, request: "Request", ctx: "RequestCtx", next: "Handler") -> "Response":
        request_id = request.state.get("request_id", "unknown")
        path = request.path

        if self.is_excluded(path):
            logger.debug("[%s] JWT extraction skipped for excluded path: %s", request_id, path)
            return await next(request, ctx)

        token = request.bearer_token()
        if token is None:
            logger.debug("[%s] No Bearer token found in Authorization header", request_id)
            request.state["jwt_payload"] = None
            return await next(request, ctx)

        if not token:
            logger.warning("[%s] Empty JWT token provided", request_id)
            raise UnauthorizedFault("Invalid JWT token format")

        try:
            payload = self.codec.decode(token)
        except InvalidTokenFault as e:
            logger.warning("[%s] JWT validation failed: %s", request_id, e.metadata.get("reason"))
            raise

        if token in self.blacklist:
            logger.warning("[%s] Blacklisted token attempted access", request_id)
            raise TokenBlacklistedFault()

        logger.info(
            "[%s] JWT validated successfully for user: %s",
            request_id, payload.get("user_id", "unknown"),
        )
        request.state["jwt_payload"] = payload
        request.state["user_id"] = payload.get("user_id")
        request.state["user_email"] = payload.get("email")
        request.state["user_role"] = payload.get("role")
        return await next(request, ctx)


class JWTAccessLogMiddleware:
    """Access line per authenticated request."""

    async def __call__(self, request: "Request", ctx: "RequestCtx", next: "Handler") -> "Response":
        response = await next(request, ctx)

        payload = request.state.get("jwt_payload")
        if payload is not None:
            access_logger.info(
                "[%s] JWT Access: %s (%s) -> %s %s - %d",
                request.state.get("request_id", "unknown"),
                payload.get("user_id", "unknown"),
                payload.get("role", "unknown"),
                request.method,
                request.path,
                response.status,
            )
        return response
