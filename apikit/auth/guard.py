"""
JWT guard - wraps route handlers with their resolved policy.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, TYPE_CHECKING
import functools
import logging

from ..faults import ForbiddenFault, UnauthorizedFault
from .evaluator import evaluate_detailed
from .policy import BasicAuthOnlyPolicy, JWTPolicy, PublicPolicy, ValidatedPolicy

if TYPE_CHECKING:
    from ..request import Request

logger = logging.getLogger("apikit.auth.jwt")

RouteHandler = Callable[..., Awaitable[Any]]


class JWTGuard:
    """
    Applies a JWTPolicy in front of a route handler.

    The wrapped handler has the same signature as the original and takes
    the request as its first argument. ``enabled`` is read per request,
    so disabling JWT on the server turns every policy public at once.
    """

    def __init__(self, enabled: Callable[[], bool] = lambda: True):
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        return self._enabled()

    def wrap(
        self,
        handler: RouteHandler,
        policy: JWTPolicy,
        controller_name: str,
        method_name: str,
    ) -> RouteHandler:
        endpoint = f"{controller_name}.{method_name}"

        if isinstance(policy, PublicPolicy):
            @functools.wraps(handler)
            async def public(request: "Request", *args, **kwargs):
                logger.debug("[%s] Public endpoint %s", request.state.get("request_id", "unknown"), endpoint)
                return await handler(request, *args, **kwargs)
            return public

        async def guarded(request: "Request", *args, **kwargs):
            if self.enabled:
                self.check(request, policy, endpoint)
            return await handler(request, *args, **kwargs)

        return functools.wraps(handler)(guarded)

    def check(self, request: "Request", policy: JWTPolicy, endpoint: str) -> None:
        """
        Raise UnauthorizedFault / ForbiddenFault when ``policy`` denies
        the request.
        """
        if isinstance(policy, PublicPolicy):
            return

        request_id = request.state.get("request_id", "unknown")
        payload = request.state.get("jwt_payload")
        if payload is None:
            logger.warning("[%s] JWT payload not found for %s", request_id, endpoint)
            raise UnauthorizedFault("JWT token required")

        if isinstance(policy, BasicAuthOnlyPolicy):
            return

        if isinstance(policy, ValidatedPolicy):
            outcome = evaluate_detailed(request, payload, policy.validators, policy.require_all)
            if not outcome.is_success:
                logger.warning(
                    "[%s] JWT validation failed for %s: %s",
                    request_id, endpoint, outcome.result.error_message,
                )
                raise ForbiddenFault(
                    outcome.result.error_message,
                    details={
                        "validation_mode": policy.validation_mode,
                        "validators_count": len(policy.validators),
                        "failed_validations": outcome.failed_reasons,
                    },
                )
            logger.info("[%s] JWT validation successful for %s", request_id, endpoint)
            return

        # Unknown policy objects never grant access
        raise UnauthorizedFault("JWT token required")
