"""
apikit faults - Domain-specific fault types.

Provides concrete fault classes for each domain:
- CONFIG faults
- DISCOVERY faults
- ROUTING faults
- REQUEST faults (client input)
- SECURITY faults (authentication / authorization / throttling)
"""

from typing import Any, Optional

from .core import Fault, FaultDomain, Severity


# ============================================================================
# CONFIG Faults
# ============================================================================

class ConfigFault(Fault):
    """Invalid or missing configuration."""

    def __init__(self, message: str, *, code: str = "CONFIG_INVALID", **metadata):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.CONFIG,
            severity=Severity.FATAL,
            metadata=metadata,
        )


# ============================================================================
# DISCOVERY Faults
# ============================================================================

class DiscoveryFault(Fault):
    """A source file or annotation could not be analysed."""

    def __init__(self, message: str, *, file_path: Optional[str] = None, **metadata):
        super().__init__(
            code="DISCOVERY_FAILED",
            message=message,
            domain=FaultDomain.DISCOVERY,
            metadata={"file_path": file_path, **metadata},
        )


# ============================================================================
# ROUTING Faults
# ============================================================================

class RouteNotFoundFault(Fault):
    """No route matches the request path."""

    def __init__(self, method: str, path: str):
        super().__init__(
            code="NOT_FOUND",
            message=f"No route matches {method} {path}",
            domain=FaultDomain.ROUTING,
            status=404,
            public=True,
        )


class MethodNotAllowedFault(Fault):
    """The path exists but not for the requested HTTP method."""

    def __init__(self, method: str, path: str, allowed: list[str]):
        super().__init__(
            code="METHOD_NOT_ALLOWED",
            message=f"Method {method} not allowed for {path}",
            domain=FaultDomain.ROUTING,
            status=405,
            public=True,
            metadata={"allowed": allowed},
        )
        self.allowed = allowed


# ============================================================================
# REQUEST Faults
# ============================================================================

class RequestFault(Fault):
    """Base class for client input errors (400 family)."""

    domain = FaultDomain.REQUEST
    status = 400
    public = True


class MissingParameterFault(RequestFault):
    """A required handler parameter is absent from the request."""

    def __init__(self, name: str, source: str):
        super().__init__(
            code="MISSING_PARAMETER",
            message=f"Required {source} parameter '{name}' is missing",
            details={"parameter": name, "source": source},
        )
        self.parameter = name


class InvalidParameterFault(RequestFault):
    """A handler parameter could not be converted to its declared type."""

    def __init__(self, name: str, source: str, expected: str):
        super().__init__(
            code="INVALID_PARAMETER",
            message=f"Invalid value for {source} parameter '{name}': expected {expected}",
            details={"parameter": name, "source": source, "expected": expected},
        )
        self.parameter = name


class InvalidBodyFault(RequestFault):
    """The request body is not valid JSON."""

    def __init__(self, message: str = "Request body is not valid JSON"):
        super().__init__(code="INVALID_BODY", message=message)


class PayloadTooLargeFault(RequestFault):
    """Request body exceeds the configured maximum size."""

    def __init__(self, max_size: int, actual: int):
        super().__init__(
            code="PAYLOAD_TOO_LARGE",
            message="Request entity too large",
            status=413,
            details={"max_size": max_size},
            metadata={"actual": actual},
        )


# ============================================================================
# SECURITY Faults
# ============================================================================

class SecurityFault(Fault):
    """Base class for authentication and authorization faults."""

    domain = FaultDomain.SECURITY
    public = True


class UnauthorizedFault(SecurityFault):
    """Request lacks a usable JWT."""

    def __init__(self, message: str = "JWT token required", *, code: str = "UNAUTHORIZED"):
        super().__init__(code=code, message=message, status=401)


class InvalidTokenFault(UnauthorizedFault):
    """Token is malformed, badly signed, or expired."""

    def __init__(self, reason: str = "Invalid or expired JWT token"):
        super().__init__("Invalid or expired JWT token")
        # Reason stays server-side
        self.metadata["reason"] = reason


class TokenBlacklistedFault(UnauthorizedFault):
    """Token has been revoked through the blacklist."""

    def __init__(self):
        super().__init__("Token has been revoked", code="TOKEN_BLACKLISTED")


class ForbiddenFault(SecurityFault):
    """Authenticated, but validators denied access."""

    def __init__(self, message: str = "Access denied", *, details: Optional[dict[str, Any]] = None):
        super().__init__(code="FORBIDDEN", message=message, status=403, details=details)


class RateLimitExceededFault(SecurityFault):
    """Rate limit exceeded for client."""

    def __init__(self, limit: int, window: float, retry_after: float, *, banned: bool = False):
        message = (
            "IP temporarily banned"
            if banned
            else f"Rate limit exceeded ({limit} requests per {int(window)}s)"
        )
        super().__init__(
            code="RATE_LIMIT_EXCEEDED",
            message=message,
            status=429,
            details={"retry_after": int(retry_after)},
            metadata={"limit": limit, "window": window, "banned": banned},
        )
