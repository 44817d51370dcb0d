"""
apikit faults - structured error handling.

Every error the framework renders for a client is a Fault subclass; the
exception middleware is the single place where anything else becomes a 500.
"""

from .core import Fault, FaultDomain, Severity
from .domains import (
    ConfigFault,
    DiscoveryFault,
    RouteNotFoundFault,
    MethodNotAllowedFault,
    RequestFault,
    MissingParameterFault,
    InvalidParameterFault,
    InvalidBodyFault,
    PayloadTooLargeFault,
    SecurityFault,
    UnauthorizedFault,
    InvalidTokenFault,
    TokenBlacklistedFault,
    ForbiddenFault,
    RateLimitExceededFault,
)

__all__ = [
    "Fault",
    "FaultDomain",
    "Severity",
    "ConfigFault",
    "DiscoveryFault",
    "RouteNotFoundFault",
    "MethodNotAllowedFault",
    "RequestFault",
    "MissingParameterFault",
    "InvalidParameterFault",
    "InvalidBodyFault",
    "PayloadTooLargeFault",
    "SecurityFault",
    "UnauthorizedFault",
    "InvalidTokenFault",
    "TokenBlacklistedFault",
    "ForbiddenFault",
    "RateLimitExceededFault",
]
