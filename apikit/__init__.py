"""
apikit - annotation-driven REST APIs with JWT authorization

- Controllers: ``@RestController`` classes with ``@Get``/``@Post``/...
  methods and ``Annotated`` parameter markers
- Auth: ``@JWTPublic``, ``@JWTController``, ``@JWTEndpoint`` with
  composable validators (AND / OR) and a token blacklist
- Server: ASGI application with request ids, structured error envelopes,
  security headers, rate limiting and CORS
"""

__version__ = "0.1.0"

# ============================================================================
# Core
# ============================================================================

from .config import ConfigLoader, CorsConfig, RateLimitConfig, ServerConfig
from .request import Request
from .response import ApiResponse, Response
from .server import ApiServer

# ============================================================================
# Controllers
# ============================================================================

from .controller import (
    Controller,
    RequestCtx,
    RestController,
    Get,
    Post,
    Put,
    Patch,
    Delete,
    PathParam,
    QueryParam,
    RequestHeader,
    RequestBody,
    RequestContext,
    RequestMethod,
    RequestPath,
    RequestHost,
    RequestUrl,
)

# ============================================================================
# Auth
# ============================================================================

from .auth import (
    JWTPublic,
    JWTController,
    JWTEndpoint,
    Validator,
    ValidationResult,
    AdminValidator,
    FinancialValidator,
    DepartmentValidator,
    BusinessHoursValidator,
    TokenCodec,
    TokenBlacklist,
)

# ============================================================================
# Faults
# ============================================================================

from .faults import (
    Fault,
    ConfigFault,
    UnauthorizedFault,
    ForbiddenFault,
    MissingParameterFault,
    InvalidParameterFault,
)

__all__ = [
    "__version__",
    "ConfigLoader",
    "CorsConfig",
    "RateLimitConfig",
    "ServerConfig",
    "Request",
    "Response",
    "ApiResponse",
    "ApiServer",
    "Controller",
    "RequestCtx",
    "RestController",
    "Get",
    "Post",
    "Put",
    "Patch",
    "Delete",
    "PathParam",
    "QueryParam",
    "RequestHeader",
    "RequestBody",
    "RequestContext",
    "RequestMethod",
    "RequestPath",
    "RequestHost",
    "RequestUrl",
    "JWTPublic",
    "JWTController",
    "JWTEndpoint",
    "Validator",
    "ValidationResult",
    "AdminValidator",
    "FinancialValidator",
    "DepartmentValidator",
    "BusinessHoursValidator",
    "TokenCodec",
    "TokenBlacklist",
    "Fault",
    "ConfigFault",
    "UnauthorizedFault",
    "ForbiddenFault",
    "MissingParameterFault",
    "InvalidParameterFault",
]
