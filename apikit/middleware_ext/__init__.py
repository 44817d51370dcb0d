"""
apikit Extended Middleware.

Security:
- SecurityHeadersMiddleware: OWASP response headers
- RequestSizeLimitMiddleware: Content-Length ceiling (413)

Rate Limiting:
- RateLimitMiddleware: Sliding window log per client IP with temporary bans
"""

from .security import (
    DEFAULT_SECURITY_HEADERS,
    SecurityHeadersMiddleware,
    RequestSizeLimitMiddleware,
)
from .rate_limit import RateLimitMiddleware

__all__ = [
    "DEFAULT_SECURITY_HEADERS",
    "SecurityHeadersMiddleware",
    "RequestSizeLimitMiddleware",
    "RateLimitMiddleware",
]
