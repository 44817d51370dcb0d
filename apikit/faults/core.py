"""
apikit faults - Core types and fault taxonomy.

Defines:
- Fault base class (structured fault objects)
- FaultDomain (explicit fault domains)
- Severity levels
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


# ============================================================================
# Severity & Domain
# ============================================================================

class Severity(str, Enum):
    """
    Fault severity levels.

    Determines the logging level used when the fault is reported.
    """
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"


class FaultDomain:
    """
    Fault domains (taxonomy).

    Area of the framework a fault belongs to.
    """

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.value = name
        self.description = description

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"FaultDomain(name='{self.name}')"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, FaultDomain):
            return self.name == other.name
        return str(self) == str(other)

    def __hash__(self) -> int:
        return hash(self.name)


# Standard Domains
FaultDomain.CONFIG = FaultDomain("config", "Configuration errors")
FaultDomain.DISCOVERY = FaultDomain("discovery", "Annotation discovery errors")
FaultDomain.ROUTING = FaultDomain("routing", "Route matching errors")
FaultDomain.REQUEST = FaultDomain("request", "Malformed client input")
FaultDomain.SECURITY = FaultDomain("security", "Authentication and authorization")
FaultDomain.FLOW = FaultDomain("flow", "Handler execution errors")
FaultDomain.SYSTEM = FaultDomain("system", "System level faults")


DOMAIN_DEFAULTS = {
    FaultDomain.CONFIG: {"severity": Severity.FATAL, "status": 500},
    FaultDomain.DISCOVERY: {"severity": Severity.WARN, "status": 500},
    FaultDomain.ROUTING: {"severity": Severity.WARN, "status": 404},
    FaultDomain.REQUEST: {"severity": Severity.WARN, "status": 400},
    FaultDomain.SECURITY: {"severity": Severity.WARN, "status": 403},
    FaultDomain.FLOW: {"severity": Severity.ERROR, "status": 500},
    FaultDomain.SYSTEM: {"severity": Severity.FATAL, "status": 500},
}


# ============================================================================
# Fault - Base Class
# ============================================================================

class Fault(Exception):
    """
    Root of every error apikit raises on purpose.

    A fault carries everything needed to render an error response:

    Attributes:
        code: Stable machine-readable identifier (e.g., "UNAUTHORIZED")
        message: Human-readable summary
        domain: Fault domain (CONFIG, ROUTING, SECURITY, ...)
        severity: Fault severity (INFO, WARN, ERROR, FATAL)
        status: HTTP status used when the fault reaches a client
        public: Whether the message is safe to expose to the client
        details: Structured, client-visible detail payload
        metadata: Additional server-side context (never rendered)

    Example:
        ```python
        raise Fault(
            code="ORDER_LOCKED",
            message="Order 42 is locked",
            domain=FaultDomain.FLOW,
            status=409,
            public=True,
        )
        ```
    """

    code: Optional[str] = None
    message: Optional[str] = None
    domain: Optional[FaultDomain] = None
    status: Optional[int] = None
    public: bool = False

    def __init__(
        self,
        code: str | None = None,
        message: str | None = None,
        *,
        domain: FaultDomain | None = None,
        severity: Optional[Severity] = None,
        status: Optional[int] = None,
        public: Optional[bool] = None,
        details: Optional[dict[str, Any]] = None,
        metadata: Optional[dict[str, Any]] = None,
    ):
        # subclasses may fix these as class attributes
        self.code = code if code is not None else type(self).code
        self.message = message if message is not None else type(self).message
        self.domain = domain if domain is not None else type(self).domain

        if self.code is None or self.message is None or self.domain is None:
            raise TypeError(f"{self.__class__.__name__} missing required code, message, or domain")

        super().__init__(self.message)

        defaults = DOMAIN_DEFAULTS.get(self.domain, {"severity": Severity.ERROR, "status": 500})
        self.severity = severity or defaults["severity"]
        self.status = status or type(self).status or defaults["status"]
        self.public = public if public is not None else type(self).public
        self.details = details or {}
        self.metadata = metadata or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"Fault(code={self.code!r}, domain={self.domain.value}, "
            f"status={self.status}, public={self.public})"
        )

    def to_dict(self) -> dict[str, Any]:
        """
        Plain-dict form for logs and tooling.

        Returns:
            Dictionary representation suitable for logging
        """
        return {
            "code": self.code,
            "message": self.message,
            "domain": self.domain.value,
            "severity": self.severity.value,
            "status": self.status,
            "public": self.public,
            "details": self.details,
            "metadata": self.metadata,
        }
