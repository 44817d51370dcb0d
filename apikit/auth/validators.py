"""
JWT validators - pluggable authorization checks over verified claims.

Subclass ``Validator``, implement ``validate`` and
``default_error_message``, and list instances in ``@JWTController`` or
``@JWTEndpoint``. Validators are configured at construction and keep no
per-request state.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, TYPE_CHECKING
import logging

if TYPE_CHECKING:
    from ..request import Request

logger = logging.getLogger("apikit.auth.validators")


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of one validator (or of a whole evaluation)."""

    is_success: bool
    error_message: Optional[str] = None

    @classmethod
    def valid(cls) -> "ValidationResult":
        return cls(True, None)

    @classmethod
    def invalid(cls, message: Optional[str] = None) -> "ValidationResult":
        return cls(False, message)

    @property
    def is_failure(self) -> bool:
        return not self.is_success


class Validator(ABC):
    """
    Base class for JWT validators.

    ``validate`` receives the current request and the decoded token
    payload. The success and failure hooks run only for validators the
    evaluator actually invoked.
    """

    @abstractmethod
    def validate(self, request: "Request", payload: Dict[str, Any]) -> ValidationResult:
        """Decide whether ``payload`` grants access to this request."""

    @property
    @abstractmethod
    def default_error_message(self) -> str:
        """Message used when validation fails without a specific reason."""

    @property
    def name(self) -> str:
        return type(self).__name__

    def on_validation_success(self, request: "Request", payload: Dict[str, Any]) -> None:
        logger.debug(
            "[%s] %s passed for %s",
            request.state.get("request_id", "unknown"), self.name, request.path,
        )

    def on_validation_failed(self, request: "Request", payload: Dict[str, Any], reason: str) -> None:
        logger.debug(
            "[%s] %s failed for %s: %s",
            request.state.get("request_id", "unknown"), self.name, request.path, reason,
        )

    def __repr__(self) -> str:
        return f"{self.name}()"
