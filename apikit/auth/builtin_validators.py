"""
Ready-made validators for common claim layouts.

They expect these claims: ``role``, ``active``, ``permissions``,
``department``, ``clearance_level``, ``certifications``,
``max_transaction_amount``, ``employee_level`` and
``after_hours_access``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Optional, TYPE_CHECKING
import logging

from .validators import ValidationResult, Validator

if TYPE_CHECKING:
    from ..request import Request

logger = logging.getLogger("apikit.auth.validators")


def _request_id(request: "Request") -> str:
    return request.state.get("request_id", "unknown")


class AdminValidator(Validator):
    """Active administrators holding the ``admin_access`` permission."""

    def validate(self, request: "Request", payload: Dict[str, Any]) -> ValidationResult:
        if payload.get("role") != "admin":
            return ValidationResult.invalid("User must be an administrator")
        if not payload.get("active", False):
            return ValidationResult.invalid("Administrator account is inactive")
        if "admin_access" not in (payload.get("permissions") or []):
            return ValidationResult.invalid("Missing admin access permission")
        return ValidationResult.valid()

    @property
    def default_error_message(self) -> str:
        return "Administrator access required"

    def on_validation_success(self, request, payload):
        logger.info("[%s] Admin access granted to: %s", _request_id(request), payload.get("name", "Unknown"))

    def on_validation_failed(self, request, payload, reason):
        logger.warning(
            "[%s] Admin access denied for: %s at %s - Reason: %s",
            _request_id(request), payload.get("email", "unknown"), request.path, reason,
        )


class FinancialValidator(Validator):
    """
    Finance or accounting staff with clearance level 3 and the
    ``financial_ops_certified`` certification.

    Args:
        minimum_amount: When positive, the user's ``max_transaction_amount``
                        must reach it.
    """

    def __init__(self, minimum_amount: float = 0.0):
        self.minimum_amount = minimum_amount

    def validate(self, request: "Request", payload: Dict[str, Any]) -> ValidationResult:
        if payload.get("department") not in ("finance", "accounting"):
            return ValidationResult.invalid("Access restricted to financial departments")
        if (payload.get("clearance_level") or 0) < 3:
            return ValidationResult.invalid("Insufficient clearance level for financial operations")
        if "financial_ops_certified" not in (payload.get("certifications") or []):
            return ValidationResult.invalid("Financial operations certification required")
        max_amount = payload.get("max_transaction_amount") or 0.0
        if self.minimum_amount > 0 and max_amount < self.minimum_amount:
            return ValidationResult.invalid("Transaction amount exceeds user authorization limit")
        return ValidationResult.valid()

    @property
    def default_error_message(self) -> str:
        return "Financial operations access required"

    def on_validation_success(self, request, payload):
        logger.info(
            "[%s] Financial access granted to user %s from %s department",
            _request_id(request), payload.get("user_id"), payload.get("department"),
        )

    def __repr__(self) -> str:
        return f"FinancialValidator(minimum_amount={self.minimum_amount!r})"


class DepartmentValidator(Validator):
    """Members of the allowed departments, optionally manager level and up."""

    def __init__(self, allowed_departments: Iterable[str], require_manager_level: bool = False):
        self.allowed_departments = list(allowed_departments)
        self.require_manager_level = require_manager_level

    def validate(self, request: "Request", payload: Dict[str, Any]) -> ValidationResult:
        department = payload.get("department")
        if department is None or department not in self.allowed_departments:
            return ValidationResult.invalid(
                f"Access restricted to: {', '.join(self.allowed_departments)} departments"
            )
        if self.require_manager_level and payload.get("employee_level") not in ("manager", "director"):
            return ValidationResult.invalid("Management level access required")
        return ValidationResult.valid()

    @property
    def default_error_message(self) -> str:
        return "Department access required"

    def on_validation_success(self, request, payload):
        logger.info(
            "[%s] Department access granted: %s (%s)",
            _request_id(request), payload.get("department"), payload.get("employee_level", "employee"),
        )

    def __repr__(self) -> str:
        return (
            f"DepartmentValidator(allowed_departments={self.allowed_departments!r}, "
            f"require_manager_level={self.require_manager_level!r})"
        )


class BusinessHoursValidator(Validator):
    """
    Access on business days within ``[start_hour, end_hour)``.

    Weekdays use ISO numbering (Monday is 1). A truthy
    ``after_hours_access`` claim lifts the hour restriction but not the
    weekday one.
    """

    def __init__(
        self,
        start_hour: int = 9,
        end_hour: int = 17,
        allowed_weekdays: Iterable[int] = (1, 2, 3, 4, 5),
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.start_hour = start_hour
        self.end_hour = end_hour
        self.allowed_weekdays = tuple(allowed_weekdays)
        self._clock = clock or datetime.now

    def _outside_hours(self, now: datetime) -> bool:
        return now.hour < self.start_hour or now.hour >= self.end_hour

    def validate(self, request: "Request", payload: Dict[str, Any]) -> ValidationResult:
        now = self._clock()
        if now.isoweekday() not in self.allowed_weekdays:
            return ValidationResult.invalid("Access restricted to business days")
        if self._outside_hours(now) and not payload.get("after_hours_access", False):
            return ValidationResult.invalid(
                f"Access restricted to business hours ({self.start_hour}:00 - {self.end_hour}:00)"
            )
        return ValidationResult.valid()

    @property
    def default_error_message(self) -> str:
        return "Business hours access required"

    def on_validation_success(self, request, payload):
        now = self._clock()
        access_type = "after-hours" if self._outside_hours(now) else "business-hours"
        logger.info(
            "[%s] Time-based access granted: %s at %d:%02d",
            _request_id(request), access_type, now.hour, now.minute,
        )

    def __repr__(self) -> str:
        return f"BusinessHoursValidator(start_hour={self.start_hour}, end_hour={self.end_hour})"
