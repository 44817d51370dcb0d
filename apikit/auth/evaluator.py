"""
Validator evaluation with AND / OR combination.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, TYPE_CHECKING
import logging

from .validators import ValidationResult, Validator

if TYPE_CHECKING:
    from ..request import Request

logger = logging.getLogger("apikit.auth.validators")

TOKEN_REQUIRED_MESSAGE = "JWT token required"


@dataclass
class EvaluationOutcome:
    """
    Combined result of running a validator list.

    Attributes:
        result: Overall pass / fail with the message a client sees
        failed_reasons: Reasons of every validator that ran and failed
        executed: Number of validators actually invoked
    """
    result: ValidationResult
    failed_reasons: List[str] = field(default_factory=list)
    executed: int = 0

    @property
    def is_success(self) -> bool:
        return self.result.is_success


def _run_one(validator: Validator, request: "Request", payload: Dict[str, Any]) -> ValidationResult:
    """Run a validator and its hook; a raising validator is a failure."""
    try:
        result = validator.validate(request, payload)
    except Exception as e:
        logger.error(
            "[%s] Validator %s raised: %s",
            request.state.get("request_id", "unknown"), validator.name, e, exc_info=True,
        )
        result = ValidationResult.invalid(validator.default_error_message)

    if result.is_success:
        _notify(validator, request, validator.on_validation_success, request, payload)
        return result

    reason = result.error_message or validator.default_error_message
    _notify(validator, request, validator.on_validation_failed, request, payload, reason)
    return ValidationResult.invalid(reason)


def _notify(validator: Validator, request: "Request", hook, *args) -> None:
    # hooks observe the decision, they never change it
    try:
        hook(*args)
    except Exception as e:
        logger.error(
            "[%s] %s hook of %s raised: %s",
            request.state.get("request_id", "unknown"), hook.__name__, validator.name, e, exc_info=True,
        )


def evaluate_detailed(
    request: "Request",
    payload: Optional[Dict[str, Any]],
    validators: Sequence[Validator],
    require_all: bool = True,
) -> EvaluationOutcome:
    """
    Evaluate ``validators`` in declaration order.

    AND mode stops at the first failure and reports it. OR mode stops at
    the first success; when every validator fails the message lists all
    reasons. Hooks run only for validators that were invoked.
    """
    if not validators:
        return EvaluationOutcome(ValidationResult.valid())
    if payload is None:
        return EvaluationOutcome(ValidationResult.invalid(TOKEN_REQUIRED_MESSAGE))

    failed: List[str] = []
    executed = 0

    for validator in validators:
        result = _run_one(validator, request, payload)
        executed += 1

        if result.is_success:
            if not require_all:
                return EvaluationOutcome(result, failed, executed)
            continue

        failed.append(result.error_message)
        if require_all:
            return EvaluationOutcome(result, failed, executed)

    if require_all:
        return EvaluationOutcome(ValidationResult.valid(), failed, executed)

    message = "All validation methods failed: " + "; ".join(failed)
    return EvaluationOutcome(ValidationResult.invalid(message), failed, executed)


def evaluate(
    request: "Request",
    payload: Optional[Dict[str, Any]],
    validators: Sequence[Validator],
    require_all: bool = True,
) -> ValidationResult:
    """Overall result of :func:`evaluate_detailed`."""
    return evaluate_detailed(request, payload, validators, require_all).result
