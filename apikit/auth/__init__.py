"""
apikit auth - JWT annotations, validators, policies and middleware.
"""

# annotations first: discovery imports it while policy is loading
from .annotations import JWTPublic, JWTController, JWTEndpoint, jwt_metadata
from .validators import ValidationResult, Validator
from .builtin_validators import (
    AdminValidator,
    FinancialValidator,
    DepartmentValidator,
    BusinessHoursValidator,
)
from .evaluator import EvaluationOutcome, evaluate, evaluate_detailed
from .policy import (
    PublicPolicy,
    BasicAuthOnlyPolicy,
    ValidatedPolicy,
    JWTPolicy,
    PolicyResolver,
    describe,
)
from .guard import JWTGuard
from .tokens import TokenCodec
from .blacklist import TokenBlacklist
from .middleware import JWTExtractionMiddleware, JWTAccessLogMiddleware

__all__ = [
    "JWTPublic",
    "JWTController",
    "JWTEndpoint",
    "jwt_metadata",
    "ValidationResult",
    "Validator",
    "AdminValidator",
    "FinancialValidator",
    "DepartmentValidator",
    "BusinessHoursValidator",
    "EvaluationOutcome",
    "evaluate",
    "evaluate_detailed",
    "PublicPolicy",
    "BasicAuthOnlyPolicy",
    "ValidatedPolicy",
    "JWTPolicy",
    "PolicyResolver",
    "describe",
    "JWTGuard",
    "TokenCodec",
    "TokenBlacklist",
    "JWTExtractionMiddleware",
    "JWTAccessLogMiddleware",
]
