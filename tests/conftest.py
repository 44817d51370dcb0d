"""
Shared test fixtures and helpers for the apikit test suite.
"""

from typing import Any, Dict, List, Optional

import pytest

from apikit.auth.tokens import TokenCodec
from apikit.auth.validators import ValidationResult, Validator
from apikit.config import CorsConfig, RateLimitConfig, ServerConfig
from apikit.testing import make_test_ctx, make_test_receive, make_test_request, make_test_scope


SECRET = "test-secret-key-for-unit-tests"


# ============================================================================
# Request Helpers
# ============================================================================


@pytest.fixture
def make_request():
    """Factory fixture: ``make_request(method, path, ..., state=...)``."""
    return make_test_request


@pytest.fixture
def make_ctx():
    return make_test_ctx


@pytest.fixture
def scope():
    return make_test_scope()


@pytest.fixture
def receive():
    return make_test_receive(b"")


# ============================================================================
# Config Helpers
# ============================================================================


@pytest.fixture
def test_config() -> ServerConfig:
    """Development config with a rate limit high enough to never trigger."""
    return ServerConfig(
        rate_limit=RateLimitConfig(max_requests=10_000, window=60.0, max_requests_per_ip=10_000),
        cors=CorsConfig.development(),
        max_body_size=1024 * 1024,
        enable_https=False,
        log_level="debug",
    )


# ============================================================================
# JWT Helpers
# ============================================================================


@pytest.fixture
def codec() -> TokenCodec:
    return TokenCodec(SECRET)


@pytest.fixture
def admin_claims() -> Dict[str, Any]:
    return {
        "user_id": "admin-1",
        "email": "admin@example.com",
        "name": "Ada Admin",
        "role": "admin",
        "active": True,
        "permissions": ["admin_access", "read", "write"],
    }


@pytest.fixture
def user_claims() -> Dict[str, Any]:
    return {
        "user_id": "user-1",
        "email": "user@example.com",
        "role": "user",
        "active": True,
        "permissions": ["read"],
    }


class RecordingValidator(Validator):
    """Validator with a fixed outcome that records every call and hook."""

    def __init__(self, outcome: bool, message: Optional[str] = None, *, raises: bool = False):
        self.outcome = outcome
        self.message = message
        self.raises = raises
        self.calls = 0
        self.successes = 0
        self.failures: List[str] = []

    def validate(self, request, payload):
        self.calls += 1
        if self.raises:
            raise RuntimeError("validator exploded")
        if self.outcome:
            return ValidationResult.valid()
        return ValidationResult.invalid(self.message)

    @property
    def default_error_message(self) -> str:
        return "Recording validator denied access"

    def on_validation_success(self, request, payload):
        self.successes += 1

    def on_validation_failed(self, request, payload, reason):
        self.failures.append(reason)


@pytest.fixture
def recording_validator():
    """Factory: ``recording_validator(outcome, message=None, raises=False)``."""
    return RecordingValidator

