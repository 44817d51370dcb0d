"""
apikit Testing - in-process client and request factories.
"""

from .client import TestClient, TestResponse
from .utils import make_test_ctx, make_test_receive, make_test_request, make_test_scope

__all__ = [
    "TestClient",
    "TestResponse",
    "make_test_ctx",
    "make_test_receive",
    "make_test_request",
    "make_test_scope",
]
