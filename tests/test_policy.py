"""
JWT policy resolution and the route guard.
"""

import pytest

from apikit.auth import AdminValidator, DepartmentValidator, JWTController, JWTEndpoint, JWTPublic
from apikit.auth.annotations import jwt_metadata
from apikit.auth.guard import JWTGuard
from apikit.auth.policy import (
    BasicAuthOnlyPolicy,
    PolicyResolver,
    PublicPolicy,
    ValidatedPolicy,
    describe,
)
from apikit.controller import Controller, Get
from apikit.discovery import AnnotationKind, AnnotationOccurrence, detect_from_classes
from apikit.faults import ForbiddenFault, UnauthorizedFault
from apikit.testing import make_test_request


@JWTController([DepartmentValidator(["engineering"])], require_all=True)
class ProjectController(Controller):

    @Get("/")
    async def list_projects(self):
        return []

    @Get("/admin")
    @JWTEndpoint([AdminValidator()], require_all=False)
    async def admin(self):
        return {}

    @Get("/open")
    @JWTPublic()
    @JWTEndpoint([AdminValidator()])
    async def open(self):
        return {}


class PlainController(Controller):

    @Get("/")
    async def index(self):
        return {}


def resolve(cls, method):
    return PolicyResolver().resolve(cls.__name__, method, detect_from_classes([cls]))


# ============================================================================
# Annotations
# ============================================================================

class TestJwtAnnotations:

    def test_records(self):
        [record] = jwt_metadata(ProjectController)
        assert record["kind"] == "JWTController"
        assert record["require_all"] is True
        assert isinstance(record["validators"][0], DepartmentValidator)

    def test_method_records(self):
        kinds = [r["kind"] for r in jwt_metadata(ProjectController.open)]
        assert sorted(kinds) == ["JWTEndpoint", "JWTPublic"]

    def test_subclass_does_not_inherit_class_records(self):
        class Child(ProjectController):
            pass

        assert jwt_metadata(Child) == []


# ============================================================================
# Resolution
# ============================================================================

class TestPolicyResolution:

    def test_controller_policy(self):
        policy = resolve(ProjectController, "list_projects")
        assert isinstance(policy, ValidatedPolicy)
        assert isinstance(policy.validators[0], DepartmentValidator)
        assert policy.validation_mode == "require_all"

    def test_endpoint_overrides_controller(self):
        policy = resolve(ProjectController, "admin")
        assert isinstance(policy, ValidatedPolicy)
        assert [type(v) for v in policy.validators] == [AdminValidator]
        assert policy.validation_mode == "require_any"

    def test_public_wins(self):
        assert isinstance(resolve(ProjectController, "open"), PublicPolicy)

    def test_basic_auth_only(self):
        assert isinstance(resolve(PlainController, "index"), BasicAuthOnlyPolicy)

    def test_cache(self):
        resolver = PolicyResolver()
        annotations = detect_from_classes([ProjectController])
        first = resolver.resolve("ProjectController", "admin", annotations)
        # cached value wins even when called with nothing
        second = resolver.resolve("ProjectController", "admin", [])
        assert first is second
        assert resolver.cache_size == 1
        assert resolver.cached("ProjectController", "admin") is first

        resolver.clear_cache()
        assert resolver.cache_size == 0
        assert isinstance(resolver.resolve("ProjectController", "admin", []), BasicAuthOnlyPolicy)

    def test_cache_separates_owners(self):
        resolver = PolicyResolver()
        guarded = resolver.resolve(
            "ProjectController", "admin", detect_from_classes([ProjectController]), owner=ProjectController,
        )
        shadow = type("ProjectController", (), {"__module__": "elsewhere.controllers"})
        other = resolver.resolve("ProjectController", "admin", [], owner=shadow)

        assert isinstance(guarded, ValidatedPolicy)
        assert isinstance(other, BasicAuthOnlyPolicy)
        assert resolver.cache_size == 2
        assert resolver.cached("ProjectController", "admin", owner=ProjectController) is guarded
        assert resolver.cached("ProjectController", "admin") is None

    @pytest.mark.parametrize("parameters", [
        {"validators": "AdminValidator()"},
        {"validators": ["AdminValidator()"]},
        {"validators": [AdminValidator()], "require_all": "yes"},
        {},
    ])
    def test_malformed_falls_back(self, parameters, caplog):
        annotations = [AnnotationOccurrence(AnnotationKind.JWT_ENDPOINT, "X.y", parameters)]
        policy = PolicyResolver().resolve("X", "y", annotations)
        assert isinstance(policy, BasicAuthOnlyPolicy)
        assert "falling back to basic JWT authentication" in caplog.text

    def test_unexpected_error_falls_back(self, caplog):
        class Exploding:
            def __iter__(self):
                raise RuntimeError("boom")

        policy = PolicyResolver().resolve("X", "y", Exploding())
        assert isinstance(policy, BasicAuthOnlyPolicy)
        assert "boom" in caplog.text

    def test_describe(self):
        assert describe(PublicPolicy()) == "public"
        assert describe(ValidatedPolicy((AdminValidator(),), require_all=False)) == "validated[require_any: AdminValidator]"


# ============================================================================
# Guard
# ============================================================================

async def handler(request, ctx=None):
    return "handled"


class TestJWTGuard:

    @pytest.mark.asyncio
    async def test_public_needs_no_token(self):
        wrapped = JWTGuard().wrap(handler, PublicPolicy(), "C", "m")
        assert await wrapped(make_test_request()) == "handled"

    @pytest.mark.asyncio
    async def test_basic_auth_requires_payload(self):
        wrapped = JWTGuard().wrap(handler, BasicAuthOnlyPolicy(), "C", "m")
        with pytest.raises(UnauthorizedFault) as exc:
            await wrapped(make_test_request())
        assert exc.value.message == "JWT token required"

        assert await wrapped(make_test_request(state={"jwt_payload": {"user_id": "u"}})) == "handled"

    @pytest.mark.asyncio
    async def test_validated_denied(self, user_claims):
        policy = ValidatedPolicy((AdminValidator(), DepartmentValidator(["finance"])), require_all=False)
        wrapped = JWTGuard().wrap(handler, policy, "C", "m")

        with pytest.raises(ForbiddenFault) as exc:
            await wrapped(make_test_request(state={"jwt_payload": user_claims}))

        fault = exc.value
        assert fault.status == 403
        assert fault.message.startswith("All validation methods failed: ")
        assert fault.details == {
            "validation_mode": "require_any",
            "validators_count": 2,
            "failed_validations": [
                "User must be an administrator",
                "Access restricted to: finance departments",
            ],
        }

    @pytest.mark.asyncio
    async def test_validated_without_payload_is_401(self):
        wrapped = JWTGuard().wrap(handler, ValidatedPolicy((AdminValidator(),)), "C", "m")
        with pytest.raises(UnauthorizedFault):
            await wrapped(make_test_request())

    @pytest.mark.asyncio
    async def test_validated_granted(self, admin_claims):
        wrapped = JWTGuard().wrap(handler, ValidatedPolicy((AdminValidator(),)), "C", "m")
        assert await wrapped(make_test_request(state={"jwt_payload": admin_claims})) == "handled"

    @pytest.mark.asyncio
    async def test_disabled_guard_is_public(self):
        enabled = {"value": False}
        guard = JWTGuard(enabled=lambda: enabled["value"])
        wrapped = guard.wrap(handler, ValidatedPolicy((AdminValidator(),)), "C", "m")

        assert await wrapped(make_test_request()) == "handled"

        enabled["value"] = True
        with pytest.raises(UnauthorizedFault):
            await wrapped(make_test_request())

    @pytest.mark.asyncio
    async def test_unknown_policy_denied(self):
        wrapped = JWTGuard().wrap(handler, object(), "C", "m")
        with pytest.raises(UnauthorizedFault):
            await wrapped(make_test_request(state={"jwt_payload": {"user_id": "u"}}))

    def test_wrap_keeps_name(self):
        assert JWTGuard().wrap(handler, BasicAuthOnlyPolicy(), "C", "m").__name__ == "handler"
