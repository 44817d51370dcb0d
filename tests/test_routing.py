"""
Route table building, router matching and route listings.
"""

from typing import Annotated

import pytest

from apikit.auth import JWTPublic
from apikit.auth.policy import BasicAuthOnlyPolicy, PublicPolicy
from apikit.controller import (
    Controller,
    Delete,
    Get,
    PathParam,
    Put,
    RestController,
    Router,
    RouteTableBuilder,
    annotation_routes,
    default_mount_path,
    get_available_routes,
)
from apikit.discovery import AnnotationKind, AnnotationOccurrence, AnnotationResult, detect_from_classes


@RestController("/api/users")
class UserController(Controller):

    @Get("/{id}")
    async def get_user(self, id: Annotated[int, PathParam("id")]):
        return {"id": id}

    @Get("/me")
    async def me(self):
        return {"me": True}

    @Get("/")
    @JWTPublic()
    async def list_users(self):
        return []

    @Put("/{id}")
    async def update_user(self, id: Annotated[int, PathParam("id")]):
        return {"id": id}

    @Delete("/{id}")
    async def delete_user(self, id: Annotated[int, PathParam("id")]):
        return None


class ReportController(Controller):

    @Get("/daily")
    async def daily(self):
        return {}


def build(controller):
    return RouteTableBuilder().build(controller, detect_from_classes([type(controller)]))


# ============================================================================
# RouteTableBuilder
# ============================================================================

class TestRouteTableBuilder:

    def test_builds_every_verb(self):
        table = build(UserController())
        assert sorted((r.http_method, r.path) for r in table) == [
            ("DELETE", "/<id>"),
            ("GET", "/"),
            ("GET", "/<id>"),
            ("GET", "/me"),
            ("PUT", "/<id>"),
        ]
        assert table.base_path == "/api/users"

    def test_static_routes_first(self):
        table = build(UserController())
        specificities = [r.specificity for r in table]
        assert specificities == sorted(specificities)
        gets = [r.path for r in table if r.http_method == "GET"]
        assert gets.index("/me") < gets.index("/<id>")

    def test_policies_attached(self):
        routes = {r.handler_name: r for r in build(UserController())}
        assert isinstance(routes["list_users"].policy, PublicPolicy)
        assert isinstance(routes["get_user"].policy, BasicAuthOnlyPolicy)

    def test_route_metadata(self):
        route = next(r for r in build(UserController()) if r.handler_name == "get_user")
        assert route.target_name == "UserController.get_user"
        assert [p.name for p in route.parameters] == ["id"]
        assert route.to_dict()["policy"] == "basic_auth_only"

    def test_no_base_path(self):
        assert build(ReportController()).base_path is None

    def test_foreign_occurrences_ignored(self):
        occurrences = [
            AnnotationOccurrence(AnnotationKind.GET, "OtherController.daily", {"path": "/x"}),
        ]
        assert len(RouteTableBuilder().build(ReportController(), occurrences)) == 0

    def test_missing_handler_skipped(self, caplog):
        occurrences = [
            AnnotationOccurrence(AnnotationKind.GET, "ReportController.vanished", {"path": "/x"}),
            AnnotationOccurrence(AnnotationKind.GET, "ReportController.daily", {"path": "/daily"}),
        ]
        table = RouteTableBuilder().build(ReportController(), occurrences)
        assert [r.handler_name for r in table] == ["daily"]
        assert "No handler registered" in caplog.text

    @pytest.mark.asyncio
    async def test_handler_invokes_bound_method(self, make_request, make_ctx):
        route = next(r for r in build(UserController()) if r.handler_name == "list_users")
        request = make_request("GET", "/api/users")
        assert await route.handler(request, make_ctx(request)) == []


class TestMountPaths:

    @pytest.mark.parametrize("name, expected", [
        ("UserController", "/api/v1/user"),
        ("Reports", "/api/v1/reports"),
        ("Controller", "/api/v1/controller"),
    ])
    def test_default_mount_path(self, name, expected):
        assert default_mount_path(name) == expected


# ============================================================================
# Router
# ============================================================================

class TestRouter:

    def setup_method(self):
        self.router = Router()
        self.router.mount("/api/users", build(UserController()))

    def test_static_match(self):
        match = self.router.match("GET", "/api/users/me")
        assert match.route.handler_name == "me"
        assert match.params == {}

    def test_dynamic_match(self):
        match = self.router.match("GET", "/api/users/42")
        assert match.route.handler_name == "get_user"
        assert match.params == {"id": "42"}
        assert match.full_path == "/api/users/<id>"

    def test_trailing_slash(self):
        assert self.router.match("GET", "/api/users/").route.handler_name == "list_users"
        assert self.router.match("GET", "/api/users").route.handler_name == "list_users"

    def test_placeholder_is_one_segment(self):
        assert self.router.match("GET", "/api/users/42/posts") is None

    def test_no_match(self):
        assert self.router.match("GET", "/api/unknown") is None
        assert self.router.match("POST", "/api/users/42") is None

    def test_allowed_methods(self):
        assert self.router.allowed_methods("/api/users/42") == ["DELETE", "GET", "PUT"]
        assert self.router.allowed_methods("/nowhere") == []

    def test_duplicate_static_route_keeps_first(self):
        router = Router()
        router.mount("/a", build(ReportController()))
        router.mount("/a", build(ReportController()))
        assert len(router) == 1
        assert router.match("GET", "/a/daily") is not None

    def test_clear(self):
        self.router.clear()
        assert len(self.router) == 0
        assert self.router.match("GET", "/api/users/me") is None


# ============================================================================
# Listings
# ============================================================================

class TestRouteListings:

    def test_get_available_routes(self):
        lines = get_available_routes(build(UserController()), prefix="/api/users")
        assert "GET /api/users/<id> -> UserController.get_user" in lines
        assert "GET /api/users -> UserController.list_users" in lines

    def test_relative_listing(self):
        lines = get_available_routes(build(ReportController()))
        assert lines == ["GET /daily -> ReportController.daily"]

    def test_annotation_routes(self):
        result = AnnotationResult([
            AnnotationOccurrence(AnnotationKind.REST_CONTROLLER, "UserController", {"base_path": "/api/users"}),
            AnnotationOccurrence(AnnotationKind.GET, "UserController.get_user", {"path": "/{id}"}),
            AnnotationOccurrence(AnnotationKind.JWT_PUBLIC, "UserController.get_user", {}),
            AnnotationOccurrence(AnnotationKind.POST, "ReportController.create", {"path": ""}),
        ])
        assert annotation_routes(result) == [
            "GET /api/users/<id> -> UserController.get_user",
            "POST /api/v1/report -> ReportController.create",
        ]
