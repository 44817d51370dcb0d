"""
Route Table Builder - turns a controller and its annotation occurrences
into guarded, executable routes.
"""

from typing import Any, Dict, Iterable, List, Optional
from dataclasses import dataclass, field
import logging

from .base import Controller, HandlerRegistry, RequestCtx
from .engine import ControllerEngine
from .metadata import ParameterSpec, compute_specificity, extract_parameters, join_paths, to_router_path
from ..auth.guard import JWTGuard
from ..auth.policy import JWTPolicy, PolicyResolver
from ..discovery.occurrence import HTTP_KINDS, AnnotationKind, AnnotationOccurrence, AnnotationResult
from ..request import Request

logger = logging.getLogger("apikit.routing")

SUPPORTED_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")


@dataclass
class Route:
    """
    One executable endpoint.

    ``path`` is relative to the controller mount and uses ``<name>``
    placeholders. ``handler`` is already wrapped by the JWT guard and is
    called as ``handler(request, ctx)``.
    """
    http_method: str
    path: str
    controller_name: str
    handler_name: str
    handler: Any
    policy: JWTPolicy
    parameters: List[ParameterSpec] = field(default_factory=list)
    specificity: int = 0

    @property
    def target_name(self) -> str:
        return f"{self.controller_name}.{self.handler_name}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.http_method,
            "path": self.path,
            "target": self.target_name,
            "policy": self.policy.kind,
            "specificity": self.specificity,
        }


class RouteTable(list):
    """Routes of one controller plus its declared base path (if any)."""

    def __init__(self, routes: Iterable[Route] = (), base_path: Optional[str] = None):
        super().__init__(routes)
        self.base_path = base_path


def default_mount_path(controller_name: str) -> str:
    """``UserController`` -> ``/api/v1/user``."""
    name = controller_name
    if name.endswith("Controller") and name != "Controller":
        name = name[: -len("Controller")]
    return f"/api/v1/{name.lower()}"


class RouteTableBuilder:
    """
    Builds route tables.

    For every verb occurrence belonging to the controller it finds the
    registered handler, converts the path, resolves the JWT policy and
    wraps the handler with the guard. Routes come back ordered static
    first, then parameterized (stable within each group).
    """

    def __init__(
        self,
        resolver: Optional[PolicyResolver] = None,
        guard: Optional[JWTGuard] = None,
        engine: Optional[ControllerEngine] = None,
    ):
        self.resolver = resolver or PolicyResolver()
        self.guard = guard or JWTGuard()
        self.engine = engine or ControllerEngine()

    def build(self, controller: Controller, annotations: Iterable[AnnotationOccurrence]) -> RouteTable:
        controller_name = type(controller).__name__
        relevant = [o for o in annotations if o.class_name == controller_name]

        base_path = None
        for occurrence in relevant:
            if occurrence.kind == AnnotationKind.REST_CONTROLLER and not occurrence.is_method_level:
                base_path = occurrence.parameters.get("base_path")
                break

        routes = []
        for occurrence in relevant:
            if occurrence.kind not in HTTP_KINDS or not occurrence.is_method_level:
                continue
            route = self._build_route(controller.handlers, occurrence, relevant, type(controller))
            if route is not None:
                routes.append(route)

        # sorted() is stable: declaration order is kept within a group
        routes = sorted(routes, key=lambda r: r.specificity)
        logger.info("Built %d routes for %s", len(routes), controller_name)
        return RouteTable(routes, base_path=base_path)

    def _build_route(
        self,
        handlers: HandlerRegistry,
        occurrence: AnnotationOccurrence,
        annotations: List[AnnotationOccurrence],
        owner: Optional[type] = None,
    ) -> Optional[Route]:
        controller_name = occurrence.class_name
        method_name = occurrence.method_name
        http_method = occurrence.http_method

        if http_method not in SUPPORTED_METHODS:
            logger.warning("Unsupported HTTP method %s on %s, skipping", http_method, occurrence.target_name)
            return None

        bound = handlers.get(method_name)
        if bound is None:
            logger.warning("No handler registered for %s, skipping", occurrence.target_name)
            return None

        path = to_router_path(occurrence.parameters.get("path") or "")
        try:
            specs = extract_parameters(bound, path)
        except (TypeError, ValueError) as e:
            logger.warning("Cannot read parameters of %s (%s), skipping", occurrence.target_name, e)
            return None

        policy = self.resolver.resolve(controller_name, method_name, annotations, owner=owner)
        endpoint = self._make_endpoint(handlers, method_name, specs)
        handler = self.guard.wrap(endpoint, policy, controller_name, method_name)

        logger.debug("Route %s %s -> %s (%s)", http_method, path, occurrence.target_name, policy.kind)
        return Route(
            http_method=http_method,
            path=path,
            controller_name=controller_name,
            handler_name=method_name,
            handler=handler,
            policy=policy,
            parameters=specs,
            specificity=compute_specificity(path),
        )

    def _make_endpoint(self, handlers: HandlerRegistry, method_name: str, specs: List[ParameterSpec]):
        engine = self.engine

        async def endpoint(request: Request, ctx: RequestCtx):
            kwargs = await engine.bind_arguments(specs, request, ctx)
            return await handlers.call(method_name, **kwargs)

        endpoint.__name__ = method_name
        endpoint.__qualname__ = f"{handlers.owner}.{method_name}"
        return endpoint


def get_available_routes(routes: Iterable[Route], prefix: str = "") -> List[str]:
    """Lines like ``"GET /api/users/<id> -> UserController.get_user"``."""
    lines = []
    for route in routes:
        path = route.path
        if prefix:
            path = join_paths(prefix, path)
        lines.append(f"{route.http_method} {path} -> {route.target_name}")
    return lines


def annotation_routes(result: AnnotationResult) -> List[str]:
    """
    Route lines straight from discovery, without importing anything.

    Paths are mounted the way the server mounts them: under the class's
    ``RestController`` base path, else ``default_mount_path``.
    """
    base_paths = {
        o.class_name: o.parameters.get("base_path")
        for o in result.of_type(AnnotationKind.REST_CONTROLLER)
    }
    lines = []
    for occurrence in result:
        if not occurrence.kind.is_http_method or not occurrence.is_method_level:
            continue
        prefix = base_paths.get(occurrence.class_name) or default_mount_path(occurrence.class_name)
        path = join_paths(prefix, to_router_path(occurrence.parameters.get("path") or ""))
        lines.append(f"{occurrence.http_method} {path} -> {occurrence.target_name}")
    return lines
