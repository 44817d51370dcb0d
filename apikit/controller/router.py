"""
Router - maps (method, path) to mounted controller routes.

Two-tier lookup:
1. Static route hash map per method: O(1) for paths without placeholders
2. Ordered regex list for ``<name>`` paths, first match wins
"""

from typing import Dict, List, Optional, Tuple, Pattern
from dataclasses import dataclass
import logging
import re

from .compiler import Route
from .metadata import join_paths

logger = logging.getLogger("apikit.routing")

_PLACEHOLDER_RE = re.compile(r"<(\w+)>")


@dataclass
class RouteMatch:
    """Result of a successful route match."""
    route: Route
    params: Dict[str, str]
    full_path: str


@dataclass
class MountedRoute:
    route: Route
    full_path: str


def compile_path(path: str) -> Pattern:
    """``/users/<id>`` -> regex with an ``id`` group matching one segment."""
    parts = []
    last = 0
    for m in _PLACEHOLDER_RE.finditer(path):
        parts.append(re.escape(path[last:m.start()]))
        parts.append(f"(?P<{m.group(1)}>[^/]+)")
        last = m.end()
    parts.append(re.escape(path[last:]))
    return re.compile("^" + "".join(parts) + "$")


def _normalize(path: str) -> str:
    return path.rstrip('/') or '/'


class Router:
    """Router for mounted controller routes."""

    def __init__(self):
        self._mounted: List[MountedRoute] = []
        self._static: Dict[str, Dict[str, MountedRoute]] = {}
        self._dynamic: Dict[str, List[Tuple[Pattern, MountedRoute]]] = {}

    def mount(self, prefix: str, routes: List[Route]) -> None:
        """Register ``routes`` under ``prefix`` (e.g. ``/api/users``)."""
        for route in routes:
            full_path = join_paths(prefix, route.path)
            mounted = MountedRoute(route=route, full_path=full_path)

            method = route.http_method
            if _PLACEHOLDER_RE.search(full_path):
                self._dynamic.setdefault(method, []).append((compile_path(full_path), mounted))
            else:
                static_map = self._static.setdefault(method, {})
                if full_path in static_map:
                    logger.warning(
                        "Duplicate route %s %s: %s ignored, already mapped to %s",
                        method, full_path, route.target_name, static_map[full_path].route.target_name,
                    )
                    continue
                static_map[full_path] = mounted

            self._mounted.append(mounted)
            logger.info("Registering: %s %s -> %s", method, full_path, route.target_name)

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """Find the route for ``method`` and ``path``, or None."""
        norm_path = _normalize(path)

        hit = self._static.get(method, {}).get(norm_path)
        if hit is not None:
            return RouteMatch(route=hit.route, params={}, full_path=hit.full_path)

        for pattern, mounted in self._dynamic.get(method, ()):
            m = pattern.match(norm_path)
            if m is not None:
                return RouteMatch(route=mounted.route, params=m.groupdict(), full_path=mounted.full_path)

        return None

    def allowed_methods(self, path: str) -> List[str]:
        """Methods that have a route for ``path`` (for 405 responses)."""
        norm_path = _normalize(path)
        allowed = []
        for method, static_map in self._static.items():
            if norm_path in static_map and method not in allowed:
                allowed.append(method)
        for method, dynamic in self._dynamic.items():
            if method in allowed:
                continue
            if any(pattern.match(norm_path) for pattern, _ in dynamic):
                allowed.append(method)
        return sorted(allowed)

    def routes(self) -> List[MountedRoute]:
        """Every mounted route in registration order."""
        return list(self._mounted)

    def clear(self) -> None:
        self._mounted.clear()
        self._static.clear()
        self._dynamic.clear()

    def __len__(self) -> int:
        return len(self._mounted)
