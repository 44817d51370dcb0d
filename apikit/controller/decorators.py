"""
Controller Decorators

``@RestController`` for classes and HTTP verb decorators for methods.
Decorators only attach metadata; routes are built when a controller is
registered with the server.
"""

from typing import Any, Callable, Dict, List, Optional, TypeVar
import inspect


F = TypeVar('F', bound=Callable[..., Any])
C = TypeVar('C', bound=type)

ROUTE_METADATA_ATTR = '__route_metadata__'
CONTROLLER_METADATA_ATTR = '__rest_controller__'

HTTP_METHODS = ('GET', 'POST', 'PUT', 'PATCH', 'DELETE')


class RestController:
    """
    Marks a class as a REST controller.

    Args:
        base_path: Mount point for every route of the controller
                   (e.g. ``"/api/users"``). When the class carries no
                   RestController the server mounts it under
                   ``/api/v1/<name>``.

    Example:
        ```python
        @RestController("/api/users")
        class UserController(Controller):
            @Get("/{id}")
            async def get_user(self, id: Annotated[int, PathParam("id")]):
                ...
        ```
    """

    def __init__(self, base_path: str = ""):
        self.base_path = base_path

    def __call__(self, cls: C) -> C:
        setattr(cls, CONTROLLER_METADATA_ATTR, {'base_path': self.base_path})
        return cls


class RouteDecorator:
    """
    Base route decorator.

    Attaches metadata to controller methods for registration-time
    extraction. A method may carry several verb decorators.
    """

    method: Optional[str] = None

    def __init__(self, path: str = "", *, summary: Optional[str] = None):
        """
        Args:
            path: URL path relative to the controller mount, with
                  ``{name}`` placeholders. Empty means the mount root.
            summary: Human readable summary for route listings
        """
        self.path = path
        self.summary = summary

    def __call__(self, func: F) -> F:
        if ROUTE_METADATA_ATTR not in func.__dict__:
            setattr(func, ROUTE_METADATA_ATTR, [])

        metadata = {
            'http_method': self.method,
            'path': self.path,
            'summary': self.summary or func.__name__.replace('_', ' ').title(),
            'description': inspect.getdoc(func) or '',
            'func_name': func.__name__,
        }
        getattr(func, ROUTE_METADATA_ATTR).append(metadata)
        return func


class Get(RouteDecorator):
    """GET request decorator."""
    method = 'GET'


class Post(RouteDecorator):
    """POST request decorator."""
    method = 'POST'


class Put(RouteDecorator):
    """PUT request decorator."""
    method = 'PUT'


class Patch(RouteDecorator):
    """PATCH request decorator."""
    method = 'PATCH'


class Delete(RouteDecorator):
    """DELETE request decorator."""
    method = 'DELETE'


def controller_metadata(cls: type) -> Optional[Dict[str, Any]]:
    """RestController parameters declared on ``cls`` itself (not inherited)."""
    return cls.__dict__.get(CONTROLLER_METADATA_ATTR)


def route_metadata(func: Any) -> List[Dict[str, Any]]:
    """Verb decorator records attached to a function."""
    func = getattr(func, '__func__', func)
    return list(getattr(func, ROUTE_METADATA_ATTR, []))
