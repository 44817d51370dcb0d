"""
Controller Base Class

Provides the base Controller class, its handler registry and the
RequestCtx abstraction.
"""

from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING
from dataclasses import dataclass
import inspect
import logging

from .decorators import route_metadata

if TYPE_CHECKING:
    from apikit.request import Request

logger = logging.getLogger("apikit.controller")


@dataclass
class RequestCtx:
    """
    Request context provided to middleware and controller methods.

    ``state`` is the request's own state dict, so values the JWT layer
    stores there (``jwt_payload``, ``user_id``, ...) are visible through
    both objects.

    Attributes:
        request: The HTTP request
        request_id: Id assigned by RequestIdMiddleware
    """

    request: "Request"
    request_id: Optional[str] = None

    @property
    def state(self) -> Dict[str, Any]:
        return self.request.state

    @property
    def path(self) -> str:
        return self.request.path

    @property
    def method(self) -> str:
        return self.request.method

    @property
    def jwt_payload(self) -> Optional[Dict[str, Any]]:
        """Verified token claims, or None for anonymous requests."""
        return self.request.state.get("jwt_payload")

    @property
    def user_id(self) -> Optional[str]:
        return self.request.state.get("user_id")

    async def json(self) -> Any:
        return await self.request.json()


class HandlerRegistry:
    """
    Name -> bound handler map for one controller instance.

    Routes dispatch through this map instead of looking methods up by
    name on every request.
    """

    def __init__(self, owner: str):
        self.owner = owner
        self._handlers: Dict[str, Callable[..., Any]] = {}

    def register(self, name: str, handler: Callable[..., Any]) -> None:
        self._handlers[name] = handler
        logger.debug("Registered handler: %s.%s", self.owner, name)

    def get(self, name: str) -> Optional[Callable[..., Any]]:
        return self._handlers.get(name)

    def is_registered(self, name: str) -> bool:
        return name in self._handlers

    def names(self) -> List[str]:
        return list(self._handlers)

    async def call(self, name: str, *args, **kwargs) -> Any:
        """Invoke a registered handler, awaiting it when it is a coroutine function."""
        handler = self._handlers.get(name)
        if handler is None:
            raise KeyError(f"Handler not registered: {self.owner}.{name}")
        result = handler(*args, **kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result

    def stats(self) -> Dict[str, int]:
        return {self.owner: len(self._handlers)}

    def clear(self) -> None:
        self._handlers.clear()
        logger.debug("Handler registry cleared for %s", self.owner)

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)


class Controller:
    """
    Base Controller class.

    Every method carrying an HTTP verb decorator is registered in
    ``self.handlers`` when the controller is constructed.

    Example:
        ```python
        @RestController("/api/users")
        class UserController(Controller):
            def __init__(self, repo):
                super().__init__()
                self.repo = repo

            @Get("/{id}")
            async def get_user(self, id: Annotated[int, PathParam("id")]):
                return await self.repo.get(id)
        ```
    """

    def __init__(self):
        self._handlers = self._build_handler_registry()

    @property
    def handlers(self) -> HandlerRegistry:
        # Subclasses that skip super().__init__() still get a registry
        if "_handlers" not in self.__dict__:
            self._handlers = self._build_handler_registry()
        return self._handlers

    def _build_handler_registry(self) -> HandlerRegistry:
        registry = HandlerRegistry(type(self).__name__)
        for name, func in inspect.getmembers(type(self), predicate=inspect.isfunction):
            if route_metadata(func):
                registry.register(name, getattr(self, name))
        return registry

    def log_request(self, request: "Request", action: str) -> None:
        """Log a controller action for the current request."""
        logger.info("%s %s - %s", request.method, request.path, action)
