"""
ApiServer - wires controllers, JWT authorization and the middleware
pipeline into one ASGI application.

Pipeline (outermost first):
    RequestId -> SecurityHeaders -> Exception -> RateLimit ->
    RequestSizeLimit -> CORS -> [JWTExtraction -> JWTAccessLog] ->
    Logging -> router dispatch
"""

from typing import Iterable, List, Optional, Sequence, Union
import logging

from .asgi import ASGIAdapter
from .auth.blacklist import TokenBlacklist
from .auth.guard import JWTGuard
from .auth.middleware import DEFAULT_EXCLUDE_PATHS, JWTAccessLogMiddleware, JWTExtractionMiddleware
from .auth.policy import PolicyResolver
from .auth.tokens import TokenCodec
from .config import ConfigLoader, ServerConfig
from .controller.base import Controller
from .controller.compiler import RouteTableBuilder, default_mount_path, get_available_routes
from .controller.engine import ControllerEngine
from .controller.router import Router
from .discovery.detector import detect_from_classes
from .faults import ConfigFault
from .middleware import (
    CORSMiddleware,
    ExceptionMiddleware,
    LoggingMiddleware,
    MiddlewareStack,
    RequestIdMiddleware,
)
from .middleware_ext.rate_limit import RateLimitMiddleware
from .middleware_ext.security import RequestSizeLimitMiddleware, SecurityHeadersMiddleware

# Priorities inside the global scope; lower is outer
_PRIORITY = {
    "request_id": 1,
    "security_headers": 2,
    "exception": 3,
    "rate_limit": 20,
    "request_size": 30,
    "cors": 40,
    "jwt_extraction": 60,
    "jwt_access_log": 61,
    "logging": 90,
}


class ApiServer:
    """
    Annotation-driven REST API server.

    Controllers are registered explicitly; each one is mounted at its
    ``@RestController`` base path (or ``/api/v1/<name>``). Until
    ``configure_jwt_auth`` is called every endpoint is public.

    Example:
        ```python
        server = ApiServer(ServerConfig.production())
        server.configure_jwt_auth(os.environ["JWT_SECRET"])
        server.register(UserController())
        server.run(port=8080)
        ```
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig.development()
        self.logger = logging.getLogger("apikit.server")

        self.blacklist = TokenBlacklist()
        self.resolver = PolicyResolver()
        self.guard = JWTGuard(enabled=lambda: self._jwt_enabled)
        self.engine = ControllerEngine()
        self.builder = RouteTableBuilder(resolver=self.resolver, guard=self.guard, engine=self.engine)
        self.router = Router()
        self.controllers: List[Controller] = []

        self._jwt_enabled = False
        self._codec: Optional[TokenCodec] = None
        self._exclude_paths: tuple = ()

        self.middleware_stack = MiddlewareStack()
        self._setup_middleware()

        self.app = ASGIAdapter(
            self.router,
            self.engine,
            self.middleware_stack,
            server=self,
            max_body_size=self.config.max_body_size,
        )

    @classmethod
    def from_config(cls, loader: ConfigLoader, environment: Optional[str] = None) -> "ApiServer":
        """
        Server from loaded configuration.

        JWT auth is configured when the ``jwt.secret`` key is present.
        """
        server = cls(loader.load_server_config(environment))
        jwt = loader.jwt_settings()
        if jwt["secret"]:
            server.configure_jwt_auth(
                str(jwt["secret"]),
                exclude_paths=jwt["exclude_paths"] or DEFAULT_EXCLUDE_PATHS,
            )
        return server

    def _setup_middleware(self):
        """Install the default pipeline."""
        config = self.config
        self.middleware_stack.add(RequestIdMiddleware(), priority=_PRIORITY["request_id"], name="request_id")
        self.middleware_stack.add(
            SecurityHeadersMiddleware(),
            priority=_PRIORITY["security_headers"],
            name="security_headers",
        )
        self.middleware_stack.add(ExceptionMiddleware(), priority=_PRIORITY["exception"], name="exception")
        self.middleware_stack.add(
            RateLimitMiddleware(config.rate_limit),
            priority=_PRIORITY["rate_limit"],
            name="rate_limit",
        )
        self.middleware_stack.add(
            RequestSizeLimitMiddleware(config.max_body_size),
            priority=_PRIORITY["request_size"],
            name="request_size",
        )
        self.middleware_stack.add(
            CORSMiddleware.from_config(config.cors),
            priority=_PRIORITY["cors"],
            name="cors",
        )
        self.middleware_stack.add(LoggingMiddleware(), priority=_PRIORITY["logging"], name="logging")

    # ========================================================================
    # Controllers
    # ========================================================================

    def register(
        self,
        controller: Union[Controller, type],
        mount_path: Optional[str] = None,
    ) -> str:
        """
        Mount ``controller`` and return the mount path used.

        A controller class is instantiated without arguments.
        """
        if isinstance(controller, type):
            controller = controller()

        controller_name = type(controller).__name__
        annotations = detect_from_classes([type(controller)])
        table = self.builder.build(controller, annotations)

        path = mount_path or table.base_path or default_mount_path(controller_name)
        self.router.mount(path, table)
        self.controllers.append(controller)

        self.logger.info("Controller %s registered at: %s (%d routes)", controller_name, path, len(table))
        for line in get_available_routes(table, prefix=path):
            self.logger.debug("  %s", line)
        return path

    def get_available_routes(self) -> List[str]:
        """``"METHOD /full/path -> Controller.method"`` for every mounted route."""
        return [
            f"{mounted.route.http_method} {mounted.full_path} -> {mounted.route.target_name}"
            for mounted in self.router.routes()
        ]

    # ========================================================================
    # JWT
    # ========================================================================

    @property
    def jwt_enabled(self) -> bool:
        return self._jwt_enabled

    def configure_jwt_auth(
        self,
        secret: str,
        exclude_paths: Sequence[str] = DEFAULT_EXCLUDE_PATHS,
    ) -> None:
        """
        Enable JWT authentication.

        Raises:
            ConfigFault: empty secret
        """
        if not secret:
            raise ConfigFault("JWT secret must not be empty", code="JWT_SECRET_MISSING")

        self._codec = TokenCodec(secret)
        self._exclude_paths = tuple(exclude_paths)

        self.middleware_stack.remove("jwt_extraction")
        self.middleware_stack.remove("jwt_access_log")
        self.middleware_stack.add(
            JWTExtractionMiddleware(self._codec, self.blacklist, self._exclude_paths),
            priority=_PRIORITY["jwt_extraction"],
            name="jwt_extraction",
        )
        self.middleware_stack.add(
            JWTAccessLogMiddleware(),
            priority=_PRIORITY["jwt_access_log"],
            name="jwt_access_log",
        )
        self._jwt_enabled = True
        self.app.invalidate()

        self.logger.info("JWT authentication middleware configured")
        self.logger.info("Excluded paths: %s", ", ".join(self._exclude_paths))

    def disable_jwt_auth(self) -> None:
        """Remove JWT middleware; every endpoint becomes public."""
        self.middleware_stack.remove("jwt_extraction")
        self.middleware_stack.remove("jwt_access_log")
        self._jwt_enabled = False
        self._codec = None
        self.app.invalidate()
        self.logger.info("JWT authentication disabled")

    def issue_token(self, claims: dict, expires_in: Optional[int] = None) -> str:
        """
        Sign ``claims`` with the configured secret.

        Raises:
            ConfigFault: JWT auth is not configured
        """
        if self._codec is None:
            raise ConfigFault("JWT authentication is not configured", code="JWT_NOT_CONFIGURED")
        return self._codec.encode(claims, expires_in=expires_in)

    def blacklist_token(self, token: str) -> None:
        self.blacklist.add(token)

    def remove_token_from_blacklist(self, token: str) -> bool:
        return self.blacklist.remove(token)

    def clear_token_blacklist(self) -> int:
        return self.blacklist.clear()

    @property
    def blacklisted_tokens_count(self) -> int:
        return self.blacklist.size

    def is_token_blacklisted(self, token: str) -> bool:
        return token in self.blacklist

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def startup(self):
        self.logger.info(
            "Server ready with %d controllers and %d routes",
            len(self.controllers), len(self.router),
        )

    async def shutdown(self):
        self.logger.info("Server stopped")

    def run(
        self,
        host: str = "127.0.0.1",
        port: int = 8080,
        reload: bool = False,
        log_level: Optional[str] = None,
    ):
        """
        Serve the application with uvicorn (blocking).

        Args:
            host: Host to bind to
            port: Port to bind to
            reload: Enable auto-reload
            log_level: Logging level, defaults to the config's
        """
        log_level = log_level or self.config.log_level

        logging.basicConfig(
            level=getattr(logging, log_level.upper()),
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        )

        try:
            import uvicorn
        except ImportError:
            self.logger.error(
                "uvicorn is not installed. "
                "Install it with: pip install uvicorn"
            )
            raise

        self.logger.info("Starting API server on %s:%d", host, port)
        uvicorn.run(
            self.app,
            host=host,
            port=port,
            reload=reload,
            log_level=log_level,
        )

    def start(
        self,
        host: str = "127.0.0.1",
        port: int = 8080,
        controllers: Iterable[Union[Controller, type]] = (),
    ):
        """Register ``controllers`` and run the server."""
        controllers = list(controllers)
        self.logger.info("Registering %d controllers...", len(controllers))
        for controller in controllers:
            self.register(controller)
        self.run(host=host, port=port)

    def get_asgi_app(self):
        """Get the ASGI application for external servers."""
        return self.app
