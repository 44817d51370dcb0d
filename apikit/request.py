"""
Request - ASGI request wrapper used by every apikit handler.

Provides:
- Lazy query/header parsing
- Size-limited body reading with JSON decoding
- Bearer credential extraction
- A per-request ``state`` dict (the request context the JWT layer fills)
"""

from __future__ import annotations

import json as stdlib_json
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional
from urllib.parse import parse_qsl

from ._datastructures import Headers, MultiDict
from .faults import InvalidBodyFault, PayloadTooLargeFault


class Request:
    """
    Request object for apikit.

    Attributes:
        scope: ASGI scope dict
        state: Per-request context (request id, JWT payload, user fields)
        path_params: Values captured by the router for ``<name>`` segments
    """

    def __init__(
        self,
        scope: Mapping[str, Any],
        receive: Callable[..., Awaitable[dict]],
        *,
        max_body_size: int = 10_485_760,  # 10 MiB
    ):
        self.scope = scope
        self._receive = receive
        self.max_body_size = max_body_size

        self.state: Dict[str, Any] = {}
        self.path_params: Dict[str, str] = {}

        self._body: Optional[bytes] = None
        self._json: Any = None
        self._json_loaded = False
        self._query_params: Optional[MultiDict] = None
        self._headers: Optional[Headers] = None

    def __repr__(self) -> str:
        return f"<Request {self.method} {self.path}>"

    # ========================================================================
    # Basic Properties
    # ========================================================================

    @property
    def method(self) -> str:
        """HTTP method (GET, POST, etc.)."""
        return self.scope.get("method", "GET")

    @property
    def path(self) -> str:
        """Request path (decoded)."""
        return self.scope.get("path", "/")

    @property
    def query_string(self) -> str:
        """Raw query string."""
        return self.scope.get("query_string", b"").decode("utf-8")

    @property
    def scheme(self) -> str:
        return self.scope.get("scheme", "http")

    @property
    def client(self) -> Optional[tuple]:
        """Client address (host, port)."""
        return self.scope.get("client")

    @property
    def host(self) -> str:
        """Host header without port, falling back to the ASGI server address."""
        host = self.header("host")
        if host:
            return host.split(":", 1)[0]
        server = self.scope.get("server")
        return server[0] if server else "localhost"

    @property
    def url(self) -> str:
        """Full request URL as seen by the client."""
        host = self.header("host")
        if not host:
            server = self.scope.get("server") or ("localhost", None)
            host = server[0] if server[1] in (None, 80, 443) else f"{server[0]}:{server[1]}"
        url = f"{self.scheme}://{host}{self.path}"
        if self.query_string:
            url += f"?{self.query_string}"
        return url

    @property
    def request_id(self) -> Optional[str]:
        return self.state.get("request_id")

    # ========================================================================
    # Query Parameters
    # ========================================================================

    @property
    def query_params(self) -> MultiDict:
        """Parsed query parameters (first value wins on item access)."""
        if self._query_params is None:
            self._query_params = MultiDict(
                parse_qsl(self.query_string, keep_blank_values=True)
            )
        return self._query_params

    def query_param(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First query string value for ``name``."""
        return self.query_params.get(name, default)

    # ========================================================================
    # Headers
    # ========================================================================

    @property
    def headers(self) -> Headers:
        """Parsed headers."""
        if self._headers is None:
            self._headers = Headers(self.scope.get("headers", []))
        return self._headers

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Header value by case-insensitive name."""
        return self.headers.get(name, default)

    def client_ip(self) -> str:
        """
        Client address for throttling and logging.

        Checks ``X-Real-IP``, then the first ``X-Forwarded-For`` hop, then
        the ASGI peer address.
        """
        real_ip = self.header("x-real-ip")
        if real_ip:
            return real_ip.strip()
        forwarded_for = self.header("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()
        client = self.client
        return client[0] if client else "unknown"

    def content_length(self) -> Optional[int]:
        """Content-Length header as int, or None when absent or malformed."""
        length = self.header("content-length")
        if length is None:
            return None
        try:
            return int(length)
        except ValueError:
            return None

    def bearer_token(self) -> Optional[str]:
        """
        Token from an ``Authorization: Bearer <token>`` header.

        Returns None when there is no bearer header at all and an empty
        string when the scheme is present without a token.
        """
        auth = self.header("authorization")
        if not auth:
            return None
        scheme, _, credentials = auth.partition(" ")
        if scheme.lower() != "bearer":
            return None
        return credentials.strip()

    # ========================================================================
    # Body
    # ========================================================================

    async def body(self) -> bytes:
        """
        Whole request body; read once and cached.

        Raises:
            PayloadTooLargeFault: If body exceeds max_body_size
        """
        if self._body is not None:
            return self._body

        chunks = []
        total_size = 0
        while True:
            message = await self._receive()
            if message["type"] != "http.request":
                break
            chunk = message.get("body", b"")
            if chunk:
                total_size += len(chunk)
                if total_size > self.max_body_size:
                    raise PayloadTooLargeFault(self.max_body_size, total_size)
                chunks.append(chunk)
            if not message.get("more_body", False):
                break

        self._body = b"".join(chunks)
        return self._body

    async def text(self, encoding: str = "utf-8") -> str:
        return (await self.body()).decode(encoding)

    async def json(self) -> Any:
        """
        Parse request body as JSON.

        Returns None for an empty body.

        Raises:
            InvalidBodyFault: If the body is not valid UTF-8 JSON
        """
        if self._json_loaded:
            return self._json

        body_bytes = await self.body()
        if not body_bytes.strip():
            self._json = None
        else:
            try:
                self._json = stdlib_json.loads(body_bytes.decode("utf-8"))
            except (UnicodeDecodeError, stdlib_json.JSONDecodeError) as e:
                raise InvalidBodyFault(f"Invalid JSON: {e}")

        self._json_loaded = True
        return self._json
