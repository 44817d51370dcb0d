"""
apikit Testing - Request Utility Factories.

Helpers for building ASGI scopes, receive callables, Request objects and
request contexts in tests.
"""

from __future__ import annotations

import json as stdlib_json
from typing import Any, Dict, List, Optional

from apikit.controller.base import RequestCtx
from apikit.request import Request


def make_test_scope(
    method: str = "GET",
    path: str = "/",
    query_string: str = "",
    headers: Optional[List[tuple]] = None,
    scheme: str = "http",
    client: Optional[tuple] = None,
    server: Optional[tuple] = None,
) -> dict:
    """
    Build a minimal ASGI HTTP scope.

    Args:
        method: HTTP method.
        path: Request path.
        query_string: Raw query string (without ``?``).
        headers: List of ``(name, value)`` tuples (strings or bytes).
        scheme: URL scheme.
        client: ``(host, port)`` tuple.
        server: ``(host, port)`` tuple.
    """
    raw_headers: list[tuple[bytes, bytes]] = []
    for name, value in headers or ():
        raw_headers.append((
            name.lower().encode("latin-1") if isinstance(name, str) else name,
            value.encode("latin-1") if isinstance(value, str) else value,
        ))

    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "path": path,
        "raw_path": path.encode("utf-8"),
        "query_string": (
            query_string.encode("utf-8")
            if isinstance(query_string, str)
            else query_string
        ),
        "headers": raw_headers,
        "scheme": scheme,
        "server": server or ("127.0.0.1", 8080),
        "client": client or ("127.0.0.1", 12345),
        "root_path": "",
    }


def make_test_receive(body: bytes = b"", *, chunks: Optional[List[bytes]] = None):
    """ASGI receive callable yielding ``body`` (or ``chunks``), then disconnect."""
    if chunks:
        messages = [
            {"type": "http.request", "body": chunk, "more_body": i < len(chunks) - 1}
            for i, chunk in enumerate(chunks)
        ]
    else:
        messages = [{"type": "http.request", "body": body, "more_body": False}]

    idx = 0

    async def receive():
        nonlocal idx
        if idx < len(messages):
            msg = messages[idx]
            idx += 1
            return msg
        return {"type": "http.disconnect"}

    return receive


def make_test_request(
    method: str = "GET",
    path: str = "/",
    query_string: str = "",
    headers: Optional[List[tuple]] = None,
    body: bytes = b"",
    json: Any = None,
    state: Optional[Dict[str, Any]] = None,
    **kwargs: Any,
) -> Request:
    """
    Build a Request; ``json`` is serialised with its content headers and
    ``state`` pre-populates ``request.state`` (e.g. ``jwt_payload``).
    """
    headers = list(headers) if headers else []

    if json is not None:
        body = stdlib_json.dumps(json).encode("utf-8")
        headers.append(("content-type", "application/json"))
        headers.append(("content-length", str(len(body))))

    scope = make_test_scope(method=method, path=path, query_string=query_string, headers=headers)
    request = Request(scope, make_test_receive(body), **kwargs)
    if state:
        request.state.update(state)
    return request


def make_test_ctx(request: Optional[Request] = None, **kwargs: Any) -> RequestCtx:
    """RequestCtx around ``request`` (or a fresh GET / request)."""
    request = request or make_test_request(**kwargs)
    return RequestCtx(request=request, request_id=request.state.get("request_id"))
