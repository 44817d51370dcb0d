"""
Response - HTTP response builder and the standard API envelopes.

Provides:
- Response: bytes/str/JSON bodies, header dict, ASGI sending
- Response.from_fault: the framework-wide error shape
- ApiResponse: success/error envelope handlers can return directly
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from .faults import Fault


def _json_default_serializer(o):
    """Serialize objects json.dumps cannot handle natively."""
    if isinstance(o, datetime):
        return o.isoformat()
    if isinstance(o, (set, frozenset)):
        return sorted(o)
    if hasattr(o, "to_dict"):
        return o.to_dict()
    raise TypeError(f"Object of type {type(o).__name__} is not JSON serializable")


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class Response:
    """
    HTTP response.

    Header names are stored lower-cased; ``content-length`` is computed when
    the response is sent.
    """

    def __init__(
        self,
        content: Union[bytes, str, Mapping, List] = b"",
        status: int = 200,
        headers: Optional[Mapping[str, str]] = None,
        media_type: Optional[str] = None,
        *,
        encoding: str = "utf-8",
    ):
        self.status = status
        self.encoding = encoding
        self._content = content

        self._headers: Dict[str, str] = {}
        if headers:
            for key, value in headers.items():
                self._headers[key.lower()] = value

        if media_type:
            self._headers["content-type"] = media_type
        elif "content-type" not in self._headers:
            self._headers["content-type"] = self._detect_media_type(content)

    def __repr__(self) -> str:
        return f"<Response [{self.status}] {self._headers.get('content-type', '')}>"

    @property
    def headers(self) -> Dict[str, str]:
        return self._headers

    @property
    def body(self) -> bytes:
        """Encoded response body."""
        return self._encode_body(self._content)

    def _detect_media_type(self, content: Any) -> str:
        if isinstance(content, (dict, list)):
            return "application/json; charset=utf-8"
        if isinstance(content, str):
            return "text/plain; charset=utf-8"
        return "application/octet-stream"

    # ========================================================================
    # Factory Methods
    # ========================================================================

    @classmethod
    def json(
        cls,
        obj: Any,
        status: int = 200,
        *,
        headers: Optional[Mapping[str, str]] = None,
    ) -> "Response":
        """Create JSON response."""
        content = json.dumps(obj, default=_json_default_serializer)
        return cls(
            content=content,
            status=status,
            headers=headers,
            media_type="application/json; charset=utf-8",
        )

    @classmethod
    def text(cls, content: str, status: int = 200, **kwargs) -> "Response":
        return cls(content, status=status, media_type="text/plain; charset=utf-8", **kwargs)

    @classmethod
    def no_content(cls) -> "Response":
        return cls(b"", status=204)

    @classmethod
    def error(
        cls,
        code: str,
        message: str,
        status: int,
        *,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> "Response":
        """
        Build the framework error envelope::

            {"success": false,
             "error": {"code", "message", "status_code", ["details"]},
             "timestamp", "request_id"}
        """
        error: Dict[str, Any] = {
            "code": code,
            "message": message,
            "status_code": status,
        }
        if details:
            error["details"] = details

        all_headers = dict(headers or {})
        if request_id:
            all_headers["x-request-id"] = request_id

        return cls.json(
            {
                "success": False,
                "error": error,
                "timestamp": utc_timestamp(),
                "request_id": request_id or "unknown",
            },
            status=status,
            headers=all_headers,
        )

    @classmethod
    def from_fault(
        cls,
        fault: Fault,
        *,
        request_id: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> "Response":
        """Render a fault; non-public faults get a generic message."""
        message = fault.message if fault.public else "Internal server error"
        details = fault.details if fault.public else None
        return cls.error(
            fault.code,
            message,
            fault.status,
            request_id=request_id,
            details=details,
            headers=headers,
        )

    # ========================================================================
    # ASGI
    # ========================================================================

    def _encode_body(self, content: Any) -> bytes:
        if isinstance(content, bytes):
            return content
        if isinstance(content, str):
            return content.encode(self.encoding)
        if isinstance(content, (dict, list)):
            return json.dumps(content, default=_json_default_serializer).encode(self.encoding)
        return str(content).encode(self.encoding)

    def _prepare_headers(self, body: bytes) -> List[tuple]:
        headers = dict(self._headers)
        headers["content-length"] = str(len(body))
        return [
            (name.encode("latin-1"), value.encode("latin-1"))
            for name, value in headers.items()
        ]

    async def send_asgi(self, send: Callable[[dict], Awaitable[None]]) -> None:
        """Send response via ASGI."""
        body = self.body
        await send({
            "type": "http.response.start",
            "status": self.status,
            "headers": self._prepare_headers(body),
        })
        await send({"type": "http.response.body", "body": body, "more_body": False})


# ============================================================================
# ApiResponse envelope
# ============================================================================

@dataclass
class ApiResponse:
    """
    Standard API response model.

    Handlers may return an ApiResponse; the engine renders it with
    ``status_code`` as the HTTP status.
    """

    success: bool
    data: Any = None
    error: Optional[str] = None
    message: Optional[str] = None
    status_code: Optional[int] = None

    @classmethod
    def ok(cls, data: Any, message: Optional[str] = None) -> "ApiResponse":
        return cls(success=True, data=data, message=message, status_code=200)

    @classmethod
    def created(cls, data: Any, message: Optional[str] = None) -> "ApiResponse":
        return cls(success=True, data=data, message=message, status_code=201)

    @classmethod
    def failure(cls, error: str, status_code: int = 500) -> "ApiResponse":
        return cls(success=False, error=error, status_code=status_code)

    @classmethod
    def not_found(cls, message: Optional[str] = None) -> "ApiResponse":
        return cls(success=False, error=message or "Resource not found", status_code=404)

    @classmethod
    def bad_request(cls, error: str) -> "ApiResponse":
        return cls(success=False, error=error, status_code=400)

    @classmethod
    def unauthorized(cls, message: Optional[str] = None) -> "ApiResponse":
        return cls(success=False, error=message or "Unauthorized", status_code=401)

    @classmethod
    def forbidden(cls, message: Optional[str] = None) -> "ApiResponse":
        return cls(success=False, error=message or "Forbidden", status_code=403)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize, omitting unset fields."""
        data: Dict[str, Any] = {"success": self.success}
        if self.data is not None:
            data["data"] = self.data
        if self.error is not None:
            data["error"] = self.error
        if self.message is not None:
            data["message"] = self.message
        if self.status_code is not None:
            data["status_code"] = self.status_code
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ApiResponse":
        return cls(
            success=bool(data.get("success", False)),
            data=data.get("data"),
            error=data.get("error"),
            message=data.get("message"),
            status_code=data.get("status_code"),
        )

    def to_response(self) -> Response:
        return Response.json(self.to_dict(), status=self.status_code or 200)
