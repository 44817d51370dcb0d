"""
Parameter injection markers.

Used inside ``typing.Annotated`` on handler parameters::

    async def list_users(
        self,
        page: Annotated[int, QueryParam("page")] = 1,
        agent: Annotated[str, RequestHeader("user-agent")] = "",
        filters: Annotated[dict, QueryParam.all()] = None,
    ): ...

The Python default value of the parameter is the marker's default; a
parameter without one is required unless the marker says otherwise.
"""

from typing import Any, Optional

_MISSING = object()


class ParamMarker:
    """Base marker: where a handler argument comes from."""

    source: str = ""

    def __init__(
        self,
        name: Optional[str] = None,
        *,
        required: Optional[bool] = None,
        default: Any = _MISSING,
    ):
        self.name = name
        self.required = required
        self.default = default

    @property
    def has_default(self) -> bool:
        return self.default is not _MISSING

    @property
    def collects_all(self) -> bool:
        """True when the marker injects the whole collection (no name)."""
        return self.name is None

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"

    def __eq__(self, other: Any) -> bool:
        return (
            type(self) is type(other)
            and self.name == other.name
            and self.required == other.required
            and self.default is other.default
        )

    def __hash__(self) -> int:
        return hash((type(self), self.name))


class PathParam(ParamMarker):
    """Value of a ``{name}`` path segment; always required."""

    source = "path"

    def __init__(self, name: Optional[str] = None):
        super().__init__(name, required=True)

    @property
    def collects_all(self) -> bool:
        return False


class QueryParam(ParamMarker):
    """Query string value, or every query parameter with ``QueryParam.all()``."""

    source = "query"

    @classmethod
    def all(cls) -> "QueryParam":
        marker = cls(None, required=False)
        marker._all = True
        return marker

    _all = False

    @property
    def collects_all(self) -> bool:
        return self._all


class RequestHeader(ParamMarker):
    """Header value (case-insensitive), or all headers with ``RequestHeader.all()``."""

    source = "header"

    @classmethod
    def all(cls) -> "RequestHeader":
        marker = cls(None, required=False)
        marker._all = True
        return marker

    _all = False

    @property
    def collects_all(self) -> bool:
        return self._all


class RequestBody(ParamMarker):
    """
    Request body. ``dict``/``list`` annotations decode JSON, ``str`` gets
    the text and ``bytes`` the raw body.
    """

    source = "body"

    def __init__(self, *, required: bool = True, default: Any = _MISSING):
        super().__init__(None, required=required, default=default)

    @property
    def collects_all(self) -> bool:
        return False


class RequestContext(ParamMarker):
    """
    Entry of the per-request context (``request.state``), e.g. ``"user_id"``
    or ``"jwt_payload"`` set by the JWT middleware. Without a name the
    whole context dict is injected.
    """

    source = "context"

    def __init__(self, name: Optional[str] = None, *, required: bool = False, default: Any = _MISSING):
        super().__init__(name, required=required, default=default)


class _RequestAttribute(ParamMarker):

    def __init__(self):
        super().__init__(None, required=False)

    @property
    def collects_all(self) -> bool:
        return False


class RequestMethod(_RequestAttribute):
    """HTTP method of the request."""
    source = "method"


class RequestPath(_RequestAttribute):
    """Request path."""
    source = "path_info"


class RequestHost(_RequestAttribute):
    """Host the request was addressed to."""
    source = "host"


class RequestUrl(_RequestAttribute):
    """Full request URL."""
    source = "url"
