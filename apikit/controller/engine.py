"""
Controller Engine - binds request data to handler arguments and turns
handler results into responses.
"""

from typing import Any, Dict, List, Optional, Union, get_args, get_origin, TYPE_CHECKING
import logging
import types

from .base import RequestCtx
from .metadata import ParameterSpec
from ..faults import InvalidParameterFault, MissingParameterFault
from ..request import Request
from ..response import ApiResponse, Response

if TYPE_CHECKING:
    from .compiler import Route


_TRUE_VALUES = ("true", "1", "yes", "on")
_FALSE_VALUES = ("false", "0", "no", "off")

def _unwrap_optional(annotation: Any) -> Any:
    """``Optional[int]`` -> ``int``; anything else unchanged."""
    origin = get_origin(annotation)
    if origin is Union or origin is getattr(types, "UnionType", None):
        args = [a for a in get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


class ControllerEngine:
    """
    Executes routes.

    Responsibilities:
    - Bind path/query/header/body/context values to handler parameters
    - Coerce declared scalar types (int, float, bool, str)
    - Convert handler results to Response objects
    """

    def __init__(self):
        self.logger = logging.getLogger("apikit.controller.engine")

    async def execute(
        self,
        route: "Route",
        request: Request,
        path_params: Dict[str, str],
        ctx: Optional[RequestCtx] = None,
    ) -> Response:
        """Run ``route`` for ``request`` with router-captured path values."""
        request.path_params = dict(path_params)
        if ctx is None:
            ctx = RequestCtx(request=request, request_id=request.state.get("request_id"))

        self.logger.debug("Executing %s.%s", route.controller_name, route.handler_name)

        result = await route.handler(request, ctx)
        return self.to_response(result)

    # ========================================================================
    # Binding
    # ========================================================================

    async def bind_arguments(
        self,
        specs: List[ParameterSpec],
        request: Request,
        ctx: RequestCtx,
    ) -> Dict[str, Any]:
        """
        Build handler keyword arguments.

        Raises:
            MissingParameterFault: required value absent
            InvalidParameterFault: value not convertible to its declared type
        """
        kwargs: Dict[str, Any] = {}
        for spec in specs:
            kwargs[spec.name] = await self._resolve(spec, request, ctx)
        return kwargs

    async def _resolve(self, spec: ParameterSpec, request: Request, ctx: RequestCtx) -> Any:
        source = spec.source

        if source == "request":
            return request
        if source == "ctx":
            return ctx
        if source == "method":
            return request.method
        if source == "path_info":
            return request.path
        if source == "host":
            return request.host
        if source == "url":
            return request.url
        if source == "body":
            return await self._resolve_body(spec, request)

        if source == "path":
            raw = request.path_params.get(spec.key)
        elif source == "query":
            if spec.key is None:
                return request.query_params.to_dict()
            raw = request.query_params.get(spec.key)
        elif source == "header":
            if spec.key is None:
                return request.headers.to_dict()
            raw = request.headers.get(spec.key)
        elif source == "context":
            if spec.key is None:
                return request.state
            value = request.state.get(spec.key)
            if value is None:
                return self._missing(spec)
            return value
        else:
            raise ValueError(f"Unknown parameter source '{source}' for {spec.name}")

        if raw is None:
            return self._missing(spec)
        return self._cast_value(raw, spec)

    def _missing(self, spec: ParameterSpec) -> Any:
        if spec.has_default:
            return spec.default
        if spec.required:
            raise MissingParameterFault(spec.key or spec.name, spec.source)
        return None

    async def _resolve_body(self, spec: ParameterSpec, request: Request) -> Any:
        annotation = _unwrap_optional(spec.annotation)

        if annotation is bytes:
            value = await request.body()
            empty = not value
        elif annotation is str:
            try:
                value = await request.text()
            except UnicodeDecodeError:
                raise InvalidParameterFault(spec.name, "body", "UTF-8 text")
            empty = not value
        else:
            value = await request.json()
            empty = value is None

        if empty:
            return self._missing(spec)

        if annotation is dict and not isinstance(value, dict):
            raise InvalidParameterFault(spec.name, "body", "JSON object")
        if annotation is list and not isinstance(value, list):
            raise InvalidParameterFault(spec.name, "body", "JSON array")
        return value

    def _cast_value(self, value: str, spec: ParameterSpec) -> Any:
        """Cast string value to the declared type."""
        annotation = _unwrap_optional(spec.annotation)
        source = spec.source
        name = spec.key or spec.name

        try:
            if annotation is int:
                return int(value)
            if annotation is float:
                return float(value)
        except ValueError:
            raise InvalidParameterFault(name, source, annotation.__name__)

        if annotation is bool:
            lowered = value.lower()
            if lowered in _TRUE_VALUES:
                return True
            if lowered in _FALSE_VALUES:
                return False
            raise InvalidParameterFault(name, source, "bool")

        return value

    # ========================================================================
    # Results
    # ========================================================================

    def to_response(self, result: Any) -> Response:
        """Convert handler result to Response."""
        if isinstance(result, Response):
            return result
        if isinstance(result, ApiResponse):
            return result.to_response()
        if isinstance(result, (dict, list, tuple)):
            return Response.json(list(result) if isinstance(result, tuple) else result)
        if isinstance(result, str):
            return Response.text(result)
        if result is None:
            return Response.no_content()
        return Response.json({"result": str(result)})
