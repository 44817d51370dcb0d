"""
Controller Metadata Extraction

Turns handler signatures and route paths into the binding plan the
engine follows at request time.
"""

from typing import Any, List, Optional, Set, get_type_hints, get_origin, get_args, Annotated
from dataclasses import dataclass
import inspect
import logging
import re

from .params import ParamMarker

logger = logging.getLogger("apikit.controller.metadata")

_PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")
_ROUTER_PLACEHOLDER_RE = re.compile(r"<(\w+)>")


@dataclass
class ParameterSpec:
    """
    How to obtain one handler argument.

    Attributes:
        name: Python parameter name
        source: 'path', 'query', 'header', 'body', 'context', 'method',
                'path_info', 'host', 'url', 'request' or 'ctx'
        key: Lookup key in the source (None injects the whole collection)
        annotation: Declared type (Annotated extras stripped)
        default: Default value if any
        required: Whether a missing value is a client error
    """
    name: str
    source: str
    key: Optional[str] = None
    annotation: Any = Any
    default: Any = inspect.Parameter.empty
    required: bool = True

    @property
    def has_default(self) -> bool:
        return self.default is not inspect.Parameter.empty


# ============================================================================
# Paths
# ============================================================================

def to_router_path(path: str) -> str:
    """
    Convert a declared path to router syntax.

    ``{id}`` placeholders become ``<id>``, a missing leading slash is added
    and an empty path means the mount root.
    """
    path = (path or "").strip()
    if not path:
        return "/"
    if not path.startswith("/"):
        path = "/" + path
    return _PLACEHOLDER_RE.sub(r"<\1>", path)


def path_placeholders(path: str) -> Set[str]:
    """Names of ``{name}`` or ``<name>`` placeholders in ``path``."""
    return set(_PLACEHOLDER_RE.findall(path)) | set(_ROUTER_PLACEHOLDER_RE.findall(path))


def compute_specificity(path: str) -> int:
    """0 for static paths, 1 for paths with placeholders."""
    return 1 if path_placeholders(path) else 0


def join_paths(prefix: str, path: str) -> str:
    """Join a mount prefix and a relative route path."""
    full = f"{prefix.rstrip('/')}/{path.lstrip('/')}"
    return full.rstrip('/') or '/'


# ============================================================================
# Parameters
# ============================================================================

def extract_parameters(func: Any, path: str = "") -> List[ParameterSpec]:
    """
    Build the ParameterSpec list for a handler.

    Parameters annotated with a marker (``Annotated[int, PathParam("id")]``)
    use that marker. Unmarked parameters are inferred: ``Request`` /
    ``RequestCtx`` typed (or named ``request`` / ``ctx``) get the request
    objects, names matching a path placeholder are path parameters and
    everything else is read from the query string.
    """
    from ..request import Request
    from .base import RequestCtx

    func = getattr(func, '__func__', func)
    signature = inspect.signature(func)
    try:
        type_hints = get_type_hints(func, include_extras=True)
    except (NameError, TypeError) as e:
        logger.debug("Could not resolve type hints for %s: %s", func.__qualname__, e)
        type_hints = {}

    placeholders = path_placeholders(path)
    specs = []

    for param_name, param in signature.parameters.items():
        if param_name in ('self', 'cls'):
            continue
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue

        annotation = type_hints.get(param_name, param.annotation)
        if get_origin(param.annotation) is Annotated:
            # get_type_hints on 3.10 wraps ``= None`` parameters in Optional
            annotation = param.annotation
        marker = None
        if get_origin(annotation) is Annotated:
            annotation, *extras = get_args(annotation)
            marker = next((e for e in extras if isinstance(e, ParamMarker)), None)
        if annotation is inspect.Parameter.empty:
            annotation = Any

        if marker is not None:
            specs.append(_spec_from_marker(param_name, param, annotation, marker))
            continue

        if annotation is Request or param_name == 'request':
            source = 'request'
        elif annotation is RequestCtx or param_name == 'ctx':
            source = 'ctx'
        elif param_name in placeholders:
            source = 'path'
        else:
            source = 'query'

        specs.append(ParameterSpec(
            name=param_name,
            source=source,
            key=param_name,
            annotation=annotation,
            default=param.default,
            required=source in ('path', 'query') and param.default is inspect.Parameter.empty,
        ))

    return specs


def _spec_from_marker(
    param_name: str,
    param: inspect.Parameter,
    annotation: Any,
    marker: ParamMarker,
) -> ParameterSpec:
    if marker.collects_all:
        key = None
    else:
        key = marker.name or param_name

    default = param.default
    if default is inspect.Parameter.empty and marker.has_default:
        default = marker.default

    if default is not inspect.Parameter.empty:
        required = False
    elif marker.required is not None:
        required = marker.required
    else:
        required = True

    return ParameterSpec(
        name=param_name,
        source=marker.source,
        key=key,
        annotation=annotation,
        default=default,
        required=required,
    )
