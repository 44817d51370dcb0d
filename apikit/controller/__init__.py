"""
apikit controllers - decorators, parameter markers, route building and
dispatch.
"""

from .decorators import RestController, RouteDecorator, Get, Post, Put, Patch, Delete
from .params import (
    PathParam,
    QueryParam,
    RequestHeader,
    RequestBody,
    RequestContext,
    RequestMethod,
    RequestPath,
    RequestHost,
    RequestUrl,
)
from .base import Controller, HandlerRegistry, RequestCtx
from .metadata import ParameterSpec, extract_parameters, to_router_path
from .engine import ControllerEngine
from .compiler import (
    Route,
    RouteTable,
    RouteTableBuilder,
    annotation_routes,
    default_mount_path,
    get_available_routes,
)
from .router import Router, RouteMatch

__all__ = [
    "RestController",
    "RouteDecorator",
    "Get",
    "Post",
    "Put",
    "Patch",
    "Delete",
    "PathParam",
    "QueryParam",
    "RequestHeader",
    "RequestBody",
    "RequestContext",
    "RequestMethod",
    "RequestPath",
    "RequestHost",
    "RequestUrl",
    "Controller",
    "HandlerRegistry",
    "RequestCtx",
    "ParameterSpec",
    "extract_parameters",
    "to_router_path",
    "ControllerEngine",
    "Route",
    "RouteTable",
    "RouteTableBuilder",
    "annotation_routes",
    "default_mount_path",
    "get_available_routes",
    "Router",
    "RouteMatch",
]
