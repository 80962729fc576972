from importlib.metadata import version

from .client import api, delete, get, post, put, request
from .config import RequestConfig, Settings, configure, settings
from .dispatcher import Envelope, RequestDispatcher
from .errors import (
    ApiError,
    BusinessError,
    HttpStatusError,
    InvalidPathError,
    TransportError,
)
from .tree import CallShape, PathSpec, RouteNode, RouteTree, Verb, parse_path
from .url import build_url

__all__ = [
    "ApiError",
    "BusinessError",
    "CallShape",
    "Envelope",
    "HttpStatusError",
    "InvalidPathError",
    "PathSpec",
    "RequestConfig",
    "RequestDispatcher",
    "RouteNode",
    "RouteTree",
    "Settings",
    "TransportError",
    "Verb",
    "__version__",
    "api",
    "build_url",
    "configure",
    "delete",
    "get",
    "parse_path",
    "post",
    "put",
    "request",
    "settings",
]

__version__ = version("apitree")
