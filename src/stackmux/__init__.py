from importlib.metadata import version

from .chain import Middleware, chain, wrap
from .errors import (
    DuplicatePatternError,
    InvalidMiddlewareError,
    InvalidPrefixError,
    MalformedPatternError,
    NilHandlerError,
    StackmuxError,
)
from .mux import Group, Mux, Router
from .pattern import join_pattern, split_method_path
from .tree import RouteTable, http_route, path_params

__all__ = [
    "DuplicatePatternError",
    "Group",
    "InvalidMiddlewareError",
    "InvalidPrefixError",
    "MalformedPatternError",
    "Middleware",
    "Mux",
    "NilHandlerError",
    "RouteTable",
    "Router",
    "StackmuxError",
    "__version__",
    "chain",
    "http_route",
    "join_pattern",
    "path_params",
    "split_method_path",
    "wrap",
]

__version__ = version("stackmux")
