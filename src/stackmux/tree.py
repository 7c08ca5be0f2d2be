"""Zero dependency route table with path param support.

Inspired by go 1.22+ net/http's routingNode. This is the registration sink a
Mux writes wrapped handlers into; it knows nothing about middleware or groups.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from dataclasses import dataclass, field
from enum import Enum
from typing import Never

from stackmux.errors import (
    DuplicatePatternError,
    MalformedPatternError,
    NilHandlerError,
)
from stackmux.pattern import split_method_path
from stackmux.rsgi import HTTPProtocol, HTTPScope, RSGIHTTPHandler

logger = logging.getLogger(__name__)

path_params: ContextVar[dict[str, str]] = ContextVar("path_params")
http_route: ContextVar[str] = ContextVar("http_route")


class LeafKey(Enum):
    """Valid keys for leaf nodes: HTTP methods, or any method.

    Methods from the following RFCs are all observed:

        * RFC 9110: HTTP Semantics, obsoletes 7231, which obsoleted 2616
        * RFC 5789: PATCH Method for HTTP
    """

    CONNECT = "CONNECT"
    DELETE = "DELETE"
    GET = "GET"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"
    PATCH = "PATCH"
    POST = "POST"
    PUT = "PUT"
    TRACE = "TRACE"

    ANY_HTTP = "*"  # pattern registered without a method

    def __repr__(self) -> str:
        return str(self.value)


class FrozenDict[K, V](dict[K, V]):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._hash: int | None = None

    def __hash__(self) -> int:
        if self._hash is None:
            self._hash = hash(frozenset(self.items()))
        return self._hash

    def _immutable(self, *args, **kwargs) -> Never:
        msg = "FrozenDict is immutable"
        raise TypeError(msg)

    __setitem__ = __delitem__ = clear = pop = popitem = setdefault = update = _immutable


@dataclass(slots=True, frozen=True)
class Node[T]:
    """Segment-based trie node"""

    handler: T | None = field(default=None)
    children: FrozenDict[str | LeafKey, Node[T]] = field(default_factory=FrozenDict)
    wildcard: WildCardNode[T] | None = field(default=None)
    catchall: CatchAllNode[T] | None = field(default=None)


@dataclass(slots=True, frozen=True)
class WildCardNode[T]:
    name: str
    child: Node[T]


@dataclass(slots=True, frozen=True)
class CatchAllNode[T]:
    name: str
    child: Node[T]


@dataclass(slots=True, frozen=True)
class Route[T]:
    method: LeafKey
    path: str
    handler: T


class RouteTable:
    """Maps ``"[METHOD ]/path"`` patterns to handlers.

    Each path segment priority is: exact match > wildcard match > catchall match.
    A method-specific handler wins over one registered without a method, and
    a GET handler also answers HEAD.
    """

    __slots__ = ("_routes", "_tree", "method_not_allowed_handler", "not_found_handler")
    _tree: Node[RSGIHTTPHandler]
    _routes: list[Route[RSGIHTTPHandler]]

    def __init__(
        self,
        *,
        not_found_handler: RSGIHTTPHandler | None = None,
        method_not_allowed_handler: RSGIHTTPHandler | None = None,
    ) -> None:
        self._tree = Node()
        self._routes = []
        self.not_found_handler = not_found_handler or not_found
        self.method_not_allowed_handler = method_not_allowed_handler

    async def __rsgi__(self, scope: HTTPScope, proto: HTTPProtocol) -> None:
        handler, params, route = self.lookup(scope.method, scope.path)
        params_token = path_params.set(params)
        route_token = http_route.set(route)
        try:
            await handler(scope, proto)
        finally:
            http_route.reset(route_token)
            path_params.reset(params_token)

    def register(self, pattern: str, handler: RSGIHTTPHandler) -> None:
        """Adds handler for pattern, raising on nil handlers, bad or clashing patterns."""
        if handler is None:
            msg = f"nil handler for pattern {pattern!r}"
            raise NilHandlerError(msg)
        method, path = split_method_path(pattern)
        key = LeafKey(method) if method else LeafKey.ANY_HTTP
        _parse_segments(path)  # validate before touching the tree

        try:
            self._tree = _merge_trees(
                self._tree, _construct_route_tree(key, path, handler)
            )
        except DuplicatePatternError as e:
            msg = f"pattern {pattern!r} conflicts with an existing route: {e}"
            raise DuplicatePatternError(msg) from e
        self._routes.append(Route(key, path, handler))
        logger.debug("registered %s %s -> %s", key.value, path, _qualname(handler))

    def lookup(
        self, method: str, path: str
    ) -> tuple[RSGIHTTPHandler, dict[str, str], str]:
        """Returns (handler, params, route_pattern) for a request.

        route_pattern is the matched route (e.g. "/user/{id}"), or "" when an
        error handler is returned.
        """
        keys = _candidate_keys(method)
        node, params, route = _find_node(path, self._tree, keys)
        if node is not None:
            for key in keys:
                leaf = node.children.get(key)
                if leaf is not None and leaf.handler is not None:
                    return leaf.handler, params, route

        # path exists under some other method
        node, params, _ = _find_node(path, self._tree, None)
        if node is None:
            return self.not_found_handler, {}, ""
        if self.method_not_allowed_handler is not None:
            return self.method_not_allowed_handler, params, ""
        leaves = {k: v for k, v in node.children.items() if isinstance(k, LeafKey)}
        return method_not_allowed(_allowed_methods(leaves)), params, ""

    def routes(self) -> list[Route[RSGIHTTPHandler]]:
        """Registered routes, in registration order."""
        return list(self._routes)

    def format_routes(self) -> str:
        """Format registered routes as a column-aligned table:

            *      /                   home
            GET    /api/users          list_users
            POST   /api/users          create_user
            GET    /static/{path...}   static
        """
        rows = sorted(
            ((r.method.value, r.path, _qualname(r.handler)) for r in self._routes),
            key=lambda r: (r[1], r[0]),
        )
        if not rows:
            return ""
        method_w = max(len(r[0]) for r in rows)
        path_w = max(len(r[1]) for r in rows)
        return "\n".join(
            f"{method:<{method_w}}   {path:<{path_w}}   {handler}"
            for method, path, handler in rows
        )


async def not_found(_scope: HTTPScope, proto: HTTPProtocol) -> None:
    proto.response_str(
        404, [("content-type", "text/plain; charset=utf-8")], "404 page not found\n"
    )


def method_not_allowed(allow: tuple[str, ...]) -> RSGIHTTPHandler:
    """Default 405 handler advertising the methods the path does support."""

    async def handler(_scope: HTTPScope, proto: HTTPProtocol) -> None:
        proto.response_str(
            405,
            [
                ("allow", ", ".join(allow)),
                ("content-type", "text/plain; charset=utf-8"),
            ],
            "Method Not Allowed\n",
        )

    return handler


def _candidate_keys(method: str) -> list[LeafKey]:
    try:
        key = LeafKey(method)
    except ValueError:  # extension method, only a method-less route can serve it
        return [LeafKey.ANY_HTTP]
    if key == LeafKey.ANY_HTTP:
        return [LeafKey.ANY_HTTP]
    if key == LeafKey.HEAD:
        return [LeafKey.HEAD, LeafKey.GET, LeafKey.ANY_HTTP]
    return [key, LeafKey.ANY_HTTP]


def _allowed_methods(leaves: dict[LeafKey, Node]) -> tuple[str, ...]:
    allowed = {k.value for k in leaves if k != LeafKey.ANY_HTTP}
    if "GET" in allowed:
        allowed.add("HEAD")
    return tuple(sorted(allowed))


def _find_node[T](
    path: str, tree: Node[T], keys: list[LeafKey] | None
) -> tuple[Node[T] | None, dict[str, str], str]:
    """Finds the node for path that has a leaf for one of keys (any leaf if None).

    Each path segment priority is: exact match > wildcard match > catchall match,
    falling back to the next option when a branch has no match further down.
    """
    if not path.startswith("/"):
        return None, {}, ""
    found = _match(path[1:].split("/"), 0, tree, keys)
    if found is None:
        return None, {}, ""
    node, params, route_parts = found
    return node, params, "/" + "/".join(route_parts)


def _match[T](
    segments: list[str], i: int, node: Node[T], keys: list[LeafKey] | None
) -> tuple[Node[T], dict[str, str], list[str]] | None:
    if i == len(segments):
        return (node, {}, []) if _has_leaf(node, keys) else None
    seg = segments[i]

    child = node.children.get(seg)
    if child is not None:  # exact match
        found = _match(segments, i + 1, child, keys)
        if found is not None:
            leaf, params, parts = found
            return leaf, params, [seg, *parts]

    if node.wildcard is not None and seg:  # fallback to wildcard match
        found = _match(segments, i + 1, node.wildcard.child, keys)
        if found is not None:
            leaf, params, parts = found
            name = node.wildcard.name
            return leaf, {name: seg, **params}, ["{" + name + "}", *parts]

    if node.catchall is not None and _has_leaf(node.catchall.child, keys):
        name = node.catchall.name
        return (
            node.catchall.child,
            {name: "/".join(segments[i:])},
            ["{" + name + "...}"],
        )

    return None


def _has_leaf[T](node: Node[T], keys: list[LeafKey] | None) -> bool:
    if keys is None:
        return any(isinstance(k, LeafKey) for k in node.children)
    return any(k in node.children for k in keys)


def _parse_segments(path: str) -> list[tuple[str, str]]:
    """Classifies each path segment as ("literal" | "wildcard" | "catchall", value).

    Raises MalformedPatternError for anything the tree can't represent.
    """
    if not path.startswith("/"):
        msg = f"path must start with '/', provided {path=}"
        raise MalformedPatternError(msg)
    segments = path[1:].split("/")

    parsed: list[tuple[str, str]] = []
    seen: set[str] = set()
    for i, seg in enumerate(segments):
        if not (seg.startswith("{") and seg.endswith("}")):
            if "{" in seg or "}" in seg:
                msg = f"bad wildcard segment {seg!r} in {path=}"
                raise MalformedPatternError(msg)
            parsed.append(("literal", seg))
            continue

        if seg.endswith("...}"):
            kind, name = "catchall", seg[1:-4]
            if i != len(segments) - 1:
                msg = f"{{{name}...}} must be the last segment in {path=}"
                raise MalformedPatternError(msg)
        else:
            kind, name = "wildcard", seg[1:-1]
        if not name.isidentifier():
            msg = f"bad wildcard name {name!r} in {path=}"
            raise MalformedPatternError(msg)
        if name in seen:
            msg = f"duplicate wildcard name {name!r} in {path=}"
            raise MalformedPatternError(msg)
        seen.add(name)
        parsed.append((kind, name))

    return parsed


def _construct_route_tree[T](method: LeafKey, path: str, handler: T) -> Node[T]:
    """construct tree for handler on method/path"""
    child: Node[T] = Node(children=FrozenDict({method: Node(handler=handler)}))

    for kind, value in reversed(_parse_segments(path)):
        if kind == "catchall":
            child = Node(catchall=CatchAllNode(name=value, child=child))
        elif kind == "wildcard":
            child = Node(wildcard=WildCardNode(name=value, child=child))
        else:
            child = Node(children=FrozenDict({value: child}))

    return child


def _merge_trees[T](tree1: Node[T], tree2: Node[T]) -> Node[T]:
    """merge tree1 and tree2, error on conflict"""
    if tree1.handler is not None and tree2.handler is not None:
        msg = "nodes have conflicting handlers"
        raise DuplicatePatternError(msg)
    handler = tree1.handler if tree1.handler is not None else tree2.handler

    if tree1.wildcard is not None and tree2.wildcard is not None:
        if tree1.wildcard.name != tree2.wildcard.name:
            msg = (
                f"conflicting wildcards {{{tree1.wildcard.name}}} "
                f"and {{{tree2.wildcard.name}}}"
            )
            raise DuplicatePatternError(msg)
        wildcard: WildCardNode[T] | None = WildCardNode(
            name=tree1.wildcard.name,
            child=_merge_trees(tree1.wildcard.child, tree2.wildcard.child),
        )
    else:
        wildcard = tree1.wildcard or tree2.wildcard

    if tree1.catchall is not None and tree2.catchall is not None:
        if tree1.catchall.name != tree2.catchall.name:
            msg = (
                f"conflicting catchalls {{{tree1.catchall.name}...}} "
                f"and {{{tree2.catchall.name}...}}"
            )
            raise DuplicatePatternError(msg)
        catchall: CatchAllNode[T] | None = CatchAllNode(
            name=tree1.catchall.name,
            child=_merge_trees(tree1.catchall.child, tree2.catchall.child),
        )
    else:
        catchall = tree1.catchall or tree2.catchall

    tree1_keys = set(tree1.children.keys())
    tree2_keys = set(tree2.children.keys())
    children: FrozenDict[str | LeafKey, Node[T]] = FrozenDict(
        {k: tree1.children[k] for k in tree1_keys - tree2_keys}
        | {k: tree2.children[k] for k in tree2_keys - tree1_keys}
        | {
            k: _merge_trees(tree1.children[k], tree2.children[k])
            for k in tree1_keys & tree2_keys
        }
    )

    return Node(
        handler=handler,
        children=children,
        wildcard=wildcard,
        catchall=catchall,
    )


def _qualname(obj: object) -> str:
    """Extract __qualname__ from a callable, falling back to repr."""
    return str(obj.__qualname__) if hasattr(obj, "__qualname__") else repr(obj)
