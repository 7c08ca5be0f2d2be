"""HTTP request multiplexer with middleware stacks and route groups.

Inspired by go-chi/chi's Mux. All middleware is folded into handlers at
registration time, so dispatch costs exactly what the route table costs.

Registration (handle, use, group, with_) is not thread-safe: register
everything at startup, then serve. Once registration is done the Mux is safe
to serve concurrent requests.

Host-based patterns (``"example.com/users"``) are only supported on the Mux
itself; inside a group they are joined onto the prefix like any other path.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol, overload

from stackmux.chain import Middleware, validate_middleware, wrap
from stackmux.errors import InvalidPrefixError, NilHandlerError
from stackmux.pattern import join_pattern
from stackmux.rsgi import HTTPProtocol, HTTPScope, RSGIHTTPHandler
from stackmux.tree import RouteTable

logger = logging.getLogger(__name__)

type HandlerDecorator = Callable[[RSGIHTTPHandler], RSGIHTTPHandler]


class Router(Protocol):
    """What both Mux and Group offer, for code that accepts either."""

    def handle(self, pattern: str, handler: RSGIHTTPHandler) -> None: ...

    @overload
    def handle_func(self, pattern: str) -> HandlerDecorator: ...
    @overload
    def handle_func(
        self, pattern: str, handler: RSGIHTTPHandler
    ) -> RSGIHTTPHandler: ...
    def handle_func(
        self, pattern: str, handler: RSGIHTTPHandler | None = None
    ) -> RSGIHTTPHandler | HandlerDecorator: ...

    def use(self, *middleware: Middleware[RSGIHTTPHandler]) -> None: ...

    def group(self, prefix: str) -> Router: ...

    def with_(self, *middleware: Middleware[RSGIHTTPHandler]) -> Router: ...


@dataclass(slots=True)
class _Scope:
    """Middleware stack + prefix shared by Mux and Group.

    prefix is None for the Mux itself: its patterns go to the table untouched.
    The middleware list is owned by this scope alone; branching copies it.
    """

    table: RouteTable
    prefix: str | None = None
    middleware: list[Middleware[RSGIHTTPHandler]] = field(default_factory=list)

    def handle(self, pattern: str, handler: RSGIHTTPHandler) -> None:
        if handler is None:
            msg = f"nil handler for pattern {pattern!r}"
            raise NilHandlerError(msg)
        if self.prefix is not None:
            pattern = join_pattern(self.prefix, pattern)
        self.table.register(pattern, wrap(handler, tuple(self.middleware)))

    def handle_func(
        self, pattern: str, handler: RSGIHTTPHandler | None
    ) -> RSGIHTTPHandler | HandlerDecorator:
        if handler is not None:
            self.handle(pattern, handler)
            return handler

        def decorator(f: RSGIHTTPHandler) -> RSGIHTTPHandler:
            self.handle(pattern, f)
            return f

        return decorator

    def use(self, middleware: tuple[Middleware[RSGIHTTPHandler], ...]) -> None:
        validate_middleware(middleware)  # all or nothing
        self.middleware.extend(middleware)

    def branch(self, prefix: str) -> _Scope:
        if prefix and not prefix.startswith("/"):
            msg = f"group prefix must be empty or start with '/', provided {prefix=}"
            raise InvalidPrefixError(msg)
        if self.prefix is not None:
            prefix = join_pattern(self.prefix, prefix)
        return _Scope(self.table, prefix, list(self.middleware))


class Mux:
    """Root router: owns the route table and the top-level middleware stack.

    Example:
        mux = Mux()
        mux.use(access_log())
        mux.handle("GET /", home)

        api = mux.group("/api")
        api.use(require_auth)
        api.handle("GET /users/{id}", get_user)  # GET /api/users/{id}

        mux.with_(rate_limit).handle("POST /login", login)
    """

    __slots__ = ("_scope",)
    _scope: _Scope

    def __init__(
        self,
        *,
        not_found_handler: RSGIHTTPHandler | None = None,
        method_not_allowed_handler: RSGIHTTPHandler | None = None,
    ) -> None:
        self._scope = _Scope(
            RouteTable(
                not_found_handler=not_found_handler,
                method_not_allowed_handler=method_not_allowed_handler,
            )
        )

    async def __rsgi__(self, scope: HTTPScope, proto: HTTPProtocol) -> None:
        await self._scope.table.__rsgi__(scope, proto)

    def handle(self, pattern: str, handler: RSGIHTTPHandler) -> None:
        """Registers handler for pattern, wrapped in the middleware added so far.

        Later use() calls do not affect handlers that are already registered.
        Errors from the route table (duplicate or malformed pattern, None
        handler) propagate unchanged.
        """
        self._scope.handle(pattern, handler)

    @overload
    def handle_func(self, pattern: str) -> HandlerDecorator: ...
    @overload
    def handle_func(
        self, pattern: str, handler: RSGIHTTPHandler
    ) -> RSGIHTTPHandler: ...
    def handle_func(
        self, pattern: str, handler: RSGIHTTPHandler | None = None
    ) -> RSGIHTTPHandler | HandlerDecorator:
        """Like handle(), but usable as a decorator:

            @mux.handle_func("GET /health")
            async def health(scope, proto): ...
        """
        return self._scope.handle_func(pattern, handler)

    def use(self, *middleware: Middleware[RSGIHTTPHandler]) -> None:
        """Appends middleware for handlers registered after this call.

        use(A, B, C) then handle(..., H) gives A -> B -> C -> H -> C -> B -> A.
        Raises InvalidMiddlewareError, leaving the stack unchanged, if any
        middleware is None or not callable.
        """
        self._scope.use(middleware)

    def group(self, prefix: str) -> Group:
        """Creates a group under prefix with a copy of the current middleware.

        Raises InvalidPrefixError if prefix is non-empty and lacks a leading "/".
        """
        group = Group(self._scope.branch(prefix))
        logger.debug("created group %r", group.prefix)
        return group

    def with_(self, *middleware: Middleware[RSGIHTTPHandler]) -> Group:
        """Returns an unnamed group with extra middleware, for one-off routes:

            mux.with_(require_admin).handle("GET /admin", admin)
        """
        group = Group(self._scope.branch(""))
        group.use(*middleware)
        return group

    def lookup(
        self, method: str, path: str
    ) -> tuple[RSGIHTTPHandler, dict[str, str], str]:
        """Resolves a request to (handler, params, route) without calling it."""
        return self._scope.table.lookup(method, path)

    @property
    def engine(self) -> RouteTable:
        """The underlying route table.

        WARNING: handlers registered directly on it bypass all middleware.
        Meant for debugging, introspection and interop only.
        """
        return self._scope.table

    def format_routes(self) -> str:
        return self._scope.table.format_routes()


class Group:
    """Routes sharing a prefix and a middleware stack.

    Created by Mux.group(), Group.group() or with_(). A group holds its own
    copy of its parent's middleware taken at creation time; nothing added
    afterwards to either side leaks into the other.
    """

    __slots__ = ("_scope",)
    _scope: _Scope

    def __init__(self, scope: _Scope) -> None:
        self._scope = scope

    @property
    def prefix(self) -> str:
        return self._scope.prefix or ""

    def handle(self, pattern: str, handler: RSGIHTTPHandler) -> None:
        """Registers handler at prefix + pattern, e.g. "/api" + "GET /users"
        becomes "GET /api/users"."""
        self._scope.handle(pattern, handler)

    @overload
    def handle_func(self, pattern: str) -> HandlerDecorator: ...
    @overload
    def handle_func(
        self, pattern: str, handler: RSGIHTTPHandler
    ) -> RSGIHTTPHandler: ...
    def handle_func(
        self, pattern: str, handler: RSGIHTTPHandler | None = None
    ) -> RSGIHTTPHandler | HandlerDecorator:
        return self._scope.handle_func(pattern, handler)

    def use(self, *middleware: Middleware[RSGIHTTPHandler]) -> None:
        """Appends middleware to this group only."""
        self._scope.use(middleware)

    def group(self, prefix: str) -> Group:
        """Creates a nested group; "/api" then group("/v1") gives "/api/v1"."""
        group = Group(self._scope.branch(prefix))
        logger.debug("created group %r", group.prefix)
        return group

    def with_(self, *middleware: Middleware[RSGIHTTPHandler]) -> Group:
        group = Group(self._scope.branch(""))
        group.use(*middleware)
        return group
