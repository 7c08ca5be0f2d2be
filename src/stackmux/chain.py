"""Middleware folding.

Every way of building up a middleware stack (use, group inheritance, with_,
chain) ends up in ``wrap``, so ordering is the same however the list was put
together: the first middleware is the outermost layer.
"""

from collections.abc import Callable, Iterable, Sequence
from functools import reduce

from stackmux.errors import InvalidMiddlewareError

type Middleware[T] = Callable[[T], T]


def wrap[T](handler: T, middleware: Sequence[Middleware[T]]) -> T:
    """Wraps handler in middleware, last to first.

    For ``[A, B, C]`` a request flows A -> B -> C -> handler -> C -> B -> A.
    An empty sequence returns handler unchanged.
    """
    return reduce(lambda h, m: m(h), reversed(middleware), handler)


def chain[T](*middleware: Middleware[T]) -> Middleware[T]:
    """Composes middleware into a single reusable middleware.

    ``chain(A, B, C)(h)`` behaves exactly like ``wrap(h, [A, B, C])``, so a
    precomposed stack can be dropped into another list as one unit:

        auth_stack = chain(access_log(), require_auth, rate_limit)
        mux.with_(auth_stack).handle("GET /admin", admin)
    """
    stack = tuple(middleware)

    def chained(handler: T) -> T:
        return wrap(handler, stack)

    return chained


def validate_middleware[T](middleware: Iterable[Middleware[T] | None]) -> None:
    """Raises InvalidMiddlewareError if any element is None or not callable."""
    for i, m in enumerate(middleware):
        if m is None or not callable(m):
            msg = f"invalid middleware at position {i}: {m!r}"
            raise InvalidMiddlewareError(msg)
