"""Pattern string algebra: method splitting and prefix joining.

A pattern is ``"[METHOD ]path"``, e.g. ``"GET /users/{id}"`` or ``"/users"``.
"""

from typing import Literal

type HTTPMethod = Literal[
    "CONNECT", "DELETE", "GET", "HEAD", "OPTIONS", "PATCH", "POST", "PUT", "TRACE"
]

# RFC 9110 + RFC 5789 (PATCH). Matched case-sensitively.
METHODS: frozenset[str] = frozenset(
    {"CONNECT", "DELETE", "GET", "HEAD", "OPTIONS", "PATCH", "POST", "PUT", "TRACE"}
)


def split_method_path(pattern: str) -> tuple[str, str]:
    """Separates an optional method token from the path of a pattern.

    Splits on the first space only. A leading word that is not a recognised
    method stays part of the path, space included:

        "GET /users"       -> ("GET", "/users")
        "/users"           -> ("", "/users")
        "UNKNOWN /users"   -> ("", "UNKNOWN /users")
    """
    method, sep, path = pattern.partition(" ")
    if not sep:
        return "", pattern
    if method in METHODS:
        return method, path
    return "", pattern


def join_pattern(prefix: str, pattern: str) -> str:
    """Joins a group prefix onto a pattern, keeping any method token in front.

        join_pattern("/api", "GET /users") -> "GET /api/users"
        join_pattern("/api/", "/users")    -> "/api/users"
        join_pattern("/api", "users")      -> "/api/users"
        join_pattern("/", "/test")         -> "/test"
    """
    method, path = split_method_path(pattern)

    prefix = prefix.removesuffix("/")  # one slash only
    if not path.startswith("/"):
        path = "/" + path

    joined = prefix + path
    if method:
        return f"{method} {joined}"
    return joined
