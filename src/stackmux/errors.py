"""Errors raised while registering routes.

Everything here is raised at registration time. Once a Mux is fully
registered, serving a request cannot fail because of the router itself.
"""


class StackmuxError(ValueError):
    """Base class for all stackmux registration errors."""


class InvalidMiddlewareError(StackmuxError):
    """A middleware passed to use()/with_() was None or not callable."""


class InvalidPrefixError(StackmuxError):
    """A group prefix was non-empty and did not start with "/"."""


class MalformedPatternError(StackmuxError):
    """The route table could not parse a pattern."""


class DuplicatePatternError(StackmuxError):
    """A pattern conflicts with one already in the route table."""


class NilHandlerError(StackmuxError):
    """A handler of None was registered."""
