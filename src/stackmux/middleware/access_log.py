"""Access log middleware.

Logs one line per request once the inner handler has returned:

    GET /api/users/42 (/api/users/{id}) 200 1.24ms
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from stackmux.tree import http_route

if TYPE_CHECKING:
    from collections.abc import Callable

    from stackmux.rsgi import (
        HTTPProtocol,
        HTTPScope,
        HTTPStreamTransport,
        RSGIHTTPHandler,
    )

_logger = logging.getLogger("stackmux.access")


class _StatusRecordingHTTPProtocol:
    """Wraps HTTPProtocol to capture the response status code."""

    __slots__ = ("_proto", "status")

    def __init__(self, proto: HTTPProtocol) -> None:
        self._proto = proto
        self.status: int | None = None

    async def __call__(self) -> bytes:
        return await self._proto()

    def __aiter__(self) -> bytes:
        return self._proto.__aiter__()

    async def client_disconnect(self) -> None:
        await self._proto.client_disconnect()

    def response_empty(self, status: int, headers: list[tuple[str, str]]) -> None:
        self.status = status
        self._proto.response_empty(status, headers)

    def response_str(
        self, status: int, headers: list[tuple[str, str]], body: str
    ) -> None:
        self.status = status
        self._proto.response_str(status, headers, body)

    def response_bytes(
        self, status: int, headers: list[tuple[str, str]], body: bytes
    ) -> None:
        self.status = status
        self._proto.response_bytes(status, headers, body)

    def response_file(
        self, status: int, headers: list[tuple[str, str]], file: str
    ) -> None:
        self.status = status
        self._proto.response_file(status, headers, file)

    def response_file_range(
        self,
        status: int,
        headers: list[tuple[str, str]],
        file: str,
        start: int,
        end: int,
    ) -> None:
        self.status = status
        self._proto.response_file_range(status, headers, file, start, end)

    def response_stream(
        self, status: int, headers: list[tuple[str, str]]
    ) -> HTTPStreamTransport:
        self.status = status
        return self._proto.response_stream(status, headers)


def access_log(
    *,
    logger: logging.Logger | None = None,
    level: int = logging.INFO,
) -> Callable[[RSGIHTTPHandler], RSGIHTTPHandler]:
    """Create access log middleware.

    Args:
        logger: Logger to write to. Defaults to the "stackmux.access" logger.
        level: Level for successful requests. Requests whose handler raises
            are logged with logger.exception and the error is re-raised.

    Example:
        mux.use(access_log())
        mux.with_(access_log(level=logging.DEBUG)).handle("GET /health", health)
    """
    log = logger or _logger

    def middleware(handler: RSGIHTTPHandler) -> RSGIHTTPHandler:
        async def logged_handler(scope: HTTPScope, proto: HTTPProtocol) -> None:
            recorder = _StatusRecordingHTTPProtocol(proto)
            start = time.perf_counter()
            try:
                await handler(scope, recorder)
            except Exception:
                log.exception("%s %s failed", scope.method, scope.path)
                raise
            elapsed_ms = (time.perf_counter() - start) * 1000
            log.log(
                level,
                "%s %s (%s) %s %.2fms",
                scope.method,
                scope.path,
                http_route.get(""),
                recorder.status if recorder.status is not None else "-",
                elapsed_ms,
            )

        return logged_handler

    return middleware
