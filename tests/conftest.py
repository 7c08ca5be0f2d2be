from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Literal

from stackmux.rsgi import HTTPProtocol, HTTPScope, RSGIHTTPHandler


@dataclass
class MockHTTPScope:
    proto: Literal["http"] = "http"
    http_version: Literal["1", "1.1", "2"] = "1.1"
    rsgi_version: str = "1.0"
    server: str = "localhost"
    client: str = "127.0.0.1"
    scheme: str = "http"
    method: str = "GET"
    path: str = "/"
    query_string: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)
    authority: str | None = None


class MockHTTPProtocol:
    """Mock protocol that captures response data."""

    def __init__(self) -> None:
        self.response_status: int | None = None
        self.response_headers: list[tuple[str, str]] | None = None
        self.response_body: bytes | None = None

    async def __call__(self) -> bytes:
        return b""

    def __aiter__(self) -> bytes:
        raise NotImplementedError

    async def client_disconnect(self) -> None:
        raise NotImplementedError

    def response_empty(self, status: int, headers: list[tuple[str, str]]) -> None:
        self.response_status = status
        self.response_headers = headers
        self.response_body = b""

    def response_str(
        self, status: int, headers: list[tuple[str, str]], body: str
    ) -> None:
        self.response_status = status
        self.response_headers = headers
        self.response_body = body.encode("utf-8")

    def response_bytes(
        self, status: int, headers: list[tuple[str, str]], body: bytes
    ) -> None:
        self.response_status = status
        self.response_headers = headers
        self.response_body = body

    def response_file(
        self, status: int, headers: list[tuple[str, str]], file: str
    ) -> None:
        raise NotImplementedError

    def response_file_range(
        self,
        status: int,
        headers: list[tuple[str, str]],
        file: str,
        start: int,
        end: int,
    ) -> None:
        raise NotImplementedError

    def response_stream(self, status: int, headers: list[tuple[str, str]]) -> None:
        raise NotImplementedError


def mock_scope(
    path: str = "/",
    method: str = "GET",
    headers: dict[str, str] | None = None,
) -> HTTPScope:
    return MockHTTPScope(path=path, method=method, headers=headers or {})


def recording_middleware(
    name: str, record: list[str]
) -> Callable[[RSGIHTTPHandler], RSGIHTTPHandler]:
    """Middleware that appends "<name>:enter" / "<name>:exit" around the handler."""

    def middleware(handler: RSGIHTTPHandler) -> RSGIHTTPHandler:
        async def wrapped(scope: HTTPScope, proto: HTTPProtocol) -> None:
            record.append(f"{name}:enter")
            await handler(scope, proto)
            record.append(f"{name}:exit")

        return wrapped

    return middleware


def recording_handler(name: str, record: list[str]) -> RSGIHTTPHandler:
    async def handler(scope: HTTPScope, proto: HTTPProtocol) -> None:
        record.append(name)
        proto.response_str(200, [("content-type", "text/plain")], name)

    return handler
