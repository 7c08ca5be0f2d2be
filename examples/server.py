# /// script
# requires-python = ">=3.12"
# dependencies = [
#     "stackmux",
#     "granian[uvloop]>=2.6.0,<3.0.0",
# ]
#
# [tool.uv.sources]
# stackmux = { path = "../", editable = true }
# ///
"""RSGI server demo.

Fully functional web server using Granian + stackmux Mux, showing global
middleware, nested groups, one-off middleware with with_() and chain().
"""

import asyncio
import json
import logging
from json.decoder import JSONDecodeError

from granian.server.embed import Server

from stackmux import Mux, chain, path_params
from stackmux.middleware.access_log import access_log
from stackmux.rsgi import HTTPProtocol, HTTPScope, RSGIHTTPHandler

ADDRESS = "127.0.0.1"
PORT = 8000

_users: dict[int, str] = {1: "ada", 2: "grace"}


def require_token(handler: RSGIHTTPHandler) -> RSGIHTTPHandler:
    async def authorized(scope: HTTPScope, proto: HTTPProtocol) -> None:
        if scope.headers.get("authorization") != "Bearer secret":
            proto.response_str(401, [("content-type", "text/plain")], "Unauthorized")
            return
        await handler(scope, proto)

    return authorized


def json_content_type(handler: RSGIHTTPHandler) -> RSGIHTTPHandler:
    async def checked(scope: HTTPScope, proto: HTTPProtocol) -> None:
        if not scope.headers.get("content-type", "").startswith("application/json"):
            proto.response_str(415, [("content-type", "text/plain")], "Expected JSON")
            return
        await handler(scope, proto)

    return checked


async def home(s: HTTPScope, p: HTTPProtocol) -> None:
    p.response_str(200, [("content-type", "text/plain")], "Welcome home")


async def list_users(s: HTTPScope, p: HTTPProtocol) -> None:
    serialized = json.dumps([{"id": k, "name": v} for k, v in _users.items()])
    p.response_str(200, [("content-type", "application/json")], serialized)


async def get_user(s: HTTPScope, p: HTTPProtocol) -> None:
    try:
        user_id = int(path_params.get()["id"])
    except ValueError:
        p.response_str(404, [("content-type", "text/plain")], "Not found")
        return
    if user_id not in _users:
        p.response_str(404, [("content-type", "text/plain")], "Not found")
        return
    serialized = json.dumps({"id": user_id, "name": _users[user_id]})
    p.response_str(200, [("content-type", "application/json")], serialized)


async def create_user(s: HTTPScope, p: HTTPProtocol) -> None:
    body = await p()
    try:
        name = json.loads(body)["name"]
    except (JSONDecodeError, KeyError, TypeError):
        p.response_str(422, [("content-type", "text/plain")], "Missing name")
        return
    user_id = max(_users, default=0) + 1
    _users[user_id] = name
    serialized = json.dumps({"id": user_id, "name": name})
    p.response_str(201, [("content-type", "application/json")], serialized)


def build_mux() -> Mux:
    mux = Mux()
    mux.use(access_log())
    mux.handle("GET /", home)

    api = mux.group("/api/v1")
    api.handle("GET /users", list_users)
    api.handle("GET /users/{id}", get_user)
    api.with_(chain(require_token, json_content_type)).handle(
        "POST /users", create_user
    )
    return mux


async def main() -> None:
    logging.basicConfig(level=logging.INFO)

    mux = build_mux()
    print(mux.format_routes())

    server = Server(mux, address=ADDRESS, port=PORT, log_access=False)
    try:
        await server.serve()
    except asyncio.CancelledError:
        pass


if __name__ == "__main__":
    asyncio.run(main())
