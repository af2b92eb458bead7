# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""WebFilterChainMiddleware — runs the ordered WebFilters for HTTP and WebSocket scopes.

HTTP requests go through every filter and the downstream response is
recorded so filters can decorate it. A WebSocket handshake goes through the
filters that declare ``"websocket"`` in their ``scope_types``. If one of
them answers with a response, the handshake is refused and the downstream
app never sees the socket. ``lifespan`` and any other scope pass straight
through.
"""

from __future__ import annotations

from collections.abc import Sequence
from functools import partial
from typing import Any, cast

from starlette import status
from starlette.requests import HTTPConnection, Request
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send
from starlette.websockets import WebSocket

from cfgate.web.ports.filter import HTTP_SCOPES, CallNext, WebFilter

DENIAL_EXTENSION = "websocket.http.response"


class WebFilterChainMiddleware:
    """Pure ASGI middleware that executes an ordered chain of :class:`WebFilter` instances.

    Filters run in the sequence given; callers sort them by ``@order`` first.
    A filter whose ``should_not_filter()`` returns ``True`` is skipped.
    """

    def __init__(self, app: ASGIApp, filters: Sequence[WebFilter] = ()) -> None:
        self.app = app
        self._filters = list(filters)

    @property
    def filters(self) -> list[WebFilter]:
        return list(self._filters)

    def filters_for(self, scope_type: str) -> list[WebFilter]:
        """Filters that take part in a scope of *scope_type*."""
        return [f for f in self._filters if scope_type in getattr(f, "scope_types", HTTP_SCOPES)]

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            await self._dispatch_http(scope, receive, send)
        elif scope["type"] == "websocket":
            await self._dispatch_websocket(scope, receive, send)
        else:
            await self.app(scope, receive, send)

    async def _dispatch_http(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive, send)
        terminal = partial(self._record_downstream, scope, receive)
        response = cast(Response, await self._build_chain("http", terminal)(request))
        await response(scope, receive, send)

    async def _dispatch_websocket(self, scope: Scope, receive: Receive, send: Send) -> None:
        connection = HTTPConnection(scope, receive)

        async def _open_socket(conn: HTTPConnection) -> None:
            await self.app(scope, receive, send)

        refusal = await self._build_chain("websocket", _open_socket)(connection)
        if refusal is not None:
            await _refuse_handshake(WebSocket(scope, receive, send), cast(Response, refusal))

    def _build_chain(self, scope_type: str, terminal: CallNext) -> CallNext:
        chain = terminal
        for web_filter in reversed(self.filters_for(scope_type)):
            chain = _wrap(web_filter, chain)
        return chain

    async def _record_downstream(self, scope: Scope, receive: Receive, request: Any) -> Response:
        recorder = _ResponseRecorder()
        await self.app(scope, receive, recorder)
        return recorder.to_response()


class _ResponseRecorder:
    """ASGI ``send`` stand-in that keeps the downstream's response messages."""

    def __init__(self) -> None:
        self.start: Message | None = None
        self.body = bytearray()

    async def __call__(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            self.start = message
        elif message["type"] == "http.response.body":
            self.body.extend(message.get("body", b""))

    def to_response(self) -> Response:
        if self.start is None:
            raise RuntimeError("Downstream app finished without starting a response")
        response = Response(content=bytes(self.body), status_code=self.start["status"])
        response.raw_headers[:] = list(self.start.get("headers", []))
        return response


async def _refuse_handshake(websocket: WebSocket, response: Response) -> None:
    """Send *response* as the handshake answer, or close with 1008 if the server can't."""
    if DENIAL_EXTENSION in websocket.scope.get("extensions", {}):
        await websocket.send_denial_response(response)
    else:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)


def _wrap(web_filter: WebFilter, next_call: CallNext) -> CallNext:
    """Create a closure that conditionally invokes *web_filter*."""

    async def _inner(connection: HTTPConnection) -> Any:
        if web_filter.should_not_filter(connection):
            return await next_call(connection)
        mark_filtered = getattr(web_filter, "mark_filtered", None)
        if mark_filtered is not None:
            mark_filtered(connection)
        return await web_filter.do_filter(connection, next_call)

    return _inner
