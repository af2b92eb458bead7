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
"""AccessGateFilter — CORS reflection and localhost-only admission.

Runs **first** in the chain, before request logging and before the
downstream configuration service. For every request and every WebSocket
handshake it:

1. asks the :class:`~cfgate.security.gate.AccessGate` for a decision;
2. on ``FORWARDED`` calls the next filter exactly once and lays the CORS
   headers (if any) onto the response it gets back;
3. on ``REJECTED`` never calls the next filter and answers 403 with the
   configured denial message, still carrying any CORS headers. A refused
   handshake never reaches the downstream socket handler.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import cast

import structlog
from starlette.requests import HTTPConnection
from starlette.responses import Response

from cfgate.core.ordering import HIGHEST_PRECEDENCE, order
from cfgate.security.gate import HEADER_ORIGIN, AccessGate
from cfgate.web.adapters.starlette.problem import problem_response
from cfgate.web.filters import OncePerRequestFilter
from cfgate.web.ports.filter import ALL_CONNECTION_SCOPES, CallNext

logger = structlog.get_logger("cfgate.security")

FORBIDDEN = 403


@order(HIGHEST_PRECEDENCE)
class AccessGateFilter(OncePerRequestFilter):
    """Filter form of :class:`AccessGate`."""

    scope_types = ALL_CONNECTION_SCOPES

    def __init__(self, gate: AccessGate) -> None:
        self._gate = gate

    @property
    def gate(self) -> AccessGate:
        return self._gate

    async def do_filter(self, request: HTTPConnection, call_next: CallNext) -> Response | None:
        origin = request.headers.get(HEADER_ORIGIN)
        remote_addr = request.client.host if request.client is not None else None
        decision = self._gate.evaluate(origin, remote_addr)

        if decision.cors_headers:
            logger.debug("cors_headers_applied", origin=origin, path=request.url.path)

        if decision.rejected:
            logger.warning(
                "access_denied",
                remote_addr=remote_addr,
                method=_method(request),
                scope_type=request.scope["type"],
                path=request.url.path,
                origin=origin,
            )
            return problem_response(
                status=FORBIDDEN,
                title="Forbidden",
                detail=cast(str, decision.message),
                path=request.url.path,
                headers=decision.cors_headers,
            )

        response = cast("Response | None", await call_next(request))
        if response is not None:
            _apply_headers(response, decision.cors_headers)
        return response


def _method(connection: HTTPConnection) -> str:
    # A WebSocket handshake is a GET upgrade; its ASGI scope has no method.
    return cast(str, connection.scope.get("method", "GET"))


def _apply_headers(response: Response, headers: Mapping[str, str]) -> None:
    """Set *headers* that the downstream response did not set itself."""
    for name, value in headers.items():
        if name not in response.headers:
            response.headers[name] = value
