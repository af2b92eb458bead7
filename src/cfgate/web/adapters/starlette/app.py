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
"""cfgate web application factory built on Starlette."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import BaseRoute, Mount, Route
from starlette.types import ASGIApp

from cfgate.core.ordering import get_order
from cfgate.exceptions import ConfigurationException
from cfgate.security.gate import AccessGate
from cfgate.web.adapters.starlette.filter_chain import WebFilterChainMiddleware
from cfgate.web.adapters.starlette.filters import AccessGateFilter, RequestLoggingFilter
from cfgate.web.ports.filter import WebFilter

if TYPE_CHECKING:
    from cfgate.core.config import Config

HEALTH_PATH = "/actuator/health"


async def _health(request: Request) -> JSONResponse:
    return JSONResponse({"status": "UP"})


def build_filter_chain(gate: AccessGate, extra_filters: Sequence[WebFilter] = ()) -> list[WebFilter]:
    """Return the gate, request logging and *extra_filters* sorted by ``@order``.

    The sort is stable and the gate is listed first, so it stays at the head
    of the chain even if another filter also claims ``HIGHEST_PRECEDENCE``.
    """
    filters: list[WebFilter] = [AccessGateFilter(gate), RequestLoggingFilter(), *extra_filters]
    filters.sort(key=lambda f: get_order(type(f)))
    return filters


def create_app(
    config: Config | None = None,
    gate: AccessGate | None = None,
    downstream: ASGIApp | None = None,
    extra_filters: Sequence[WebFilter] = (),
    debug: bool = False,
    lifespan: object | None = None,
) -> Starlette:
    """Create a Starlette application guarded by the access gate.

    Either *gate* or *config* must be given; with only *config* the gate is
    built from its ``app.*`` settings and a bad configuration raises
    :class:`ConfigurationException` here, before anything is served.

    *downstream* is the configuration service and is mounted at ``/``. Without
    one, only ``/actuator/health`` is served.
    """
    if gate is None:
        if config is None:
            raise ConfigurationException("create_app() needs either a Config or an AccessGate")
        gate = AccessGate.from_config(config)

    middleware = [
        Middleware(WebFilterChainMiddleware, filters=build_filter_chain(gate, extra_filters)),
    ]

    routes: list[BaseRoute] = []
    if downstream is not None:
        routes.append(Mount("/", app=downstream))
    else:
        routes.append(Route(HEALTH_PATH, _health))

    app = Starlette(
        debug=debug,
        middleware=middleware,
        routes=routes,
        lifespan=lifespan,  # type: ignore[arg-type]
    )
    app.state.access_gate = gate
    return app
