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
"""Tests for create_app — chain assembly, downstream mounting, startup failures."""

from __future__ import annotations

import pytest
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute
from starlette.testclient import TestClient, WebSocketDenialResponse
from starlette.websockets import WebSocket

from cfgate.core.config import Config
from cfgate.core.ordering import HIGHEST_PRECEDENCE, order
from cfgate.exceptions import ConfigurationException
from cfgate.security.gate import CORS_ALLOW_ORIGIN, AccessGate
from cfgate.web.adapters.starlette.app import HEALTH_PATH, build_filter_chain, create_app
from cfgate.web.adapters.starlette.filters import AccessGateFilter, RequestLoggingFilter
from cfgate.web.filters import OncePerRequestFilter

GATE_CONFIG = {
    "app": {
        "allowed": {"origins": "http://localhost:3000"},
        "security": {
            "localhost": {"ipv4": "127.0.0.1", "ipv6": "0:0:0:0:0:0:0:1"},
            "error": {"message": "Only local requests are allowed"},
        },
    }
}


def _with_peer(app, host: str):
    async def _app(scope, receive, send):
        if scope["type"] in ("http", "websocket"):
            scope = dict(scope)
            scope["client"] = (host, 50000)
        await app(scope, receive, send)

    return _app


async def _environment(request: Request) -> JSONResponse:
    return JSONResponse(
        {
            "name": request.path_params["application"],
            "profiles": [request.path_params["profile"]],
            "propertySources": [],
        }
    )


def _config_service() -> Starlette:
    return Starlette(routes=[Route("/{application}/{profile}", _environment)])


socket_calls: list[str] = []


async def _config_socket(websocket: WebSocket) -> None:
    socket_calls.append(websocket.url.path)
    await websocket.accept()
    await websocket.send_text("secret-config")
    await websocket.close()


def _socket_service() -> Starlette:
    return Starlette(routes=[WebSocketRoute("/ws", _config_socket)])


@order(HIGHEST_PRECEDENCE)
class GreedyFilter(OncePerRequestFilter):
    """Claims the same precedence as the gate."""

    async def do_filter(self, request, call_next):
        return await call_next(request)


class TestBuildFilterChain:
    def test_gate_first_then_logging(self):
        gate = AccessGate.from_config(Config(GATE_CONFIG))
        chain = build_filter_chain(gate)
        assert [type(f) for f in chain] == [AccessGateFilter, RequestLoggingFilter]

    def test_gate_stays_first_on_precedence_tie(self):
        gate = AccessGate.from_config(Config(GATE_CONFIG))
        chain = build_filter_chain(gate, [GreedyFilter()])
        assert isinstance(chain[0], AccessGateFilter)
        assert isinstance(chain[1], GreedyFilter)


class TestCreateApp:
    def test_health_served_without_downstream(self):
        app = create_app(config=Config(GATE_CONFIG))
        resp = TestClient(_with_peer(app, "127.0.0.1")).get(HEALTH_PATH)
        assert resp.status_code == 200
        assert resp.json() == {"status": "UP"}

    def test_health_is_gated_too(self):
        app = create_app(config=Config(GATE_CONFIG))
        resp = TestClient(_with_peer(app, "192.168.1.1")).get(HEALTH_PATH)
        assert resp.status_code == 403

    def test_downstream_reached_from_localhost(self):
        app = create_app(config=Config(GATE_CONFIG), downstream=_config_service())
        client = TestClient(_with_peer(app, "127.0.0.1"))
        resp = client.get("/orders/dev", headers={"Origin": "http://localhost:3000"})
        assert resp.status_code == 200
        assert resp.json()["name"] == "orders"
        assert resp.headers[CORS_ALLOW_ORIGIN] == "http://localhost:3000"

    def test_downstream_not_reached_from_remote_peer(self):
        app = create_app(config=Config(GATE_CONFIG), downstream=_config_service())
        resp = TestClient(_with_peer(app, "10.0.0.8")).get("/orders/dev")
        assert resp.status_code == 403
        assert resp.json()["detail"] == "Only local requests are allowed"

    def test_explicit_gate_is_used(self):
        gate = AccessGate.create("http://a.example", "10.0.0.1", "fd00::1", "nope")
        app = create_app(gate=gate)
        assert app.state.access_gate is gate
        assert TestClient(_with_peer(app, "10.0.0.1")).get(HEALTH_PATH).status_code == 200

    def test_missing_settings_fail_at_creation(self):
        with pytest.raises(ConfigurationException):
            create_app(config=Config({}))

    def test_needs_config_or_gate(self):
        with pytest.raises(ConfigurationException):
            create_app()


class TestCreateAppWebSocket:
    def test_local_peer_opens_socket(self):
        socket_calls.clear()
        app = create_app(config=Config(GATE_CONFIG), downstream=_socket_service())
        with TestClient(_with_peer(app, "127.0.0.1")).websocket_connect("/ws") as ws:
            assert ws.receive_text() == "secret-config"
        assert socket_calls == ["/ws"]

    def test_remote_peer_handshake_refused(self):
        socket_calls.clear()
        app = create_app(config=Config(GATE_CONFIG), downstream=_socket_service())
        client = TestClient(_with_peer(app, "192.168.1.1"))

        with pytest.raises(WebSocketDenialResponse) as exc_info:
            with client.websocket_connect("/ws", headers={"Origin": "http://localhost:3000"}) as ws:
                ws.receive_text()

        denial = exc_info.value
        assert denial.status_code == 403
        assert denial.json()["detail"] == "Only local requests are allowed"
        assert denial.headers[CORS_ALLOW_ORIGIN] == "http://localhost:3000"
        assert socket_calls == []

    def test_plain_get_and_socket_get_same_answer(self):
        app = create_app(config=Config(GATE_CONFIG), downstream=_socket_service())
        client = TestClient(_with_peer(app, "10.0.0.8"))
        assert client.get("/ws").status_code == 403
        with pytest.raises(WebSocketDenialResponse):
            with client.websocket_connect("/ws"):
                pass
