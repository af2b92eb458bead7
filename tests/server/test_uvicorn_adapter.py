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
"""Tests for UvicornServerAdapter."""
from __future__ import annotations

from unittest.mock import patch

from cfgate.server.properties import ServerInfo, ServerProperties
from cfgate.server.uvicorn_adapter import UvicornServerAdapter


class TestBuildKwargs:
    def test_defaults_bind_loopback(self):
        kwargs = UvicornServerAdapter().build_kwargs(ServerProperties())
        assert kwargs["host"] == "127.0.0.1"
        assert kwargs["port"] == 8888
        assert kwargs["workers"] == 1
        assert kwargs["timeout_keep_alive"] == 5
        assert kwargs["backlog"] == 1024
        assert kwargs["timeout_graceful_shutdown"] == 30
        assert "ssl_certfile" not in kwargs
        assert "limit_concurrency" not in kwargs

    def test_optional_settings_passed_through(self):
        props = ServerProperties(
            ssl_certfile="cert.pem",
            ssl_keyfile="key.pem",
            max_concurrent_connections=50,
            graceful_timeout=0,
        )
        kwargs = UvicornServerAdapter().build_kwargs(props)
        assert kwargs["ssl_certfile"] == "cert.pem"
        assert kwargs["ssl_keyfile"] == "key.pem"
        assert kwargs["limit_concurrency"] == 50
        assert "timeout_graceful_shutdown" not in kwargs

    def test_workers_never_below_one(self):
        kwargs = UvicornServerAdapter().build_kwargs(ServerProperties(workers=0))
        assert kwargs["workers"] == 1


class TestUvicornServerAdapter:
    def test_server_info_empty_before_serving(self):
        assert UvicornServerAdapter().server_info is None

    @patch("cfgate.server.uvicorn_adapter.uvicorn")
    def test_serve_calls_uvicorn_run(self, mock_uvicorn):
        adapter = UvicornServerAdapter()
        app = object()
        adapter.serve(app, ServerProperties(port=9000))

        mock_uvicorn.run.assert_called_once()
        args, kwargs = mock_uvicorn.run.call_args
        assert args == (app,)
        assert kwargs["port"] == 9000

        info = adapter.server_info
        assert isinstance(info, ServerInfo)
        assert info.name == "uvicorn"
        assert info.port == 9000
