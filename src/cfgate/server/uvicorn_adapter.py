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
"""Uvicorn ASGI server adapter."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version
from typing import Any

import uvicorn

from cfgate.server.properties import ServerInfo, ServerProperties


class UvicornServerAdapter:
    """Serves the gated application with Uvicorn."""

    def __init__(self) -> None:
        self._info: ServerInfo | None = None

    def build_kwargs(self, config: ServerProperties) -> dict[str, Any]:
        """Translate :class:`ServerProperties` into ``uvicorn.run`` keyword arguments."""
        kwargs: dict[str, Any] = {
            "host": config.host,
            "port": config.port,
            "workers": max(config.workers, 1),
            "log_level": "warning",
            "timeout_keep_alive": config.keep_alive_timeout,
            "backlog": config.backlog,
        }
        if config.graceful_timeout:
            kwargs["timeout_graceful_shutdown"] = config.graceful_timeout
        if config.ssl_certfile:
            kwargs["ssl_certfile"] = config.ssl_certfile
        if config.ssl_keyfile:
            kwargs["ssl_keyfile"] = config.ssl_keyfile
        if config.max_concurrent_connections:
            kwargs["limit_concurrency"] = config.max_concurrent_connections
        return kwargs

    def serve(self, app: str | Any, config: ServerProperties) -> None:
        """Start Uvicorn (blocking).

        More than one worker requires *app* to be an import string.
        """
        kwargs = self.build_kwargs(config)
        self._info = ServerInfo(
            name="uvicorn",
            version=self._get_version(),
            workers=kwargs["workers"],
            host=config.host,
            port=config.port,
        )
        uvicorn.run(app, **kwargs)

    @property
    def server_info(self) -> ServerInfo | None:
        return self._info

    @staticmethod
    def _get_version() -> str:
        try:
            return version("uvicorn")
        except PackageNotFoundError:
            return "unknown"
