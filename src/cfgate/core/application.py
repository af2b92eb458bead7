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
"""Application bootstrap — loads config, configures logging, builds the gated app."""

from __future__ import annotations

import os
import platform
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

from cfgate.core.config import Config, env_key_for
from cfgate.exceptions import ConfigurationException
from cfgate.logging.port import LoggingPort
from cfgate.logging.structlog_adapter import StructlogAdapter
from cfgate.security.gate import AccessGate
from cfgate.server.properties import ServerProperties
from cfgate.web.adapters.starlette.app import create_app

if TYPE_CHECKING:
    from starlette.applications import Starlette
    from starlette.types import ASGIApp

PROFILES_KEY = "cfgate.profiles.active"


class CfgateApplication:
    """Bootstraps a gated configuration service.

    Startup sequence:
    1. Load configuration (defaults, cfgate.yaml, profile overlays, env vars)
    2. Configure logging from ``cfgate.logging`` (structlog unless another
       :class:`LoggingPort` is given)
    3. Build the access gate, failing fast on bad settings
    4. Build the Starlette app with the gate at the head of the filter chain
    """

    def __init__(
        self,
        config_path: str | Path | None = None,
        downstream: ASGIApp | None = None,
        config: Config | None = None,
        logging_port: LoggingPort | None = None,
    ) -> None:
        start = time.perf_counter()

        self.config = config if config is not None else self.load_config(config_path)

        self._logging: LoggingPort = logging_port if logging_port is not None else StructlogAdapter()
        self._logging.configure(self.config)
        self._logger = self._logging.get_logger("cfgate.core")

        name = str(self.config.get("cfgate.app.name", "cfgate"))
        self._logger.info(
            "starting_application",
            app=name,
            python=platform.python_version(),
            pid=os.getpid(),
        )
        for source in self.config.loaded_sources:
            self._logger.info("loaded_config", source=source)

        try:
            self.gate = AccessGate.from_config(self.config)
        except ConfigurationException as exc:
            self._logger.error("application_failed", app=name, error=str(exc), code=exc.code, **exc.context)
            raise

        self.server_properties = self.config.bind(ServerProperties)
        debug = str(self.config.get("cfgate.web.debug", "false")).lower() in ("true", "1", "yes")
        self.app: Starlette = create_app(gate=self.gate, downstream=downstream, debug=debug)

        self._startup_time = time.perf_counter() - start
        self._logger.info(
            "started_application",
            app=name,
            allowed_origins=sorted(self.gate.allowed_origins),
            localhost_ipv4=self.gate.peers.localhost_ipv4,
            localhost_ipv6=self.gate.peers.localhost_ipv6,
            startup_seconds=round(self._startup_time, 3),
        )

    @property
    def startup_time_seconds(self) -> float:
        return self._startup_time

    @staticmethod
    def active_profiles(config: Config | None = None) -> list[str]:
        """Profiles from ``CFGATE_PROFILES_ACTIVE`` or ``cfgate.profiles.active``."""
        raw: Any = os.environ.get(env_key_for(PROFILES_KEY))
        if raw is None and config is not None:
            raw = config.get(PROFILES_KEY)
        if not raw:
            return []
        if isinstance(raw, str):
            return [p.strip() for p in raw.split(",") if p.strip()]
        return [str(p) for p in raw]

    @classmethod
    def load_config(cls, config_path: str | Path | None) -> Config:
        """Load from an explicit file, or from the working directory's sources."""
        if config_path is not None:
            path = Path(config_path)
            if not path.is_file():
                raise ConfigurationException(
                    f"Configuration file not found: {path}",
                    code="GATE_CONFIG_FILE",
                    context={"path": str(path)},
                )
            profiles = cls.active_profiles(Config.from_file(path))
            return Config.from_file(path, active_profiles=profiles)

        base_dir = Path.cwd()
        profiles = cls.active_profiles(Config.from_sources(base_dir))
        return Config.from_sources(base_dir, active_profiles=profiles)
