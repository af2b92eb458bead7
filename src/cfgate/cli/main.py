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
"""cfgate CLI — validate the gate configuration and run the gated server."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click
from rich.table import Table

from cfgate.cli.console import console
from cfgate.core.config import Config
from cfgate.exceptions import ConfigurationException

if TYPE_CHECKING:
    from cfgate.security.gate import AccessGate

_config_option = click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Configuration file (default: cfgate.yaml / config/cfgate.yaml in the working directory).",
)


@click.group()
@click.version_option(package_name="cfgate")
def cli() -> None:
    """cfgate — localhost-only access gate for a configuration service."""


@cli.command("check")
@_config_option
def check_command(config_path: Path | None) -> None:
    """Validate the access gate settings and print what was resolved."""
    from cfgate.core.application import CfgateApplication
    from cfgate.security.gate import AccessGate

    try:
        config = CfgateApplication.load_config(config_path)
        gate = AccessGate.from_config(config)
    except ConfigurationException as exc:
        console.print(f"[error]Invalid configuration:[/error] {exc}")
        raise SystemExit(1) from None

    _print_gate(config, gate)
    console.print("[success]Configuration OK[/success]")


@cli.command("run")
@_config_option
@click.option("--host", default=None, help="Bind address (default: cfgate.server.host).")
@click.option("--port", default=None, type=int, help="Port number (default: cfgate.server.port).")
def run_command(config_path: Path | None, host: str | None, port: int | None) -> None:
    """Start the gated server."""
    from cfgate.core.application import CfgateApplication
    from cfgate.server.uvicorn_adapter import UvicornServerAdapter

    try:
        application = CfgateApplication(config_path=config_path)
    except ConfigurationException as exc:
        console.print(f"[error]Invalid configuration:[/error] {exc}")
        raise SystemExit(1) from None

    server_properties = application.server_properties
    if host is not None:
        server_properties.host = host
    if port is not None:
        server_properties.port = port
    # An app object cannot be shared across worker processes.
    server_properties.workers = 1

    console.print(
        f"[cfgate]cfgate[/cfgate] listening on "
        f"[info]http://{server_properties.host}:{server_properties.port}[/info]"
    )
    UvicornServerAdapter().serve(application.app, server_properties)


def _print_gate(config: Config, gate: AccessGate) -> None:
    table = Table(title="Access gate", show_header=True)
    table.add_column("Setting", style="info")
    table.add_column("Value")
    table.add_row("app.allowed.origins", "\n".join(sorted(gate.allowed_origins)))
    table.add_row("app.security.localhost.ipv4", gate.peers.localhost_ipv4)
    table.add_row("app.security.localhost.ipv6", gate.peers.localhost_ipv6)
    table.add_row("app.security.error.message", gate.denial_message)
    console.print(table)
    for source in config.loaded_sources:
        console.print(f"  [dim]loaded {source}[/dim]")
