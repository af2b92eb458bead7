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
"""Tests for the cfgate CLI."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from cfgate.cli.main import cli
from cfgate.server.properties import ServerProperties

GATE_YAML = """\
app:
  allowed:
    origins: http://localhost:3000
  security:
    localhost:
      ipv4: 127.0.0.1
      ipv6: 0:0:0:0:0:0:0:1
    error:
      message: Local only
"""


@pytest.fixture
def gate_file(tmp_path: Path) -> Path:
    path = tmp_path / "cfgate.yaml"
    path.write_text(GATE_YAML)
    return path


class TestCLI:
    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "check" in result.output
        assert "run" in result.output


class TestCheckCommand:
    def test_valid_configuration(self, gate_file):
        result = CliRunner().invoke(cli, ["check", "--config", str(gate_file)])
        assert result.exit_code == 0, result.output
        assert "Access gate" in result.output
        assert "127.0.0.1" in result.output
        assert "Configuration OK" in result.output

    def test_missing_setting_fails(self, tmp_path):
        path = tmp_path / "cfgate.yaml"
        path.write_text("app:\n  allowed:\n    origins: http://localhost:3000\n")
        result = CliRunner().invoke(cli, ["check", "--config", str(path)])
        assert result.exit_code == 1
        assert "Invalid configuration" in result.output

    def test_missing_file_fails(self, tmp_path):
        result = CliRunner().invoke(cli, ["check", "--config", str(tmp_path / "absent.yaml")])
        assert result.exit_code == 1
        assert "Invalid configuration" in result.output


class TestRunCommand:
    def test_serves_with_overrides(self, gate_file):
        with patch("cfgate.server.uvicorn_adapter.UvicornServerAdapter.serve") as serve:
            result = CliRunner().invoke(
                cli, ["run", "--config", str(gate_file), "--host", "::1", "--port", "9100"]
            )

        assert result.exit_code == 0, result.output
        serve.assert_called_once()
        app, props = serve.call_args.args
        assert isinstance(props, ServerProperties)
        assert props.host == "::1"
        assert props.port == 9100
        assert props.workers == 1
        assert app.state.access_gate.denial_message == "Local only"

    def test_invalid_configuration_does_not_serve(self, tmp_path):
        path = tmp_path / "cfgate.yaml"
        path.write_text("app: {}\n")
        with patch("cfgate.server.uvicorn_adapter.UvicornServerAdapter.serve") as serve:
            result = CliRunner().invoke(cli, ["run", "--config", str(path)])

        assert result.exit_code == 1
        serve.assert_not_called()
