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
"""Access gate — CORS origin reflection plus localhost-only admission.

The gate is a pair of frozen value objects built once at startup:

- :class:`OriginMatcher` decides which CORS headers (if any) a response gets.
- :class:`PeerAuthenticator` decides whether the request may proceed.

:class:`AccessGate` composes both and exposes :meth:`AccessGate.evaluate`,
a pure function of the configuration and two request fields. Framework
wiring lives in :mod:`cfgate.web.adapters.starlette.filters.access_gate_filter`.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from cfgate.core.config import Config
from cfgate.core.value import Value
from cfgate.exceptions import ConfigurationException

# CORS response headers
CORS_ALLOW_ORIGIN = "Access-Control-Allow-Origin"
CORS_ALLOW_METHODS = "Access-Control-Allow-Methods"
CORS_ALLOW_HEADERS = "Access-Control-Allow-Headers"
CORS_ALLOW_CREDENTIALS = "Access-Control-Allow-Credentials"

CORS_METHODS_VALUE = "GET,POST,PUT,DELETE,OPTIONS"
CORS_HEADERS_VALUE = "*"
CORS_CREDENTIALS_VALUE = "true"

HEADER_ORIGIN = "Origin"
ORIGINS_DELIMITER = ","

# Configuration keys
ALLOWED_ORIGINS = Value("${app.allowed.origins}")
LOCALHOST_IPV4 = Value("${app.security.localhost.ipv4}")
LOCALHOST_IPV6 = Value("${app.security.localhost.ipv6}")
ERROR_MESSAGE = Value("${app.security.error.message}")


class GateState(enum.Enum):
    """Per-request progress through the gate.

    ``RECEIVED`` and ``CORS_EVALUATED`` name the steps inside
    :meth:`AccessGate.evaluate` (origin check, then peer check). Only the
    terminal states are ever carried by a :class:`GateDecision`.
    """

    RECEIVED = "received"
    CORS_EVALUATED = "cors_evaluated"
    FORWARDED = "forwarded"
    REJECTED = "rejected"

    @property
    def terminal(self) -> bool:
        return self in (GateState.FORWARDED, GateState.REJECTED)


def parse_origins(raw: str | Iterable[str]) -> frozenset[str]:
    """Build the allowed-origin set from a comma-separated string or a list.

    Entries are kept verbatim (no trimming, no case folding); empty entries
    are dropped so a stray comma never admits an empty ``Origin`` header.
    """
    items = raw.split(ORIGINS_DELIMITER) if isinstance(raw, str) else [str(item) for item in raw]
    return frozenset(item for item in items if item)


@dataclass(frozen=True)
class OriginMatcher:
    """Reflects an allowed origin back in the CORS response headers."""

    allowed_origins: frozenset[str]

    def is_allowed(self, origin: str | None) -> bool:
        return origin is not None and origin in self.allowed_origins

    def match(self, origin: str | None) -> dict[str, str]:
        """Return the CORS headers for *origin*, or an empty dict."""
        if not self.is_allowed(origin):
            return {}
        return {
            CORS_ALLOW_ORIGIN: origin,  # type: ignore[dict-item]
            CORS_ALLOW_METHODS: CORS_METHODS_VALUE,
            CORS_ALLOW_HEADERS: CORS_HEADERS_VALUE,
            CORS_ALLOW_CREDENTIALS: CORS_CREDENTIALS_VALUE,
        }


@dataclass(frozen=True)
class PeerAuthenticator:
    """Admits only the two configured loopback address literals.

    Comparison is exact string equality: ``::1`` and ``0:0:0:0:0:0:0:1``
    are different peers unless both are configured.
    """

    localhost_ipv4: str
    localhost_ipv6: str

    def is_local(self, remote_addr: str | None) -> bool:
        if not remote_addr:
            return False
        return remote_addr == self.localhost_ipv4 or remote_addr == self.localhost_ipv6


@dataclass(frozen=True)
class GateDecision:
    """Outcome of one pass through the gate."""

    state: GateState
    cors_headers: Mapping[str, str] = field(default_factory=dict)
    message: str | None = None

    def __post_init__(self) -> None:
        if not self.state.terminal:
            raise ValueError(f"A gate decision needs a terminal state, got {self.state.name}")

    @property
    def forwarded(self) -> bool:
        return self.state is GateState.FORWARDED

    @property
    def rejected(self) -> bool:
        return self.state is GateState.REJECTED


@dataclass(frozen=True)
class AccessGate:
    """Immutable gate configuration with a single :meth:`evaluate` operation.

    Safe to share across concurrent requests: nothing here is mutated after
    construction and evaluation performs no I/O.
    """

    origins: OriginMatcher
    peers: PeerAuthenticator
    denial_message: str

    @classmethod
    def create(
        cls,
        allowed_origins: str | Iterable[str],
        localhost_ipv4: str,
        localhost_ipv6: str,
        denial_message: str,
    ) -> AccessGate:
        """Build a gate from raw settings, validating each one."""
        origin_set = parse_origins(allowed_origins)
        if not origin_set:
            raise ConfigurationException(
                "No allowed origins configured",
                code="GATE_CONFIG_EMPTY_ORIGINS",
                context={"key": ALLOWED_ORIGINS.key},
            )
        for value, setting in (
            (localhost_ipv4, LOCALHOST_IPV4),
            (localhost_ipv6, LOCALHOST_IPV6),
            (denial_message, ERROR_MESSAGE),
        ):
            if not isinstance(value, str) or not value.strip():
                raise ConfigurationException(
                    f"Setting '{setting.key}' must be a non-empty string",
                    code="GATE_CONFIG_BLANK",
                    context={"key": setting.key},
                )
        return cls(
            origins=OriginMatcher(origin_set),
            peers=PeerAuthenticator(localhost_ipv4, localhost_ipv6),
            denial_message=denial_message,
        )

    @classmethod
    def from_config(cls, config: Config) -> AccessGate:
        """Read the four ``app.*`` settings and build the gate.

        Raises:
            ConfigurationException: a setting is missing or unusable.
        """
        resolved: dict[str, Any] = {}
        for name, setting in (
            ("allowed_origins", ALLOWED_ORIGINS),
            ("localhost_ipv4", LOCALHOST_IPV4),
            ("localhost_ipv6", LOCALHOST_IPV6),
            ("denial_message", ERROR_MESSAGE),
        ):
            try:
                resolved[name] = setting.resolve(config)
            except (KeyError, ValueError) as exc:
                raise ConfigurationException(
                    f"Missing required setting '{setting.key}'",
                    code="GATE_CONFIG_MISSING",
                    context={"key": setting.key},
                ) from exc

        origins = resolved["allowed_origins"]
        if not isinstance(origins, (str, list, tuple)):
            origins = str(origins)
        return cls.create(
            allowed_origins=origins,
            localhost_ipv4=_as_text(resolved["localhost_ipv4"]),
            localhost_ipv6=_as_text(resolved["localhost_ipv6"]),
            denial_message=_as_text(resolved["denial_message"]),
        )

    @property
    def allowed_origins(self) -> frozenset[str]:
        return self.origins.allowed_origins

    def evaluate(self, origin: str | None, remote_addr: str | None) -> GateDecision:
        """Decide CORS headers and admission for one request.

        The origin check always runs first and never blocks; the peer check
        runs regardless of its outcome.
        """
        headers = MappingProxyType(self.origins.match(origin))
        if self.peers.is_local(remote_addr):
            return GateDecision(GateState.FORWARDED, headers)
        return GateDecision(GateState.REJECTED, headers, self.denial_message)


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else str(value)
