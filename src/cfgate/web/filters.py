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
"""OncePerRequestFilter — base class for WebFilter with URL-pattern matching.

Framework-agnostic: accesses ``request.url.path`` and ``request.scope`` via
attribute protocol so no Starlette import is needed.
"""

from __future__ import annotations

import abc
from fnmatch import fnmatch
from typing import Any

from cfgate.web.ports.filter import HTTP_SCOPES, CallNext


class OncePerRequestFilter(abc.ABC):
    """Abstract base class for :class:`WebFilter` implementations.

    Guarantees a single execution per request: the chain marks the ASGI
    scope under :attr:`already_filtered_key` before calling ``do_filter()``,
    and a later pass over the same scope (e.g. a nested mount of another
    gated app) skips the filter.

    Attributes:
        url_patterns: Glob patterns that this filter applies to.
            If empty (default), the filter applies to *all* paths.
        exclude_patterns: Glob patterns to exclude even if ``url_patterns``
            matches.  Checked *after* ``url_patterns``.
        scope_types: ASGI scope types the filter runs for. HTTP only unless a
            subclass widens it.
    """

    url_patterns: list[str] = []
    exclude_patterns: list[str] = []
    scope_types: frozenset[str] = HTTP_SCOPES

    @property
    def already_filtered_key(self) -> str:
        return f"cfgate.filtered.{type(self).__qualname__}"

    def is_already_filtered(self, request: Any) -> bool:
        return bool(request.scope.get(self.already_filtered_key))

    def mark_filtered(self, request: Any) -> None:
        request.scope[self.already_filtered_key] = True

    def should_not_filter(self, request: Any) -> bool:
        """Return ``True`` if the request was already filtered or its path does not match."""
        if self.is_already_filtered(request):
            return True

        path: str = request.url.path

        if self.url_patterns and not any(fnmatch(path, p) for p in self.url_patterns):
            return True

        return bool(
            self.exclude_patterns and any(fnmatch(path, p) for p in self.exclude_patterns)
        )

    @abc.abstractmethod
    async def do_filter(self, request: Any, call_next: CallNext) -> Any:
        """Execute the filter logic.  Must call ``await call_next(request)`` to proceed."""
        ...
