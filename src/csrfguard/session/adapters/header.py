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
"""Resolver reading the logical session id from a request header."""

from __future__ import annotations

from typing import Any

_DEFAULT_HEADER_NAME = "X-Session-Id"


class HeaderSessionResolver:
    """Uses a request header as the logical session id.

    Intended for token-authenticated clients that carry an explicit
    session identifier instead of a cookie.
    """

    def __init__(self, header_name: str = _DEFAULT_HEADER_NAME) -> None:
        self._header_name = header_name

    def resolve(self, request: Any) -> str | None:
        headers = getattr(request, "headers", {}) or {}
        value = headers.get(self._header_name) or headers.get(self._header_name.lower())
        if not value or not value.strip():
            return None
        return value.strip()

    def exists(self, request: Any) -> bool:
        return self.resolve(request) is not None
