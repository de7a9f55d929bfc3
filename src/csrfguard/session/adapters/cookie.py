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
"""Resolver using a session cookie value as the logical session id."""

from __future__ import annotations

from typing import Any

_DEFAULT_COOKIE_NAME = "SESSION"


class CookieSessionResolver:
    """Uses the value of a named cookie as the logical session id."""

    def __init__(self, cookie_name: str = _DEFAULT_COOKIE_NAME) -> None:
        self._cookie_name = cookie_name

    def resolve(self, request: Any) -> str | None:
        cookies = getattr(request, "cookies", {}) or {}
        return cookies.get(self._cookie_name) or None

    def exists(self, request: Any) -> bool:
        return self.resolve(request) is not None
