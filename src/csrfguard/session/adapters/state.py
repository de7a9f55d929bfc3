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
"""Resolver reading the server-side session attached to ``request.state``."""

from __future__ import annotations

from typing import Any


class SessionStateResolver:
    """Resolves the session placed on ``request.state.session`` by a session filter.

    The session object must expose ``id`` and ``is_new``; an ``invalidated``
    attribute, when present and true, hides the session.
    """

    def __init__(self, attribute: str = "session") -> None:
        self._attribute = attribute

    def _session(self, request: Any) -> Any | None:
        state = getattr(request, "state", None)
        session = getattr(state, self._attribute, None)
        if session is None or getattr(session, "invalidated", False):
            return None
        return session

    def resolve(self, request: Any) -> str | None:
        session = self._session(request)
        return str(session.id) if session is not None else None

    def exists(self, request: Any) -> bool:
        session = self._session(request)
        return session is not None and not session.is_new
