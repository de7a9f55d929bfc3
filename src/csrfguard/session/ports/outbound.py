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
"""Session identity resolver protocol."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class SessionIdentityResolver(Protocol):
    """Maps an inbound request to a stable logical session identifier.

    Implementations only inspect the request; they never create a session
    as a side effect of being called.
    """

    def resolve(self, request: Any) -> str | None:
        """Return the logical session id for *request*, or ``None``."""
        ...

    def exists(self, request: Any) -> bool:
        """Return ``True`` if the session existed before this request."""
        ...
