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
"""Token store protocol."""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Protocol, runtime_checkable

from csrfguard.token.types import TokenRecord


@runtime_checkable
class TokenStore(Protocol):
    """Abstract token persistence interface, keyed by (session id, scope key).

    All token backends (in-memory, Redis, etc.) must implement this protocol.
    ``lock()`` serializes read-compare-write sequences for one key; the
    lifecycle manager holds it across get -> compare -> rotate -> put.
    Backend failures are raised as ``TokenStoreException``.
    """

    async def get(self, session_id: str, scope: str) -> TokenRecord | None: ...

    async def put(self, session_id: str, scope: str, record: TokenRecord) -> None: ...

    async def remove(self, session_id: str, scope: str) -> None: ...

    async def remove_all(self, session_id: str) -> None: ...

    def lock(self, session_id: str, scope: str) -> AbstractAsyncContextManager[None]: ...
