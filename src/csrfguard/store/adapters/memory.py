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
"""In-memory token store with per-key locking."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from csrfguard.token.types import TokenRecord


class InMemoryTokenStore:
    """In-memory token store with an asyncio.Lock per (session, scope).

    Suitable for development, testing, and single-process applications.
    Sessions and scopes are fully independent: no lock is shared between
    different keys.
    """

    def __init__(self) -> None:
        self._store: dict[str, dict[str, TokenRecord]] = {}
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}

    async def get(self, session_id: str, scope: str) -> TokenRecord | None:
        """Return the record for a scope, or ``None`` if absent."""
        return self._store.get(session_id, {}).get(scope)

    async def put(self, session_id: str, scope: str, record: TokenRecord) -> None:
        """Store or replace the record for a scope."""
        self._store.setdefault(session_id, {})[scope] = record

    async def remove(self, session_id: str, scope: str) -> None:
        """Remove one scope of a session and its idle lock."""
        records = self._store.get(session_id)
        if records is not None:
            records.pop(scope, None)
            if not records:
                del self._store[session_id]
        lock = self._locks.get((session_id, scope))
        if lock is not None and not lock.locked():
            del self._locks[(session_id, scope)]

    async def remove_all(self, session_id: str) -> None:
        """Drop every record and lock held for a session."""
        self._store.pop(session_id, None)
        for key in [k for k in self._locks if k[0] == session_id and not self._locks[k].locked()]:
            del self._locks[key]

    @asynccontextmanager
    async def lock(self, session_id: str, scope: str) -> AsyncIterator[None]:
        """Hold the lock for one (session, scope) key."""
        key = (session_id, scope)
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        async with lock:
            yield

    def scopes(self, session_id: str) -> list[str]:
        """Return the scope keys stored for a session."""
        return list(self._store.get(session_id, {}))

    def sessions(self) -> list[str]:
        """Return the ids of sessions holding at least one record."""
        return list(self._store)
