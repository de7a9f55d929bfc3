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
"""Redis-backed token store."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from redis.exceptions import RedisError

from csrfguard.kernel.exceptions import TokenStoreException
from csrfguard.token.types import TokenRecord

_logger = logging.getLogger(__name__)

_KEY_PREFIX = "csrfguard:tokens:"
_LOCK_PREFIX = "csrfguard:lock:"


class RedisTokenStore:
    """Token store backed by ``redis.asyncio``.

    Each session is one hash (``csrfguard:tokens:<session>``) whose fields
    are scope keys and whose values are JSON-serialized records. Per-key
    atomicity uses a Redis lock (``csrfguard:lock:<session>:<scope>``) so
    that validate-then-rotate is indivisible across processes.

    Any ``RedisError`` is raised as :class:`TokenStoreException`.
    """

    def __init__(
        self,
        client: Any,
        ttl: int | None = None,
        lock_timeout: float = 5.0,
        blocking_timeout: float = 2.0,
    ) -> None:
        self._client = client
        self._ttl = ttl
        self._lock_timeout = lock_timeout
        self._blocking_timeout = blocking_timeout

    def _key(self, session_id: str) -> str:
        return f"{_KEY_PREFIX}{session_id}"

    async def get(self, session_id: str, scope: str) -> TokenRecord | None:
        """Retrieve and deserialize the record for a scope."""
        try:
            raw = await self._client.hget(self._key(session_id), scope)
        except RedisError as exc:
            raise self._failure("read", session_id, scope, exc) from exc
        if raw is None:
            return None
        try:
            return TokenRecord.from_dict(json.loads(raw))
        except (json.JSONDecodeError, TypeError, KeyError, ValueError):
            _logger.warning("Discarding undecodable token record for session '%s' scope '%s'", session_id, scope)
            return None

    async def put(self, session_id: str, scope: str, record: TokenRecord) -> None:
        """Serialize and store a record, refreshing the session TTL if configured."""
        raw = json.dumps(record.to_dict())
        key = self._key(session_id)
        try:
            await self._client.hset(key, scope, raw.encode())
            if self._ttl is not None:
                await self._client.expire(key, self._ttl)
        except RedisError as exc:
            raise self._failure("write", session_id, scope, exc) from exc

    async def remove(self, session_id: str, scope: str) -> None:
        """Remove one scope of a session."""
        try:
            await self._client.hdel(self._key(session_id), scope)
        except RedisError as exc:
            raise self._failure("remove", session_id, scope, exc) from exc

    async def remove_all(self, session_id: str) -> None:
        """Remove every token of a session."""
        try:
            await self._client.delete(self._key(session_id))
        except RedisError as exc:
            raise self._failure("remove", session_id, None, exc) from exc

    @asynccontextmanager
    async def lock(self, session_id: str, scope: str) -> AsyncIterator[None]:
        """Hold a distributed lock for one (session, scope) key."""
        redis_lock = self._client.lock(
            f"{_LOCK_PREFIX}{session_id}:{scope}",
            timeout=self._lock_timeout,
            blocking_timeout=self._blocking_timeout,
        )
        try:
            acquired = await redis_lock.acquire()
        except RedisError as exc:
            raise self._failure("lock", session_id, scope, exc) from exc
        if not acquired:
            raise TokenStoreException(
                f"Timed out waiting for token lock of session '{session_id}' scope '{scope}'",
                code="STORE_LOCK_TIMEOUT",
                context={"session_id": session_id, "scope": scope},
            )
        try:
            yield
        finally:
            try:
                await redis_lock.release()
            except RedisError:
                _logger.warning("Token lock for session '%s' scope '%s' expired before release", session_id, scope)

    async def start(self) -> None:
        """Validate connectivity by pinging Redis."""
        try:
            await self._client.ping()
        except RedisError as exc:
            raise self._failure("ping", None, None, exc) from exc

    async def stop(self) -> None:
        """Close the underlying Redis connection."""
        await self._client.aclose()

    @staticmethod
    def _failure(operation: str, session_id: str | None, scope: str | None, exc: Exception) -> TokenStoreException:
        return TokenStoreException(
            f"Redis token store {operation} failed: {exc}",
            code="STORE_UNAVAILABLE",
            context={"operation": operation, "session_id": session_id, "scope": scope},
        )
