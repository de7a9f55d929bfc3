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
"""TokenLifecycleManager — creates, rotates, validates and evicts tokens.

Rotation keeps the replaced token as ``previous`` for a fixed tolerance
window so that requests already in flight with the old value (parallel
AJAX calls, other tabs) still validate. Outside the window the old token
is simply rejected; nothing ever waits for the window.
"""

from __future__ import annotations

import secrets
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta

import structlog

from csrfguard.store.ports.outbound import TokenStore
from csrfguard.token.generator import TokenGenerator
from csrfguard.token.types import Scope, Token, TokenCheck, TokenMatch, TokenRecord

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


def _equals(presented: str, expected: str) -> bool:
    return secrets.compare_digest(presented.encode(), expected.encode())


class TokenLifecycleManager:
    """Owns token creation, rotation, the tolerance window and eviction.

    Every read-compare-write runs under ``TokenStore.lock()`` for its
    (session, scope) key; different keys never contend.
    """

    def __init__(
        self,
        store: TokenStore,
        generator: TokenGenerator,
        *,
        tolerance: timedelta = timedelta(seconds=2),
        token_per_page: bool = False,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._generator = generator
        self._tolerance = tolerance
        self._token_per_page = token_per_page
        self._clock = clock

    @property
    def store(self) -> TokenStore:
        return self._store

    @property
    def tolerance(self) -> timedelta:
        return self._tolerance

    def scope_for(self, page: str | None) -> Scope:
        """Scope of a normalized page: SESSION unless per-page tokens are on."""
        if self._token_per_page and page is not None:
            return Scope.for_page(page)
        return Scope.session()

    async def ensure(self, session_id: str, scope: Scope) -> Token:
        """Return the current token for *scope*, creating it if absent."""
        async with self._store.lock(session_id, scope.key):
            record = await self._store.get(session_id, scope.key)
            if record is None:
                record = TokenRecord(current=self._new_token(scope))
                await self._store.put(session_id, scope.key, record)
            return record.current

    async def precreate(self, session_id: str, pages: Iterable[str]) -> dict[str, Token]:
        """Ensure a page token for every page in *pages*."""
        return {page: await self.ensure(session_id, Scope.for_page(page)) for page in pages}

    async def rotate(self, session_id: str, scope: Scope) -> Token:
        """Replace the current token, keeping the old one for the tolerance window."""
        async with self._store.lock(session_id, scope.key):
            record = await self._store.get(session_id, scope.key)
            record = self._rotated(record, scope)
            await self._store.put(session_id, scope.key, record)
            return record.current

    async def validate(self, session_id: str, scope: Scope, presented: str | None) -> bool:
        """Return ``True`` if *presented* is the current token or an unexpired previous one."""
        return (await self.check(session_id, scope, presented)).accepted

    async def check(
        self,
        session_id: str,
        scope: Scope,
        presented: str | None,
        *,
        rotate: bool = False,
    ) -> TokenCheck:
        """Compare *presented* against the stored record, rotating if asked and it is current.

        Comparison and rotation happen under one lock, so two concurrent
        rotations of the same scope cannot both read the same record.
        """
        async with self._store.lock(session_id, scope.key):
            record = await self._store.get(session_id, scope.key)
            if record is None:
                return TokenCheck(TokenMatch.ABSENT)

            now = self._clock()
            match = self._match(record, presented, now)
            # Only the current token rotates; a tolerance-window match leaves the record as is.
            if match is TokenMatch.CURRENT and rotate:
                record = self._rotated(record, scope)
                await self._store.put(session_id, scope.key, record)
                logger.debug("token_rotated", session_id=session_id, scope=scope.key)
                return TokenCheck(match, record.current, rotated=True)

            pruned = record.pruned(now)
            if pruned is not record:
                await self._store.put(session_id, scope.key, pruned)
            return TokenCheck(match, pruned.current)

    async def discard(self, session_id: str, scope: Scope | None = None) -> None:
        """Evict one scope, or every token of the session when *scope* is ``None``."""
        if scope is None:
            await self._store.remove_all(session_id)
        else:
            await self._store.remove(session_id, scope.key)

    def _new_token(self, scope: Scope) -> Token:
        return Token(value=self._generator.generate(), created_at=self._clock(), page=scope.page)

    def _rotated(self, record: TokenRecord | None, scope: Scope) -> TokenRecord:
        current = self._new_token(scope)
        if record is None or self._tolerance <= timedelta(0):
            return TokenRecord(current=current)
        return TokenRecord(
            current=current,
            previous=record.current,
            previous_expires_at=self._clock() + self._tolerance,
        )

    @staticmethod
    def _match(record: TokenRecord, presented: str | None, now: datetime) -> TokenMatch:
        if not presented:
            return TokenMatch.MISMATCH
        if _equals(presented, record.current.value):
            return TokenMatch.CURRENT
        if record.previous is not None and _equals(presented, record.previous.value):
            return TokenMatch.PREVIOUS if record.previous_active(now) else TokenMatch.STALE
        return TokenMatch.MISMATCH
