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
"""Token types — Scope, Token, TokenRecord, TokenMatch."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import StrEnum
from typing import Any

_SESSION_KEY = "SESSION"
_PAGE_PREFIX = "PAGE:"


@dataclass(frozen=True)
class Scope:
    """Granularity a token is issued at: the whole session or one page.

    ``page`` is ``None`` for the session scope, otherwise a normalized URI.
    """

    page: str | None = None

    @classmethod
    def session(cls) -> Scope:
        return cls()

    @classmethod
    def for_page(cls, page: str) -> Scope:
        return cls(page=page)

    @classmethod
    def parse(cls, key: str) -> Scope:
        """Rebuild a scope from its :attr:`key`."""
        if key == _SESSION_KEY:
            return cls()
        if key.startswith(_PAGE_PREFIX):
            return cls(page=key[len(_PAGE_PREFIX):])
        raise ValueError(f"Not a token scope key: '{key}'")

    @property
    def is_session(self) -> bool:
        return self.page is None

    @property
    def key(self) -> str:
        """Store key: ``SESSION`` or ``PAGE:<normalized-uri>``."""
        return _SESSION_KEY if self.page is None else f"{_PAGE_PREFIX}{self.page}"

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class Token:
    """An issued token value and when it was created."""

    value: str
    created_at: datetime
    page: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"value": self.value, "created_at": self.created_at.isoformat(), "page": self.page}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Token:
        return cls(
            value=data["value"],
            created_at=datetime.fromisoformat(data["created_at"]),
            page=data.get("page"),
        )


@dataclass(frozen=True)
class TokenRecord:
    """Stored unit per (session, scope).

    Fields
    ------
    current:
        The token presented by well-behaved clients.
    previous:
        The token replaced by the last rotation, kept for the tolerance
        window only.
    previous_expires_at:
        Instant after which ``previous`` is no longer accepted.
    """

    current: Token
    previous: Token | None = None
    previous_expires_at: datetime | None = None

    def previous_active(self, now: datetime) -> bool:
        """``True`` while the previous token is inside its tolerance window."""
        return (
            self.previous is not None
            and self.previous_expires_at is not None
            and now < self.previous_expires_at
        )

    def pruned(self, now: datetime) -> TokenRecord:
        """Return this record without an expired previous token."""
        if self.previous is None or self.previous_active(now):
            return self
        return replace(self, previous=None, previous_expires_at=None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "current": self.current.to_dict(),
            "previous": self.previous.to_dict() if self.previous else None,
            "previous_expires_at": self.previous_expires_at.isoformat() if self.previous_expires_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenRecord:
        previous = data.get("previous")
        expires_at = data.get("previous_expires_at")
        return cls(
            current=Token.from_dict(data["current"]),
            previous=Token.from_dict(previous) if previous else None,
            previous_expires_at=datetime.fromisoformat(expires_at) if expires_at else None,
        )


class TokenMatch(StrEnum):
    """How a presented token compared against the stored record."""

    CURRENT = "CURRENT"
    PREVIOUS = "PREVIOUS"
    STALE = "STALE"
    MISMATCH = "MISMATCH"
    ABSENT = "ABSENT"

    @property
    def accepted(self) -> bool:
        return self in (TokenMatch.CURRENT, TokenMatch.PREVIOUS)


@dataclass(frozen=True)
class TokenCheck:
    """Result of a validate(-and-rotate) call.

    ``token`` is the current token after the call, or ``None`` when no
    record exists for the scope.
    """

    match: TokenMatch
    token: Token | None = None
    rotated: bool = False

    @property
    def accepted(self) -> bool:
        return self.match.accepted
