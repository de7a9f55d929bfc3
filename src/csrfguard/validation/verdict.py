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
"""Verdict types returned by the validation engine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from csrfguard.token.types import Scope, Token


class VerdictOutcome(StrEnum):
    """Top-level result of evaluating a request."""

    BYPASS = "BYPASS"
    VALID = "VALID"
    INVALID = "INVALID"


class ViolationReason(StrEnum):
    """Why a protected request failed validation."""

    MISSING_TOKEN = "missing-token"
    SESSION_MISMATCH = "session-mismatch"
    ORIGIN_MISMATCH = "origin-mismatch"


@dataclass(frozen=True)
class Verdict:
    """Outcome of one evaluation.

    Fields
    ------
    outcome:
        BYPASS (validation does not apply), VALID or INVALID.
    reason:
        Set only for INVALID verdicts.
    path:
        Normalized request path.
    method:
        Upper-case HTTP method.
    session_id:
        Resolved logical session id, when one exists.
    scope:
        Token scope the request was validated against.
    token:
        Current token for ``scope`` after evaluation (post-rotation).
    rotated:
        Whether this evaluation rotated the token.
    """

    outcome: VerdictOutcome
    path: str
    method: str
    reason: ViolationReason | None = None
    session_id: str | None = None
    scope: Scope | None = None
    token: Token | None = None
    rotated: bool = False

    @classmethod
    def bypass(cls, path: str, method: str, session_id: str | None = None) -> Verdict:
        return cls(VerdictOutcome.BYPASS, path, method, session_id=session_id)

    @classmethod
    def valid(
        cls,
        path: str,
        method: str,
        session_id: str,
        scope: Scope,
        token: Token | None,
        rotated: bool = False,
    ) -> Verdict:
        return cls(VerdictOutcome.VALID, path, method, None, session_id, scope, token, rotated)

    @classmethod
    def invalid(
        cls,
        reason: ViolationReason,
        path: str,
        method: str,
        session_id: str | None = None,
        scope: Scope | None = None,
    ) -> Verdict:
        return cls(VerdictOutcome.INVALID, path, method, reason, session_id, scope)

    @property
    def is_bypass(self) -> bool:
        return self.outcome is VerdictOutcome.BYPASS

    @property
    def is_valid(self) -> bool:
        return self.outcome is VerdictOutcome.VALID

    @property
    def is_invalid(self) -> bool:
        return self.outcome is VerdictOutcome.INVALID

    @property
    def allowed(self) -> bool:
        """``True`` unless the verdict is INVALID."""
        return self.outcome is not VerdictOutcome.INVALID
