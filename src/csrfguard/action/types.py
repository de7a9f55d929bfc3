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
"""Violation action types — Violation, ViolationOutcome, ViolationAction."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from csrfguard.token.types import Scope
from csrfguard.validation.engine import header_value
from csrfguard.validation.verdict import Verdict, ViolationReason

DEFAULT_STATUS_CODE = 403
DEFAULT_MESSAGE = "CSRF token validation failed"


@dataclass(frozen=True)
class Violation:
    """What the action pipeline learns about a failed request."""

    reason: ViolationReason
    path: str
    method: str
    session_id: str | None = None
    scope: Scope | None = None
    remote_ip: str | None = None
    user_agent: str | None = None

    @classmethod
    def from_verdict(cls, verdict: Verdict, request: Any) -> Violation:
        if verdict.reason is None:
            raise ValueError("Only INVALID verdicts describe a violation")
        client = getattr(request, "client", None)
        return cls(
            reason=verdict.reason,
            path=verdict.path,
            method=verdict.method,
            session_id=verdict.session_id,
            scope=verdict.scope,
            remote_ip=getattr(client, "host", None),
            user_agent=header_value(request, "user-agent"),
        )


@dataclass
class ViolationOutcome:
    """Response the caller should render, accumulated by the actions in order."""

    status_code: int = DEFAULT_STATUS_CODE
    body: str | None = DEFAULT_MESSAGE
    redirect: str | None = None
    invalidate_session: bool = False
    attributes: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class ViolationAction(Protocol):
    """One configured response to a validation failure."""

    name: str

    async def execute(self, violation: Violation, outcome: ViolationOutcome, request: Any) -> None: ...
