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
"""ValidationEngine — per-request CSRF decision procedure.

Order of checks:

1. Disabled, new-token landing page, unprotected path/method, or banned
   user agent: BYPASS.
2. No pre-existing session and ``validate_when_no_session_exists`` off:
   BYPASS. No resolvable session at all: INVALID(session-mismatch).
3. ``domain_origin`` configured and the declared origin differs:
   INVALID(origin-mismatch). Checked before the token so both rejection
   reasons are decided without touching the token store.
4. Token comparison for the resolved scope, rotating on success when
   rotation is enabled.

Store failures propagate as ``TokenStoreException``; they are never
reported as a mismatch.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urlsplit

import structlog

from csrfguard.config.properties import CsrfGuardProperties
from csrfguard.policy.matcher import PolicyMatcher
from csrfguard.policy.paths import normalize_path
from csrfguard.policy.rules import Disposition
from csrfguard.session.ports.outbound import SessionIdentityResolver
from csrfguard.token.lifecycle import TokenLifecycleManager
from csrfguard.token.types import TokenMatch
from csrfguard.validation.verdict import Verdict, ViolationReason

logger = structlog.get_logger(__name__)

_REASONS: dict[TokenMatch, ViolationReason] = {
    TokenMatch.ABSENT: ViolationReason.MISSING_TOKEN,
    TokenMatch.STALE: ViolationReason.MISSING_TOKEN,
    TokenMatch.MISMATCH: ViolationReason.SESSION_MISMATCH,
}


def header_value(request: Any, name: str) -> str | None:
    """Read a header from a Starlette-like or plain-mapping request, case-insensitively."""
    headers = getattr(request, "headers", None) or {}
    value = headers.get(name)
    if value is None:
        lowered = name.lower()
        value = next((v for k, v in headers.items() if k.lower() == lowered), None)
    return value


def _hostname(value: str | None) -> str | None:
    if not value or value == "null":
        return None
    if "://" not in value:
        value = "//" + value
    try:
        parts = urlsplit(value)
        host = parts.hostname
        port = parts.port
    except ValueError:
        return None
    if host is None:
        return None
    return f"{host}:{port}" if port is not None else host


class ValidationEngine:
    """Orchestrates policy matching, session resolution and token checks."""

    def __init__(
        self,
        properties: CsrfGuardProperties,
        matcher: PolicyMatcher,
        lifecycle: TokenLifecycleManager,
        resolver: SessionIdentityResolver | None,
    ) -> None:
        self._properties = properties
        self._matcher = matcher
        self._lifecycle = lifecycle
        self._resolver = resolver
        self._banned_agents = tuple(a.lower() for a in properties.banned_user_agents if a)
        self._landing_page = (
            normalize_path(properties.new_token_landing_page, properties.context_path)
            if properties.landing_page_enabled and properties.new_token_landing_page
            else None
        )
        self._origin = _hostname(properties.domain_origin.lower()) if properties.domain_origin else None

    def presented_token(self, request: Any) -> str | None:
        """Extract the token from the token-name header, then the query string."""
        token_name = self._properties.token_name
        token = header_value(request, token_name)
        if not token:
            query = getattr(request, "query_params", None) or {}
            token = query.get(token_name)
        return token or None

    def is_banned_user_agent(self, request: Any) -> bool:
        agent = (header_value(request, "user-agent") or "").lower()
        return bool(agent) and any(banned in agent for banned in self._banned_agents)

    def origin_matches(self, request: Any) -> bool:
        """Compare the declared Origin (or Referer) host with ``domain_origin``."""
        if self._origin is None:
            return True
        declared = header_value(request, "origin") or header_value(request, "referer")
        declared_host = _hostname(declared.lower()) if declared else None
        return declared_host == self._origin

    async def evaluate(self, request: Any, presented: str | None = None) -> Verdict:
        """Decide BYPASS / VALID / INVALID for *request*.

        Args:
            request: Object exposing ``method``, ``url.path``, ``headers``,
                and optionally ``query_params`` and ``cookies``.
            presented: Token taken from the body by the caller; when
                ``None`` it is read from the header, then the query string.

        Raises:
            TokenStoreException: if the token store cannot be reached.
        """
        method = str(request.method).upper()
        path = self._matcher.normalize(request.url.path)

        if not self._properties.enabled:
            return Verdict.bypass(path, method)
        if self._landing_page is not None and path == self._landing_page:
            return Verdict.bypass(path, method)
        if not self._matcher.is_protected_method(method):
            return Verdict.bypass(path, method)
        if self._matcher.classify_path(path) is Disposition.UNPROTECTED:
            return Verdict.bypass(path, method)
        if self.is_banned_user_agent(request):
            return Verdict.bypass(path, method)

        resolver = self._resolver
        session_id = resolver.resolve(request) if resolver is not None else None
        session_exists = resolver.exists(request) if resolver is not None else False
        if not self._properties.validate_when_no_session_exists and not session_exists:
            return Verdict.bypass(path, method, session_id)
        if session_id is None:
            return Verdict.invalid(ViolationReason.SESSION_MISMATCH, path, method)

        scope = self._lifecycle.scope_for(path)

        if not self.origin_matches(request):
            return Verdict.invalid(ViolationReason.ORIGIN_MISMATCH, path, method, session_id, scope)

        token = presented if presented is not None else self.presented_token(request)
        if not token:
            return Verdict.invalid(ViolationReason.MISSING_TOKEN, path, method, session_id, scope)

        check = await self._lifecycle.check(session_id, scope, token, rotate=self._properties.rotate)
        if check.accepted:
            return Verdict.valid(path, method, session_id, scope, check.token, check.rotated)

        logger.debug("token_rejected", session_id=session_id, scope=scope.key, match=check.match.value)
        return Verdict.invalid(_REASONS[check.match], path, method, session_id, scope)
