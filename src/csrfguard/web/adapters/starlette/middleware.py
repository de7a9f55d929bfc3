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
"""CsrfGuardMiddleware — synchronizer-token CSRF protection for Starlette, pure ASGI.

* New sessions (resolvable but not yet known to the client) get their
  tokens created before evaluation.
* INVALID requests never reach the app; the action pipeline decides the
  response (403 JSON by default, redirect, empty body, ...).
* VALID and BYPASS requests proceed and the response carries the current
  token in a header named after ``token-name``.
* Token store failures are answered according to ``on-store-failure``.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from fnmatch import fnmatch
from typing import Any

from starlette.datastructures import MutableHeaders
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response
from starlette.types import ASGIApp, Receive, Scope, Send

from csrfguard.action.types import ViolationOutcome
from csrfguard.guard import CsrfGuard
from csrfguard.kernel.exceptions import TokenStoreException
from csrfguard.token.types import Token
from csrfguard.validation.verdict import Verdict

logger = logging.getLogger(__name__)

STORE_FAILURE_STATUS = 503


def render_outcome(outcome: ViolationOutcome, verdict: Verdict) -> Response:
    """Turn the accumulated violation outcome into a Starlette response."""
    if outcome.redirect is not None:
        return RedirectResponse(outcome.redirect, status_code=outcome.status_code)
    if not outcome.body:
        return Response(status_code=outcome.status_code)
    reason = verdict.reason.value if verdict.reason is not None else None
    return JSONResponse({"error": outcome.body, "reason": reason}, status_code=outcome.status_code)


class CsrfGuardMiddleware:
    """Starlette adapter around :class:`CsrfGuard`.

    Args:
        app: The downstream ASGI application.
        guard: The configured guard.
        exclude_patterns: Glob patterns of raw request paths the middleware
            never touches (health probes, static mounts).
    """

    def __init__(self, app: ASGIApp, guard: CsrfGuard, exclude_patterns: Sequence[str] = ()) -> None:
        self.app = app
        self._guard = guard
        self._exclude_patterns = tuple(exclude_patterns)

    @property
    def guard(self) -> CsrfGuard:
        return self._guard

    def is_excluded(self, path: str) -> bool:
        return any(fnmatch(path, pattern) for pattern in self._exclude_patterns)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or self.is_excluded(scope["path"]):
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)
        try:
            await self._start_session(request)
            verdict = await self._guard.evaluate(request)
        except TokenStoreException as exc:
            await self._store_failure(exc, request, scope, receive, send)
            return

        if verdict.is_invalid:
            outcome = await self._guard.handle_violation(verdict, request)
            response = render_outcome(outcome, verdict)
            await response(scope, receive, send)
            return

        token = verdict.token or await self._current_token(request)
        if token is None:
            await self.app(scope, receive, send)
            return

        token_name = self._guard.properties.token_name

        async def send_with_token(message: Any) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                headers[token_name] = token.value
            await send(message)

        await self.app(scope, receive, send_with_token)

    async def _start_session(self, request: Request) -> None:
        resolver = self._guard.resolver
        if resolver is None or not self._guard.properties.enabled:
            return
        session_id = resolver.resolve(request)
        if session_id is not None and not resolver.exists(request):
            await self._guard.on_session_start(session_id)

    async def _current_token(self, request: Request) -> Token | None:
        if not self._guard.properties.enabled:
            return None
        try:
            return await self._guard.token_for(request)
        except TokenStoreException as exc:
            logger.error("Could not issue CSRF token for %s: %s", request.url.path, exc)
            return None

    async def _store_failure(
        self, exc: TokenStoreException, request: Request, scope: Scope, receive: Receive, send: Send
    ) -> None:
        policy = self._guard.properties.on_store_failure
        logger.error(
            "CSRF token store unavailable (%s) for %s %s, applying %s",
            exc.code,
            request.method,
            request.url.path,
            policy,
        )
        if policy == "fail-open":
            await self.app(scope, receive, send)
            return
        response = JSONResponse(
            {"error": "CSRF token store unavailable", "code": exc.code},
            status_code=STORE_FAILURE_STATUS,
        )
        await response(scope, receive, send)
