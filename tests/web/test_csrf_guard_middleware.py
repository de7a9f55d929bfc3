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
"""Tests for CsrfGuardMiddleware mounted on a Starlette app."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import PlainTextResponse
from starlette.routing import Route
from starlette.testclient import TestClient
from starlette.types import ASGIApp, Receive, Scope, Send

from csrfguard.action.types import ViolationOutcome
from csrfguard.config.properties import ActionRecord, ComponentSettings, CsrfGuardProperties
from csrfguard.guard import CsrfGuard
from csrfguard.kernel.exceptions import TokenStoreException
from csrfguard.store.adapters.memory import InMemoryTokenStore
from csrfguard.token.types import TokenRecord
from csrfguard.validation.verdict import Verdict, ViolationReason
from csrfguard.web.adapters.starlette.middleware import CsrfGuardMiddleware, render_outcome

TOKEN_HEADER = "OWASP-CSRFTOKEN"
SESSION = {"X-Session-Id": "s1"}


class UnavailableStore(InMemoryTokenStore):
    async def get(self, session_id: str, scope: str) -> TokenRecord | None:
        raise TokenStoreException("store down", code="STORE_UNAVAILABLE")


class NewSessionMiddleware:
    """Attaches a brand-new server-side session, as a session middleware would."""

    def __init__(self, app: ASGIApp, session_id: str) -> None:
        self.app = app
        self._session_id = session_id

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            scope.setdefault("state", {})["session"] = SimpleNamespace(id=self._session_id, is_new=True)
        await self.app(scope, receive, send)


def _properties(**overrides: Any) -> CsrfGuardProperties:
    values: dict[str, Any] = {
        "session_resolver": ComponentSettings(type="header"),
        "unprotected_methods": frozenset({"GET", "HEAD", "OPTIONS"}),
        "actions": (ActionRecord(name="log"), ActionRecord(name="error")),
    }
    values.update(overrides)
    return CsrfGuardProperties(**values)


async def _ok(request: Request) -> PlainTextResponse:
    return PlainTextResponse("OK")


def _app(guard: CsrfGuard, *outer: Middleware, **middleware_kwargs: Any) -> Starlette:
    return Starlette(
        routes=[
            Route("/form", _ok),
            Route("/admin/save", _ok, methods=["POST"]),
            Route("/health", _ok, methods=["GET", "POST"]),
            Route("/public/{page}", _ok),
        ],
        middleware=[*outer, Middleware(CsrfGuardMiddleware, guard=guard, **middleware_kwargs)],
    )


def _client(guard: CsrfGuard, **middleware_kwargs: Any) -> TestClient:
    return TestClient(_app(guard, **middleware_kwargs))


class TestTokenIssuing:
    def test_get_issues_token_header(self):
        response = _client(CsrfGuard(_properties())).get("/form", headers=SESSION)
        assert response.status_code == 200
        assert len(response.headers[TOKEN_HEADER].replace("-", "")) == 32

    def test_get_without_session_has_no_token(self):
        response = _client(CsrfGuard(_properties())).get("/form")
        assert response.status_code == 200
        assert TOKEN_HEADER not in response.headers

    def test_same_token_for_same_session(self):
        client = _client(CsrfGuard(_properties()))
        first = client.get("/form", headers=SESSION).headers[TOKEN_HEADER]
        assert client.get("/form", headers=SESSION).headers[TOKEN_HEADER] == first

    def test_new_session_precreates_page_tokens(self):
        guard = CsrfGuard(
            _properties(
                session_resolver=ComponentSettings(type="state"),
                token_per_page=True,
                token_per_page_precreate=True,
                protected_pages=("/admin/save",),
            )
        )
        app = _app(guard, Middleware(NewSessionMiddleware, session_id="new-1"))
        response = TestClient(app).get("/form")
        assert response.status_code == 200
        store = guard.lifecycle.store
        assert isinstance(store, InMemoryTokenStore)
        assert sorted(store.scopes("new-1")) == ["PAGE:/admin/save", "PAGE:/form", "SESSION"]

    def test_unprotected_pages_create_no_page_tokens(self):
        guard = CsrfGuard(
            _properties(token_per_page=True, protect_by_default=False, protected_pages=("/admin/save",))
        )
        client = _client(guard)
        tokens = {client.get(f"/public/{n}", headers=SESSION).headers[TOKEN_HEADER] for n in range(3)}
        assert len(tokens) == 1
        store = guard.lifecycle.store
        assert isinstance(store, InMemoryTokenStore)
        assert store.scopes("s1") == ["SESSION"]


class TestValidation:
    def test_post_with_header_token(self):
        client = _client(CsrfGuard(_properties()))
        token = client.get("/form", headers=SESSION).headers[TOKEN_HEADER]
        response = client.post("/admin/save", headers={**SESSION, TOKEN_HEADER: token})
        assert response.status_code == 200
        assert response.text == "OK"
        assert response.headers[TOKEN_HEADER] == token

    def test_post_with_query_token(self):
        client = _client(CsrfGuard(_properties()))
        token = client.get("/form", headers=SESSION).headers[TOKEN_HEADER]
        response = client.post("/admin/save", params={TOKEN_HEADER: token}, headers=SESSION)
        assert response.status_code == 200

    def test_post_without_token_is_forbidden(self):
        client = _client(CsrfGuard(_properties()))
        client.get("/form", headers=SESSION)
        response = client.post("/admin/save", headers=SESSION)
        assert response.status_code == 403
        assert response.json() == {"error": "CSRF token validation failed", "reason": "missing-token"}

    def test_post_with_forged_token(self):
        client = _client(CsrfGuard(_properties()))
        client.get("/form", headers=SESSION)
        response = client.post("/admin/save", headers={**SESSION, TOKEN_HEADER: "FORGED"})
        assert response.status_code == 403
        assert response.json()["reason"] == "session-mismatch"

    def test_token_of_other_session_rejected(self):
        client = _client(CsrfGuard(_properties()))
        token = client.get("/form", headers={"X-Session-Id": "other"}).headers[TOKEN_HEADER]
        client.get("/form", headers=SESSION)
        response = client.post("/admin/save", headers={**SESSION, TOKEN_HEADER: token})
        assert response.status_code == 403

    def test_rotation_returns_new_token(self):
        client = _client(CsrfGuard(_properties(rotate=True)))
        token = client.get("/form", headers=SESSION).headers[TOKEN_HEADER]
        response = client.post("/admin/save", headers={**SESSION, TOKEN_HEADER: token})
        assert response.status_code == 200
        assert response.headers[TOKEN_HEADER] != token

    def test_excluded_path(self):
        client = _client(CsrfGuard(_properties()), exclude_patterns=["/health"])
        response = client.post("/health", headers=SESSION)
        assert response.status_code == 200
        assert TOKEN_HEADER not in response.headers

    def test_disabled_guard_passes_everything(self):
        response = _client(CsrfGuard(CsrfGuardProperties(enabled=False))).post("/admin/save", headers=SESSION)
        assert response.status_code == 200
        assert TOKEN_HEADER not in response.headers


class TestViolationResponses:
    def test_redirect_action(self):
        props = _properties(actions=(ActionRecord(name="redirect", parameters={"page": "/form"}),))
        response = _client(CsrfGuard(props)).post("/admin/save", headers=SESSION, follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "/form"

    def test_empty_action(self):
        props = _properties(actions=(ActionRecord(name="empty"),))
        response = _client(CsrfGuard(props)).post("/admin/save", headers=SESSION)
        assert response.status_code == 403
        assert response.content == b""

    def test_render_json_body(self):
        verdict = Verdict.invalid(ViolationReason.ORIGIN_MISMATCH, "/a", "POST")
        response = render_outcome(ViolationOutcome(status_code=400, body="Bad origin"), verdict)
        assert response.status_code == 400
        assert b"origin-mismatch" in response.body

    def test_render_redirect(self):
        verdict = Verdict.invalid(ViolationReason.MISSING_TOKEN, "/a", "POST")
        response = render_outcome(ViolationOutcome(status_code=302, redirect="/error"), verdict)
        assert response.headers["location"] == "/error"


class TestStoreFailure:
    def test_fail_closed(self):
        client = _client(CsrfGuard(_properties(), store=UnavailableStore()))
        response = client.post("/admin/save", headers={**SESSION, TOKEN_HEADER: "ANY"})
        assert response.status_code == 503
        assert response.json()["code"] == "STORE_UNAVAILABLE"

    def test_fail_open(self):
        client = _client(CsrfGuard(_properties(on_store_failure="fail-open"), store=UnavailableStore()))
        response = client.post("/admin/save", headers={**SESSION, TOKEN_HEADER: "ANY"})
        assert response.status_code == 200

    def test_token_issue_failure_still_serves_page(self):
        client = _client(CsrfGuard(_properties(), store=UnavailableStore()))
        response = client.get("/form", headers=SESSION)
        assert response.status_code == 200
        assert TOKEN_HEADER not in response.headers
