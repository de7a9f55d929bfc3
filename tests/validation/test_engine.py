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
"""Tests for ValidationEngine — the per-request decision procedure."""

from __future__ import annotations

from datetime import timedelta
from types import SimpleNamespace
from typing import Any

import pytest

from csrfguard.config.properties import ActionRecord, ComponentSettings, CsrfGuardProperties
from csrfguard.kernel.exceptions import TokenStoreException
from csrfguard.policy.matcher import PolicyMatcher
from csrfguard.session.adapters.header import HeaderSessionResolver
from csrfguard.store.adapters.memory import InMemoryTokenStore
from csrfguard.token.generator import TokenGenerator
from csrfguard.token.lifecycle import TokenLifecycleManager
from csrfguard.token.types import Scope, TokenRecord
from csrfguard.validation.engine import ValidationEngine, header_value
from csrfguard.validation.verdict import VerdictOutcome, ViolationReason


class UnavailableStore(InMemoryTokenStore):
    async def get(self, session_id: str, scope: str) -> TokenRecord | None:
        raise TokenStoreException("store down", code="STORE_UNAVAILABLE")


class ExistsResolver(HeaderSessionResolver):
    """Header resolver whose sessions are never pre-existing."""

    def exists(self, request: Any) -> bool:
        return False


def _properties(**overrides: Any) -> CsrfGuardProperties:
    values: dict[str, Any] = {
        "session_resolver": ComponentSettings(type="header"),
        "actions": (ActionRecord(name="error"),),
    }
    values.update(overrides)
    return CsrfGuardProperties(**values)


def _engine(store=None, resolver=None, **overrides: Any) -> tuple[ValidationEngine, TokenLifecycleManager]:
    props = _properties(**overrides)
    matcher = PolicyMatcher(
        protect_by_default=props.protect_by_default,
        protected_pages=props.protected_pages,
        unprotected_pages=props.unprotected_pages,
        protected_methods=props.protected_methods,
        unprotected_methods=props.unprotected_methods,
        context_path=props.context_path,
        token_per_page=props.token_per_page,
    )
    lifecycle = TokenLifecycleManager(
        store if store is not None else InMemoryTokenStore(),
        TokenGenerator(props.token_length),
        tolerance=props.page_token_synchronization_tolerance,
        token_per_page=props.token_per_page,
    )
    if resolver is None:
        resolver = HeaderSessionResolver()
    return ValidationEngine(props, matcher, lifecycle, resolver), lifecycle


def _request(
    method: str = "POST",
    path: str = "/admin/save",
    headers: dict[str, str] | None = None,
    query: dict[str, str] | None = None,
    session: str | None = "s1",
) -> SimpleNamespace:
    all_headers = dict(headers or {})
    if session is not None:
        all_headers["X-Session-Id"] = session
    return SimpleNamespace(
        method=method,
        url=SimpleNamespace(path=path),
        headers=all_headers,
        query_params=query or {},
        cookies={},
        state=SimpleNamespace(),
        client=SimpleNamespace(host="10.0.0.1"),
    )


class TestHeaderValue:
    def test_case_insensitive(self):
        request = SimpleNamespace(headers={"Origin": "https://a.example"})
        assert header_value(request, "origin") == "https://a.example"

    def test_missing(self):
        assert header_value(SimpleNamespace(headers={}), "origin") is None


class TestBypass:
    @pytest.mark.asyncio
    async def test_disabled(self):
        engine, _ = _engine(enabled=False)
        verdict = await engine.evaluate(_request())
        assert verdict.outcome is VerdictOutcome.BYPASS

    @pytest.mark.asyncio
    async def test_unprotected_method(self):
        engine, _ = _engine(unprotected_methods=frozenset({"GET"}))
        assert (await engine.evaluate(_request(method="GET"))).is_bypass

    @pytest.mark.asyncio
    async def test_unprotected_page(self):
        engine, _ = _engine(unprotected_pages=("/public/*",))
        assert (await engine.evaluate(_request(path="/public/info"))).is_bypass

    @pytest.mark.asyncio
    async def test_landing_page(self):
        engine, _ = _engine(new_token_landing_page="/start")
        assert (await engine.evaluate(_request(path="/start", session=None))).is_bypass

    @pytest.mark.asyncio
    async def test_banned_user_agent(self):
        engine, _ = _engine(banned_user_agents=("curl",))
        request = _request(headers={"User-Agent": "Curl/8.4.0"})
        assert (await engine.evaluate(request)).is_bypass

    @pytest.mark.asyncio
    async def test_no_session_and_validation_not_required(self):
        engine, _ = _engine(validate_when_no_session_exists=False, resolver=ExistsResolver())
        verdict = await engine.evaluate(_request())
        assert verdict.is_bypass
        assert verdict.session_id == "s1"


class TestInvalid:
    @pytest.mark.asyncio
    async def test_missing_token(self):
        engine, lifecycle = _engine()
        await lifecycle.ensure("s1", Scope.session())
        verdict = await engine.evaluate(_request())
        assert verdict.is_invalid
        assert verdict.reason is ViolationReason.MISSING_TOKEN

    @pytest.mark.asyncio
    async def test_no_session(self):
        engine, _ = _engine()
        verdict = await engine.evaluate(_request(session=None, headers={"OWASP-CSRFTOKEN": "X"}))
        assert verdict.reason is ViolationReason.SESSION_MISMATCH

    @pytest.mark.asyncio
    async def test_no_resolver(self):
        engine, _ = _engine()
        engine._resolver = None
        verdict = await engine.evaluate(_request())
        assert verdict.reason is ViolationReason.SESSION_MISMATCH

    @pytest.mark.asyncio
    async def test_wrong_token(self):
        engine, lifecycle = _engine()
        await lifecycle.ensure("s1", Scope.session())
        verdict = await engine.evaluate(_request(headers={"OWASP-CSRFTOKEN": "WRONG"}))
        assert verdict.reason is ViolationReason.SESSION_MISMATCH

    @pytest.mark.asyncio
    async def test_no_stored_token(self):
        engine, _ = _engine()
        verdict = await engine.evaluate(_request(headers={"OWASP-CSRFTOKEN": "ANY"}))
        assert verdict.reason is ViolationReason.MISSING_TOKEN

    @pytest.mark.asyncio
    async def test_origin_mismatch_with_correct_token(self):
        engine, lifecycle = _engine(domain_origin="https://shop.example")
        token = await lifecycle.ensure("s1", Scope.session())
        request = _request(headers={"OWASP-CSRFTOKEN": token.value, "Origin": "https://evil.example"})
        verdict = await engine.evaluate(request)
        assert verdict.reason is ViolationReason.ORIGIN_MISMATCH

    @pytest.mark.asyncio
    async def test_missing_origin(self):
        engine, lifecycle = _engine(domain_origin="shop.example")
        token = await lifecycle.ensure("s1", Scope.session())
        verdict = await engine.evaluate(_request(headers={"OWASP-CSRFTOKEN": token.value}))
        assert verdict.reason is ViolationReason.ORIGIN_MISMATCH

    @pytest.mark.asyncio
    async def test_stale_previous_token(self):
        engine, lifecycle = _engine(page_token_synchronization_tolerance=timedelta(0))
        old = await lifecycle.ensure("s1", Scope.session())
        await lifecycle.rotate("s1", Scope.session())
        verdict = await engine.evaluate(_request(headers={"OWASP-CSRFTOKEN": old.value}))
        assert verdict.is_invalid


class TestValid:
    @pytest.mark.asyncio
    async def test_header_token(self):
        engine, lifecycle = _engine()
        token = await lifecycle.ensure("s1", Scope.session())
        verdict = await engine.evaluate(_request(headers={"OWASP-CSRFTOKEN": token.value}))
        assert verdict.is_valid
        assert verdict.token == token
        assert verdict.scope == Scope.session()

    @pytest.mark.asyncio
    async def test_query_token(self):
        engine, lifecycle = _engine()
        token = await lifecycle.ensure("s1", Scope.session())
        verdict = await engine.evaluate(_request(query={"OWASP-CSRFTOKEN": token.value}))
        assert verdict.is_valid

    @pytest.mark.asyncio
    async def test_explicit_presented_token(self):
        engine, lifecycle = _engine()
        token = await lifecycle.ensure("s1", Scope.session())
        assert (await engine.evaluate(_request(), presented=token.value)).is_valid

    @pytest.mark.asyncio
    async def test_matching_origin(self):
        engine, lifecycle = _engine(domain_origin="https://Shop.Example")
        token = await lifecycle.ensure("s1", Scope.session())
        request = _request(
            headers={"OWASP-CSRFTOKEN": token.value, "Referer": "https://shop.example/cart?x=1"}
        )
        assert (await engine.evaluate(request)).is_valid

    @pytest.mark.asyncio
    async def test_rotation(self):
        engine, lifecycle = _engine(rotate=True)
        token = await lifecycle.ensure("s1", Scope.session())
        verdict = await engine.evaluate(_request(headers={"OWASP-CSRFTOKEN": token.value}))
        assert verdict.is_valid
        assert verdict.rotated
        assert verdict.token is not None and verdict.token.value != token.value

    @pytest.mark.asyncio
    async def test_per_page_scope(self):
        engine, lifecycle = _engine(token_per_page=True)
        page = await lifecycle.ensure("s1", Scope.for_page("/admin/save"))
        other = await lifecycle.ensure("s1", Scope.for_page("/admin/delete"))
        assert (await engine.evaluate(_request(headers={"OWASP-CSRFTOKEN": page.value}))).is_valid
        wrong = await engine.evaluate(_request(headers={"OWASP-CSRFTOKEN": other.value}))
        assert wrong.is_invalid


class TestStoreFailure:
    @pytest.mark.asyncio
    async def test_store_failure_propagates(self):
        engine, _ = _engine(store=UnavailableStore())
        with pytest.raises(TokenStoreException):
            await engine.evaluate(_request(headers={"OWASP-CSRFTOKEN": "ANY"}))
