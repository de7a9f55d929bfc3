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
"""CsrfGuard — wires matcher, lifecycle, engine and action pipeline from one properties value."""

from __future__ import annotations

import random
from typing import Any

import structlog

from csrfguard.action.pipeline import ViolationActionPipeline
from csrfguard.action.types import ViolationOutcome
from csrfguard.auto_configuration import create_session_resolver, create_token_store
from csrfguard.config.properties import CsrfGuardProperties
from csrfguard.core.config import Config
from csrfguard.logging.port import LoggingPort
from csrfguard.policy.matcher import PolicyMatcher
from csrfguard.policy.rules import Disposition
from csrfguard.session.ports.outbound import SessionIdentityResolver
from csrfguard.store.ports.outbound import TokenStore
from csrfguard.token.generator import TokenGenerator, resolve_random_source
from csrfguard.token.lifecycle import Clock, TokenLifecycleManager, utc_now
from csrfguard.token.types import Scope, Token
from csrfguard.validation.engine import ValidationEngine
from csrfguard.validation.verdict import Verdict

logger = structlog.get_logger(__name__)


class CsrfGuard:
    """Entry point for request-handling layers.

    Built once at startup; every collaborator receives the same immutable
    :class:`CsrfGuardProperties`. *store* and *resolver* override the
    configured ``token-store`` / ``session-resolver`` components.
    """

    def __init__(
        self,
        properties: CsrfGuardProperties,
        *,
        store: TokenStore | None = None,
        resolver: SessionIdentityResolver | None = None,
        random_source: random.Random | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._properties = properties
        self._matcher = PolicyMatcher(
            protect_by_default=properties.protect_by_default,
            protected_pages=properties.protected_pages,
            unprotected_pages=properties.unprotected_pages,
            protected_methods=properties.protected_methods,
            unprotected_methods=properties.unprotected_methods,
            context_path=properties.context_path,
            token_per_page=properties.token_per_page,
        )
        source = random_source or resolve_random_source(properties.prng, properties.prng_provider)
        self._store = store if store is not None else create_token_store(properties.token_store)
        self._lifecycle = TokenLifecycleManager(
            self._store,
            TokenGenerator(properties.token_length, source),
            tolerance=properties.page_token_synchronization_tolerance,
            token_per_page=properties.token_per_page,
            clock=clock,
        )
        if resolver is None and properties.session_resolver is not None:
            resolver = create_session_resolver(properties.session_resolver)
        self._resolver = resolver
        self._engine = ValidationEngine(properties, self._matcher, self._lifecycle, resolver)
        self._pipeline = ViolationActionPipeline.from_records(properties.actions, self._lifecycle)

        if properties.print_config:
            logger.info("csrfguard_configuration", **properties.summary())

    @classmethod
    def from_config(cls, config: Config, *, logging_port: LoggingPort | None = None, **kwargs: Any) -> CsrfGuard:
        """Bind ``csrfguard.*`` from *config* and build the guard.

        When *logging_port* is given it is configured from the same *config*
        before the properties are bound.

        Raises:
            ConfigurationException: on any invalid or missing setting.
        """
        if logging_port is not None:
            logging_port.configure(config)
        return cls(config.bind(CsrfGuardProperties), **kwargs)

    @property
    def properties(self) -> CsrfGuardProperties:
        return self._properties

    @property
    def matcher(self) -> PolicyMatcher:
        return self._matcher

    @property
    def lifecycle(self) -> TokenLifecycleManager:
        return self._lifecycle

    @property
    def engine(self) -> ValidationEngine:
        return self._engine

    @property
    def pipeline(self) -> ViolationActionPipeline:
        return self._pipeline

    @property
    def resolver(self) -> SessionIdentityResolver | None:
        return self._resolver

    async def evaluate(self, request: Any, presented: str | None = None) -> Verdict:
        """Evaluate *request*; see :meth:`ValidationEngine.evaluate`."""
        return await self._engine.evaluate(request, presented)

    async def handle_violation(self, verdict: Verdict, request: Any) -> ViolationOutcome:
        """Run the configured actions for an INVALID *verdict*."""
        return await self._pipeline.execute(verdict, request)

    async def on_session_start(self, session_id: str) -> None:
        """Create the session token and, with per-page precreate on, every protected page token."""
        if not self._properties.enabled:
            return
        await self._lifecycle.ensure(session_id, Scope.session())
        if self._properties.token_per_page and self._properties.token_per_page_precreate:
            await self._lifecycle.precreate(session_id, self._matcher.protected_exact_pages)

    async def on_session_end(self, session_id: str) -> None:
        """Evict every token of an ended session."""
        await self._lifecycle.discard(session_id)

    async def token_for(self, request: Any, path: str | None = None) -> Token | None:
        """Return the token a page must embed to post to *path* (default: the request path).

        Unprotected pages share the session token, so per-page records
        exist only for protected pages. Returns ``None`` when the request
        has no logical session.
        """
        if self._resolver is None:
            return None
        session_id = self._resolver.resolve(request)
        if session_id is None:
            return None
        page = self._matcher.normalize(path if path is not None else request.url.path)
        if self._matcher.classify_path(page) is Disposition.UNPROTECTED:
            return await self._lifecycle.ensure(session_id, Scope.session())
        return await self._lifecycle.ensure(session_id, self._lifecycle.scope_for(page))
