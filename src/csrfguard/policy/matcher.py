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
"""PolicyMatcher — decides whether CSRF validation applies to a request."""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from csrfguard.policy.paths import normalize_path
from csrfguard.policy.rules import (
    Disposition,
    PageRule,
    PatternKind,
    compile_rule,
    normalize_methods,
    validate_methods,
)

logger = structlog.get_logger(__name__)

_PATTERN_TIERS = (
    (PatternKind.WILDCARD, PatternKind.EXTENSION),
    (PatternKind.REGEX,),
)


class PolicyMatcher:
    """Classifies ``(path, method)`` pairs as PROTECTED or UNPROTECTED.

    Precedence:

    1. Method rules. A method in the unprotected set, or outside a non-empty
       protected set, is UNPROTECTED whatever the path.
    2. Page rules, tier by tier: exact paths, then wildcard/extension
       patterns, then regular expressions. In the first tier with any match
       the UNPROTECTED rules win over PROTECTED ones.
    3. No rule matched: PROTECTED if ``protect_by_default`` else UNPROTECTED.

    Rule sets are immutable after construction and safe to share between
    concurrent evaluations.
    """

    def __init__(
        self,
        *,
        protect_by_default: bool = True,
        protected_pages: Iterable[str] = (),
        unprotected_pages: Iterable[str] = (),
        protected_methods: Iterable[str] | str | None = None,
        unprotected_methods: Iterable[str] | str | None = None,
        context_path: str = "",
        token_per_page: bool = False,
    ) -> None:
        self._protect_by_default = protect_by_default
        self._context_path = context_path
        self._protected_methods = normalize_methods(protected_methods)
        self._unprotected_methods = normalize_methods(unprotected_methods)
        validate_methods(self._protected_methods, self._unprotected_methods)

        self._rules: tuple[PageRule, ...] = tuple(
            [compile_rule(p, Disposition.PROTECTED) for p in protected_pages]
            + [compile_rule(p, Disposition.UNPROTECTED) for p in unprotected_pages]
        )
        self._exact: dict[str, Disposition] = {}
        for rule in self._rules:
            if rule.kind is PatternKind.EXACT:
                # Listing a page as both protected and unprotected leaves it unprotected.
                if self._exact.get(rule.descriptor) is not Disposition.UNPROTECTED:
                    self._exact[rule.descriptor] = rule.disposition

        if token_per_page:
            for rule in self._rules:
                if rule.approximate and rule.disposition is Disposition.PROTECTED:
                    logger.warning(
                        "page_rule_approximate",
                        rule=rule.descriptor,
                        detail="every resource under this rule gets its own page token; "
                        "use a regular expression rule to group resources",
                    )

    @property
    def protect_by_default(self) -> bool:
        return self._protect_by_default

    @property
    def rules(self) -> tuple[PageRule, ...]:
        return self._rules

    @property
    def protected_exact_pages(self) -> tuple[str, ...]:
        """Concrete protected paths, the only pages whose tokens can be precreated."""
        return tuple(
            path for path, disposition in self._exact.items() if disposition is Disposition.PROTECTED
        )

    def normalize(self, path: str) -> str:
        """Normalize *path* the same way rules were normalized."""
        return normalize_path(path, self._context_path)

    def is_protected_method(self, method: str) -> bool:
        method = method.upper()
        if method in self._unprotected_methods:
            return False
        return not (self._protected_methods and method not in self._protected_methods)

    def classify_path(self, path: str) -> Disposition:
        """Classify an already-normalized *path* using page rules only."""
        exact = self._exact.get(path)
        if exact is not None:
            return exact

        for kinds in _PATTERN_TIERS:
            matched = {r.disposition for r in self._rules if r.kind in kinds and r.matches(path)}
            if Disposition.UNPROTECTED in matched:
                return Disposition.UNPROTECTED
            if Disposition.PROTECTED in matched:
                return Disposition.PROTECTED

        return Disposition.PROTECTED if self._protect_by_default else Disposition.UNPROTECTED

    def classify(self, path: str, method: str) -> Disposition:
        """Classify a raw request *path* and HTTP *method*."""
        if not self.is_protected_method(method):
            return Disposition.UNPROTECTED
        return self.classify_path(self.normalize(path))
