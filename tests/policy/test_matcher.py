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
"""Tests for PolicyMatcher precedence rules."""

import pytest

from csrfguard.kernel.exceptions import ConfigurationException
from csrfguard.policy.matcher import PolicyMatcher
from csrfguard.policy.rules import Disposition

PROTECTED = Disposition.PROTECTED
UNPROTECTED = Disposition.UNPROTECTED


class TestMethodRules:
    def test_overlapping_method_sets_fail(self):
        with pytest.raises(ConfigurationException):
            PolicyMatcher(protected_methods="POST,PUT", unprotected_methods="GET,POST")

    def test_unprotected_method_wins_over_page(self):
        matcher = PolicyMatcher(unprotected_methods={"GET", "HEAD"}, protected_pages=["/admin"])
        assert matcher.classify("/admin", "get") is UNPROTECTED
        assert matcher.classify("/admin", "POST") is PROTECTED

    def test_method_outside_protected_set(self):
        matcher = PolicyMatcher(protected_methods=["POST", "PUT", "DELETE"])
        assert matcher.classify("/anything", "GET") is UNPROTECTED
        assert matcher.classify("/anything", "DELETE") is PROTECTED

    def test_no_method_rules_protects_every_method(self):
        matcher = PolicyMatcher()
        assert matcher.is_protected_method("GET")
        assert matcher.is_protected_method("POST")


class TestPageRules:
    def test_default_disposition(self):
        assert PolicyMatcher(protect_by_default=True).classify("/x", "POST") is PROTECTED
        assert PolicyMatcher(protect_by_default=False).classify("/x", "POST") is UNPROTECTED

    def test_exact_protected_beats_unprotected_wildcard(self):
        matcher = PolicyMatcher(protected_pages=["/admin/save"], unprotected_pages=["/*"])
        assert matcher.classify("/admin/save", "POST") is PROTECTED
        assert matcher.classify("/admin/other", "POST") is UNPROTECTED

    def test_wildcard_unprotects_subtree(self):
        matcher = PolicyMatcher(protect_by_default=True, unprotected_pages=["/public/*"])
        assert matcher.classify("/public/info", "POST") is UNPROTECTED
        assert matcher.classify("/private/info", "POST") is PROTECTED

    def test_public_page_protected_without_rule(self):
        assert PolicyMatcher(protect_by_default=True).classify("/public/info", "POST") is PROTECTED

    def test_unprotected_wins_within_tier(self):
        matcher = PolicyMatcher(protected_pages=["/api/*"], unprotected_pages=["*.json"])
        assert matcher.classify("/api/data.json", "POST") is UNPROTECTED
        assert matcher.classify("/api/data", "POST") is PROTECTED

    def test_exact_listed_both_ways_is_unprotected(self):
        matcher = PolicyMatcher(protected_pages=["/login"], unprotected_pages=["/login"])
        assert matcher.classify("/login", "POST") is UNPROTECTED

    def test_pattern_beats_regex(self):
        matcher = PolicyMatcher(
            protect_by_default=False,
            protected_pages=["/shop/*"],
            unprotected_pages=[r"^/shop/cart/.*$"],
        )
        assert matcher.classify("/shop/cart/add", "POST") is PROTECTED

    def test_regex_rule(self):
        matcher = PolicyMatcher(protect_by_default=False, protected_pages=[r"^/api/v[0-9]+/orders$"])
        assert matcher.classify("/api/v2/orders", "POST") is PROTECTED
        assert matcher.classify("/api/v2/orders/1", "POST") is UNPROTECTED

    def test_extension_rule(self):
        matcher = PolicyMatcher(unprotected_pages=["*.png"])
        assert matcher.classify("/img/logo.png", "POST") is UNPROTECTED

    def test_query_string_ignored(self):
        matcher = PolicyMatcher(protect_by_default=False, protected_pages=["/admin/save"])
        assert matcher.classify("/admin/save?id=3", "POST") is PROTECTED

    def test_context_path_stripped(self):
        matcher = PolicyMatcher(
            protect_by_default=False, protected_pages=["/admin/save"], context_path="/shop"
        )
        assert matcher.classify("/shop/admin/save", "POST") is PROTECTED
        assert matcher.normalize("/shop") == "/"


class TestProtectedExactPages:
    def test_only_exact_protected_pages(self):
        matcher = PolicyMatcher(
            protected_pages=["/a", "/b/*", r"^/c$", "/d"],
            unprotected_pages=["/d"],
        )
        assert matcher.protected_exact_pages == ("/a",)

    def test_rules_exposed(self):
        matcher = PolicyMatcher(protected_pages=["/a"], unprotected_pages=["/b"])
        assert [r.descriptor for r in matcher.rules] == ["/a", "/b"]
