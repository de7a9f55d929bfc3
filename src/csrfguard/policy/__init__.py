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
"""CSRFGuard Policy — page and method rules deciding where validation applies."""

from csrfguard.policy.matcher import PolicyMatcher
from csrfguard.policy.paths import normalize_path, normalize_resource_uri
from csrfguard.policy.rules import HTTP_METHODS, Disposition, PageRule, PatternKind, compile_rule

__all__ = [
    "HTTP_METHODS",
    "Disposition",
    "PageRule",
    "PatternKind",
    "PolicyMatcher",
    "compile_rule",
    "normalize_path",
    "normalize_resource_uri",
]
