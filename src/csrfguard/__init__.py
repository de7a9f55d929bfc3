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
"""CSRFGuard — synchronizer-token CSRF protection.

Build a :class:`CsrfGuard` from configuration and mount the Starlette
middleware::

    from csrfguard import Config, CsrfGuard
    from csrfguard.web.adapters.starlette import CsrfGuardMiddleware

    guard = CsrfGuard.from_config(Config.from_sources("."))
    app.add_middleware(CsrfGuardMiddleware, guard=guard)
"""

from csrfguard.config.properties import ActionRecord, ComponentSettings, CsrfGuardProperties
from csrfguard.core.config import Config
from csrfguard.guard import CsrfGuard
from csrfguard.kernel.exceptions import (
    ActionException,
    ConfigurationException,
    CsrfGuardException,
    TokenStoreException,
)
from csrfguard.policy.matcher import PolicyMatcher
from csrfguard.token.lifecycle import TokenLifecycleManager
from csrfguard.token.types import Scope, Token
from csrfguard.validation.engine import ValidationEngine
from csrfguard.validation.verdict import Verdict, VerdictOutcome, ViolationReason

__version__ = "0.1.0"

__all__ = [
    "ActionException",
    "ActionRecord",
    "ComponentSettings",
    "Config",
    "ConfigurationException",
    "CsrfGuard",
    "CsrfGuardException",
    "CsrfGuardProperties",
    "PolicyMatcher",
    "Scope",
    "Token",
    "TokenLifecycleManager",
    "TokenStoreException",
    "ValidationEngine",
    "Verdict",
    "VerdictOutcome",
    "ViolationReason",
]
