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
"""CSRFGuard Tokens — generation, rotation and the tolerance window."""

from csrfguard.token.generator import TokenGenerator, resolve_random_source
from csrfguard.token.lifecycle import TokenLifecycleManager
from csrfguard.token.types import Scope, Token, TokenCheck, TokenMatch, TokenRecord

__all__ = [
    "Scope",
    "Token",
    "TokenCheck",
    "TokenGenerator",
    "TokenLifecycleManager",
    "TokenMatch",
    "TokenRecord",
    "resolve_random_source",
]
