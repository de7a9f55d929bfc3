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
"""CSRFGuard configuration properties (csrfguard.*)."""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from csrfguard.core.config import config_properties
from csrfguard.kernel.exceptions import ConfigurationException
from csrfguard.policy.rules import normalize_methods, validate_methods
from csrfguard.token.generator import MIN_TOKEN_LENGTH


def _kebab(name: str) -> str:
    return name.replace("_", "-")


class _Settings(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=_kebab,
        extra="ignore",
    )


class _Parameterized(_Settings):
    parameters: dict[str, Any] = Field(default_factory=dict)

    def parameter(self, key: str, default: Any = None) -> Any:
        """Look a parameter up case-insensitively, ignoring ``-``/``_`` differences."""
        wanted = _normalize_key(key)
        for name, value in self.parameters.items():
            if _normalize_key(name) == wanted:
                return value
        return default


def _normalize_key(key: str) -> str:
    return key.lower().replace("-", "").replace("_", "")


class ActionRecord(_Parameterized):
    """One configured response to a validation failure.

    ``name`` selects a registered action; ``parameters`` keep their
    configured order.
    """

    name: str


class ComponentSettings(_Parameterized):
    """Selects a pluggable component (store, session resolver) by name."""

    type: str

    @model_validator(mode="before")
    @classmethod
    def _from_name(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"type": value}
        return value


@config_properties(prefix="csrfguard")
class CsrfGuardProperties(_Settings):
    """Immutable CSRFGuard configuration, validated once at startup."""

    enabled: bool = True
    token_name: str = "OWASP-CSRFTOKEN"
    token_length: int = 32
    rotate: bool = False
    token_per_page: bool = False
    token_per_page_precreate: bool = False
    protect_by_default: bool = True
    validate_when_no_session_exists: bool = True
    domain_origin: str | None = None
    page_token_synchronization_tolerance: timedelta = timedelta(seconds=2)
    prng: str | None = "SystemRandom"
    prng_provider: str | None = "os"
    new_token_landing_page: str | None = None
    use_new_token_landing_page: bool | None = None
    ajax: bool = True
    force_synchronous_ajax: bool = False
    print_config: bool = False
    context_path: str = ""
    protected_pages: tuple[str, ...] = ()
    unprotected_pages: tuple[str, ...] = ()
    protected_methods: frozenset[str] = frozenset()
    unprotected_methods: frozenset[str] = frozenset()
    banned_user_agents: tuple[str, ...] = ()
    actions: tuple[ActionRecord, ...] = ()
    session_resolver: ComponentSettings | None = None
    token_store: ComponentSettings = ComponentSettings(type="memory")
    on_store_failure: Literal["fail-closed", "fail-open"] = "fail-closed"

    @field_validator("protected_methods", "unprotected_methods", mode="before")
    @classmethod
    def _parse_methods(cls, value: Any) -> frozenset[str]:
        return normalize_methods(value)

    @field_validator("protected_pages", "unprotected_pages", "banned_user_agents", mode="before")
    @classmethod
    def _parse_list(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, str):
            return tuple(v.strip() for v in value.split(",") if v.strip())
        if isinstance(value, dict):
            # Named entries (``page1: /admin``) keep only their values.
            return tuple(value.values())
        return value

    @model_validator(mode="after")
    def _validate(self) -> CsrfGuardProperties:
        if not self.enabled:
            return self

        if self.token_length < MIN_TOKEN_LENGTH:
            raise ConfigurationException(
                f"The token length cannot be less than {MIN_TOKEN_LENGTH} characters. "
                "The recommended default value is: 32",
                code="CONFIG_TOKEN_LENGTH",
                context={"token_length": self.token_length},
            )
        validate_methods(self.protected_methods, self.unprotected_methods)
        if self.session_resolver is None:
            raise ConfigurationException(
                "Mandatory parameter [session-resolver] is missing from the configuration!",
                code="CONFIG_SESSION_RESOLVER",
            )
        if not self.actions:
            raise ConfigurationException(
                "At least one action that will be called in case of CSRF attacks must be defined!",
                code="CONFIG_ACTIONS",
            )
        if self.page_token_synchronization_tolerance < timedelta(0):
            raise ConfigurationException(
                "page-token-synchronization-tolerance cannot be negative",
                code="CONFIG_TOLERANCE",
            )
        return self

    @property
    def landing_page_enabled(self) -> bool:
        """Whether the new-token landing page is in use (defaults to whether one is set)."""
        if self.use_new_token_landing_page is not None:
            return self.use_new_token_landing_page and self.new_token_landing_page is not None
        return self.new_token_landing_page is not None

    def summary(self) -> dict[str, Any]:
        """Effective settings for the startup configuration log."""
        return {
            "enabled": self.enabled,
            "token_name": self.token_name,
            "token_length": self.token_length,
            "rotate": self.rotate,
            "token_per_page": self.token_per_page,
            "token_per_page_precreate": self.token_per_page_precreate,
            "protect_by_default": self.protect_by_default,
            "validate_when_no_session_exists": self.validate_when_no_session_exists,
            "domain_origin": self.domain_origin,
            "tolerance_seconds": self.page_token_synchronization_tolerance.total_seconds(),
            "prng": f"{self.prng_provider}/{self.prng}",
            "ajax": self.ajax,
            "force_synchronous_ajax": self.force_synchronous_ajax,
            "new_token_landing_page": self.new_token_landing_page if self.landing_page_enabled else None,
            "protected_pages": list(self.protected_pages),
            "unprotected_pages": list(self.unprotected_pages),
            "protected_methods": sorted(self.protected_methods),
            "unprotected_methods": sorted(self.unprotected_methods),
            "banned_user_agents": list(self.banned_user_agents),
            "actions": [a.name for a in self.actions],
            "session_resolver": self.session_resolver.type if self.session_resolver else None,
            "token_store": self.token_store.type,
            "on_store_failure": self.on_store_failure,
        }
