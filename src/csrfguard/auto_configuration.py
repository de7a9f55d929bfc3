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
"""Startup registries selecting token stores and session resolvers by name."""

from __future__ import annotations

import importlib.util
from collections.abc import Callable

from csrfguard.config.properties import ComponentSettings
from csrfguard.kernel.exceptions import ConfigurationException
from csrfguard.session.ports.outbound import SessionIdentityResolver
from csrfguard.store.ports.outbound import TokenStore


def is_available(module_name: str) -> bool:
    """Whether *module_name* can be imported, without importing it."""
    try:
        return importlib.util.find_spec(module_name) is not None
    except ModuleNotFoundError:
        return False


def detect_store_provider() -> str:
    """Token store used by ``token-store: auto``: Redis when its client is installed."""
    return "redis" if is_available("redis.asyncio") else "memory"


def _memory_store(settings: ComponentSettings) -> TokenStore:
    from csrfguard.store.adapters.memory import InMemoryTokenStore

    return InMemoryTokenStore()


def _redis_store(settings: ComponentSettings) -> TokenStore:
    if not is_available("redis.asyncio"):
        raise ConfigurationException(
            "token-store 'redis' requires the 'redis' package", code="CONFIG_STORE_UNAVAILABLE"
        )
    import redis.asyncio as aioredis

    from csrfguard.store.adapters.redis import RedisTokenStore

    url = str(settings.parameter("url", "redis://localhost:6379/0"))
    ttl = settings.parameter("ttl")
    client = aioredis.from_url(url)  # type: ignore[no-untyped-call,unused-ignore]
    return RedisTokenStore(
        client=client,
        ttl=int(ttl) if ttl is not None else None,
        lock_timeout=float(settings.parameter("lock-timeout", 5.0)),
        blocking_timeout=float(settings.parameter("blocking-timeout", 2.0)),
    )


def _auto_store(settings: ComponentSettings) -> TokenStore:
    return TOKEN_STORES[detect_store_provider()](settings)


TOKEN_STORES: dict[str, Callable[[ComponentSettings], TokenStore]] = {
    "memory": _memory_store,
    "redis": _redis_store,
    "auto": _auto_store,
}


def _state_resolver(settings: ComponentSettings) -> SessionIdentityResolver:
    from csrfguard.session.adapters.state import SessionStateResolver

    return SessionStateResolver(attribute=str(settings.parameter("attribute", "session")))


def _cookie_resolver(settings: ComponentSettings) -> SessionIdentityResolver:
    from csrfguard.session.adapters.cookie import CookieSessionResolver

    return CookieSessionResolver(cookie_name=str(settings.parameter("cookie-name", "SESSION")))


def _header_resolver(settings: ComponentSettings) -> SessionIdentityResolver:
    from csrfguard.session.adapters.header import HeaderSessionResolver

    return HeaderSessionResolver(header_name=str(settings.parameter("header-name", "X-Session-Id")))


SESSION_RESOLVERS: dict[str, Callable[[ComponentSettings], SessionIdentityResolver]] = {
    "state": _state_resolver,
    "cookie": _cookie_resolver,
    "header": _header_resolver,
}


def _lookup(registry: dict[str, Callable], kind: str, settings: ComponentSettings) -> Callable:
    factory = registry.get(settings.type.strip().lower())
    if factory is None:
        raise ConfigurationException(
            f"Unknown {kind} '{settings.type}'. Available: {sorted(registry)}",
            code="CONFIG_COMPONENT_UNKNOWN",
            context={"kind": kind, "type": settings.type},
        )
    return factory


def create_token_store(settings: ComponentSettings) -> TokenStore:
    """Build the token store named by *settings*."""
    return _lookup(TOKEN_STORES, "token-store", settings)(settings)


def create_session_resolver(settings: ComponentSettings) -> SessionIdentityResolver:
    """Build the session identity resolver named by *settings*."""
    return _lookup(SESSION_RESOLVERS, "session-resolver", settings)(settings)
