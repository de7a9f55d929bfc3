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
"""Secure random source resolution and token value generation.

Random sources are looked up by ``(provider, algorithm)`` in a registry.
A configured source that does not exist degrades to the default
:class:`random.SystemRandom` with a warning; only a failure to build the
default itself aborts startup.
"""

from __future__ import annotations

import os
import random
import string
from collections.abc import Callable

import structlog

from csrfguard.kernel.exceptions import ConfigurationException

logger = structlog.get_logger(__name__)

TOKEN_ALPHABET: str = string.ascii_uppercase + string.digits
"""Characters a token value is drawn from."""

TOKEN_GROUP_SIZE: int = 4
"""Token values are split into dash-separated groups of this many characters."""

MIN_TOKEN_LENGTH: int = 4

DEFAULT_PROVIDER = "os"
DEFAULT_ALGORITHM = "SystemRandom"

_RECIP_BPF = 2**-53


class GetrandomRandom(random.SystemRandom):
    """SystemRandom variant reading from the ``getrandom(2)`` syscall."""

    def __init__(self) -> None:
        if not hasattr(os, "getrandom"):
            raise NotImplementedError("getrandom() is not available on this platform")
        super().__init__()

    def random(self) -> float:
        return (int.from_bytes(os.getrandom(7)) >> 3) * _RECIP_BPF

    def getrandbits(self, k: int) -> int:
        if k < 0:
            raise ValueError("number of bits must be non-negative")
        numbytes = (k + 7) // 8
        x = int.from_bytes(os.getrandom(numbytes))
        return x >> (numbytes * 8 - k)


RandomFactory = Callable[[], random.Random]

RANDOM_PROVIDERS: dict[str, dict[str, RandomFactory]] = {
    "os": {
        "SystemRandom": random.SystemRandom,
        "urandom": random.SystemRandom,
        "getrandom": GetrandomRandom,
    },
}
"""provider name -> algorithm name -> factory."""


class RandomProviderNotFound(LookupError):
    pass


class RandomAlgorithmNotFound(LookupError):
    pass


def available_random_sources() -> list[str]:
    return [f"{provider}/{algorithm}" for provider, algs in RANDOM_PROVIDERS.items() for algorithm in algs]


def _instantiate(algorithm: str, provider: str | None) -> random.Random:
    if provider is not None:
        algorithms = RANDOM_PROVIDERS.get(provider)
        if algorithms is None:
            raise RandomProviderNotFound(provider)
        factory = algorithms.get(algorithm)
    else:
        factory = next((algs[algorithm] for algs in RANDOM_PROVIDERS.values() if algorithm in algs), None)

    if factory is None:
        raise RandomAlgorithmNotFound(algorithm)
    try:
        return factory()
    except NotImplementedError as exc:
        raise RandomAlgorithmNotFound(algorithm) from exc


def default_random_source() -> random.Random:
    """Build the default secure random source.

    Raises:
        ConfigurationException: if the platform offers no secure randomness.
    """
    try:
        source = random.SystemRandom()
        source.random()
    except NotImplementedError as exc:
        raise ConfigurationException(
            "No secure random source is available on this platform",
            code="CONFIG_PRNG_UNAVAILABLE",
        ) from exc
    logger.info("secure_random_default", provider=DEFAULT_PROVIDER, algorithm=DEFAULT_ALGORITHM)
    return source


def resolve_random_source(algorithm: str | None, provider: str | None) -> random.Random:
    """Resolve the configured random source, degrading to the default."""
    if algorithm is None:
        return default_random_source()
    try:
        return _instantiate(algorithm, provider)
    except RandomProviderNotFound:
        logger.warning(
            "secure_random_provider_not_found",
            provider=provider,
            available=available_random_sources(),
        )
        return resolve_random_source(algorithm, None)
    except RandomAlgorithmNotFound:
        logger.warning(
            "secure_random_algorithm_not_found",
            algorithm=algorithm,
            provider=provider,
            available=available_random_sources(),
        )
        return default_random_source()


class TokenGenerator:
    """Produces unpredictable token values of a fixed length."""

    def __init__(self, length: int = 32, source: random.Random | None = None) -> None:
        if length < MIN_TOKEN_LENGTH:
            raise ConfigurationException(
                f"The token length cannot be less than {MIN_TOKEN_LENGTH} characters.",
                code="CONFIG_TOKEN_LENGTH",
                context={"length": length},
            )
        self._length = length
        self._source = source if source is not None else default_random_source()

    @property
    def length(self) -> int:
        return self._length

    def generate(self) -> str:
        """Return a new token such as ``R3DY-2JCQ-FQEX-LB05``."""
        chars = [self._source.choice(TOKEN_ALPHABET) for _ in range(self._length)]
        groups = ["".join(chars[i : i + TOKEN_GROUP_SIZE]) for i in range(0, self._length, TOKEN_GROUP_SIZE)]
        return "-".join(groups)
