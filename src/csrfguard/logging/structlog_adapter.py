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
"""StructlogAdapter — LoggingPort implementation using structlog over stdlib logging."""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from typing import Any

import structlog
from structlog.types import Processor

from csrfguard.core.config import Config

SENSITIVE_KEYS: frozenset[str] = frozenset({"token", "presented", "expected", "previous"})
"""Event fields holding token values; only a short prefix is ever rendered."""

_VISIBLE_PREFIX = 4

_RENDERERS: dict[str, type[Any]] = {
    "console": structlog.dev.ConsoleRenderer,
    "json": structlog.processors.JSONRenderer,
}


def mask_token_values(_logger: Any, _method: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """structlog processor that keeps only the first characters of token values."""
    for key in SENSITIVE_KEYS & event_dict.keys():
        value = event_dict[key]
        if isinstance(value, str) and value:
            event_dict[key] = value[:_VISIBLE_PREFIX] + "****"
    return event_dict


def _level(name: str) -> int:
    value = logging.getLevelName(name)
    return value if isinstance(value, int) else logging.INFO


class StructlogAdapter:
    """Configures structlog from ``csrfguard.logging.*``.

    ``format`` selects the ``console`` (default) or ``json`` renderer.
    ``level.root`` sets the root level; any other key under ``level`` names
    a logger (``csrfguard.token``) and sets its level.
    """

    def __init__(self) -> None:
        self._root_level = "INFO"
        self._format = "console"
        self._module_levels: dict[str, str] = {}

    def configure(self, config: Config) -> None:
        levels = {name: str(level).upper() for name, level in config.get_section("csrfguard.logging.level").items()}
        self._root_level = levels.pop("root", "INFO")
        self._module_levels = levels
        requested = str(config.get("csrfguard.logging.format", "console")).lower()
        self._format = requested if requested in _RENDERERS else "console"

        structlog.configure(
            processors=self.processors(),
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )
        logging.basicConfig(format="%(message)s", stream=sys.stdout, level=_level(self._root_level), force=True)
        for name, level in self._module_levels.items():
            self.set_level(name, level)

    def processors(self) -> list[Processor]:
        """Processor chain for the configured format; token values are masked before rendering."""
        return [
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            mask_token_values,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            _RENDERERS[self._format](),
        ]

    def get_logger(self, name: str) -> Any:
        return structlog.get_logger(name)

    def set_level(self, name: str, level: str) -> None:
        logging.getLogger(name).setLevel(_level(level.upper()))
