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
"""Layered configuration: packaged defaults, YAML/TOML files and the environment.

Keys use dot notation (``csrfguard.token-store.type``). Environment
variables override scalar values at read time; their names drop the
leading ``csrfguard.`` and turn dots and dashes into underscores
(``csrfguard.token-name`` -> ``CSRFGUARD_TOKEN_NAME``).

String values may reference other values or variables with
``${key}`` / ``${ENV_VAR}``, optionally with a fallback: ``${key:default}``.
"""

from __future__ import annotations

import importlib.resources
import os
import re
import tomllib
from collections.abc import Callable, Iterator, Mapping
from pathlib import Path
from typing import Any, TypeVar, cast

import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, ValidationError

from csrfguard.kernel.exceptions import ConfigurationException

T = TypeVar("T")

CONFIG_STEM = "csrfguard"
ENV_PREFIX = "CSRFGUARD_"

_PREFIX_ATTR = "__csrfguard_config_prefix__"
_PLACEHOLDER_RE = re.compile(r"\$\{([^}]+)\}")
_MAX_PLACEHOLDER_DEPTH = 10
_EXTENSIONS = (".yaml", ".yml", ".toml")


def config_properties(prefix: str) -> Callable[[type[T]], type[T]]:
    """Declare the configuration section a pydantic model binds to.

    Usage:
        @config_properties(prefix="csrfguard")
        class CsrfGuardProperties(BaseModel):
            token_length: int = 32
    """

    def decorator(cls: type[T]) -> type[T]:
        setattr(cls, _PREFIX_ATTR, prefix)
        return cls

    return decorator


def env_name(key: str) -> str:
    """Environment variable overriding *key*."""
    path = key.removeprefix(f"{CONFIG_STEM}.")
    return ENV_PREFIX + re.sub(r"[.\-]", "_", path).upper()


def read_config_file(path: Path) -> dict[str, Any]:
    """Parse one YAML or TOML file into a mapping.

    Raises:
        ConfigurationException: if the file cannot be parsed or is not a mapping.
    """
    try:
        if path.suffix == ".toml":
            data = tomllib.loads(path.read_text())
        else:
            data = yaml.safe_load(path.read_text())
    except (yaml.YAMLError, tomllib.TOMLDecodeError) as exc:
        raise ConfigurationException(
            f"Cannot parse configuration file {path}: {exc}",
            code="CONFIG_FILE",
            context={"path": str(path)},
        ) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationException(
            f"Configuration file {path} must contain a mapping at the top level",
            code="CONFIG_FILE",
            context={"path": str(path)},
        )
    return data


def merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Deep-merge *override* into a copy of *base*; nested mappings merge, other values replace."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = merge(current, value)
        else:
            merged[key] = value
    return merged


def library_defaults() -> dict[str, Any]:
    """Defaults shipped in ``csrfguard.resources``."""
    text = importlib.resources.files("csrfguard.resources").joinpath("csrfguard-defaults.yaml").read_text()
    return yaml.safe_load(text) or {}


def _existing(directory: Path, stem: str) -> Iterator[Path]:
    for ext in _EXTENSIONS:
        candidate = directory / f"{stem}{ext}"
        if candidate.is_file():
            yield candidate


class Config:
    """Merged configuration tree with dot-notation lookup.

    Priority, highest first: environment variables, files (later sources
    win), packaged defaults, model defaults.
    """

    def __init__(self, data: Mapping[str, Any] | None = None, sources: list[str] | None = None) -> None:
        self._data: dict[str, Any] = dict(data or {})
        self._sources = list(sources or [])

    @property
    def sources(self) -> list[str]:
        """Where the merged values came from, lowest priority first."""
        return list(self._sources)

    @classmethod
    def from_sources(
        cls,
        base_dir: str | Path,
        active_profiles: list[str] | None = None,
        load_defaults: bool = True,
    ) -> Config:
        """Merge every configuration source found under *base_dir*.

        Order (later wins): packaged defaults, ``config/csrfguard.*``,
        ``csrfguard.*``, then ``csrfguard-<profile>.*`` overlays from both
        directories for each active profile.
        """
        base_dir = Path(base_dir)
        directories = (base_dir / "config", base_dir)
        stems = [CONFIG_STEM] + [f"{CONFIG_STEM}-{p}" for p in active_profiles or []]

        data: dict[str, Any] = library_defaults() if load_defaults else {}
        sources = ["csrfguard-defaults.yaml"] if load_defaults else []
        for stem in stems:
            for directory in directories:
                for path in _existing(directory, stem):
                    data = merge(data, read_config_file(path))
                    sources.append(str(path))
        return cls(data, sources)

    @classmethod
    def from_file(
        cls,
        path: str | Path,
        active_profiles: list[str] | None = None,
        load_defaults: bool = True,
    ) -> Config:
        """Load one file (plus ``<stem>-<profile>`` siblings) over the packaged defaults.

        A missing file leaves only the defaults.
        """
        path = Path(path)
        data: dict[str, Any] = library_defaults() if load_defaults else {}
        sources = ["csrfguard-defaults.yaml"] if load_defaults else []
        if path.is_file():
            overlays = [path.with_name(f"{path.stem}-{p}{path.suffix}") for p in active_profiles or []]
            for candidate in [path, *overlays]:
                if candidate.is_file():
                    data = merge(data, read_config_file(candidate))
                    sources.append(str(candidate))
        return cls(data, sources)

    def _lookup(self, key: str) -> Any:
        node: Any = self._data
        for part in key.split("."):
            if not isinstance(node, Mapping) or part not in node:
                return None
            node = node[part]
        return node

    def get(self, key: str, default: Any = None) -> Any:
        """Value at dot-notation *key*, after env override and placeholder resolution.

        Raises:
            ConfigurationException: if a placeholder cannot be resolved.
        """
        env_value = os.environ.get(env_name(key))
        if env_value is not None:
            return env_value

        value = self._lookup(key)
        if value is None:
            return default
        if isinstance(value, str) and "${" in value:
            return self._resolve(value)
        return value

    def _resolve(self, value: str, depth: int = 0) -> str:
        if depth > _MAX_PLACEHOLDER_DEPTH:
            raise ConfigurationException(
                f"Placeholders in '{value}' nest too deeply; check for circular references",
                code="CONFIG_PLACEHOLDER",
            )

        def _substitute(match: re.Match[str]) -> str:
            name, _, fallback = match.group(1).partition(":")
            has_fallback = ":" in match.group(1)

            env_value = os.environ.get(name)
            if env_value is not None:
                return env_value
            referenced = self._lookup(name)
            if referenced is not None:
                text = str(referenced)
                return self._resolve(text, depth + 1) if "${" in text else text
            if has_fallback:
                return fallback
            raise ConfigurationException(
                f"Cannot resolve placeholder '${{{match.group(1)}}}'",
                code="CONFIG_PLACEHOLDER",
                context={"placeholder": name},
            )

        return _PLACEHOLDER_RE.sub(_substitute, value)

    def get_section(self, prefix: str) -> dict[str, Any]:
        """Mapping under *prefix*, with env overrides applied to its scalar entries."""
        node = self._lookup(prefix)
        section = dict(node) if isinstance(node, Mapping) else {}
        for key, value in section.items():
            if not isinstance(value, Mapping | list):
                section[key] = self.get(f"{prefix}.{key}", value)
        return section

    def bind(self, model: type[T]) -> T:
        """Validate the section named by ``@config_properties`` into *model*.

        Fields absent from every file are still read from their environment
        variable.

        Raises:
            ConfigurationException: if *model* is not a decorated pydantic
                model, or the section does not validate.
        """
        prefix = getattr(model, _PREFIX_ATTR, None)
        if prefix is None or not (isinstance(model, type) and issubclass(model, BaseModel)):
            raise ConfigurationException(
                f"{model.__name__} must be a pydantic model decorated with @config_properties",
                code="CONFIG_BIND",
            )
        section = self.get_section(prefix)
        for name, field in model.model_fields.items():
            key = field.alias or name
            if key in section or name in section:
                continue
            env_value = os.environ.get(env_name(f"{prefix}.{key}"))
            if env_value is not None:
                section[key] = env_value
        try:
            return cast(T, model.model_validate(section))
        except ValidationError as exc:
            raise ConfigurationException(
                f"Invalid '{prefix}' configuration:\n{exc}",
                code="CONFIG_INVALID",
                context={"prefix": prefix, "errors": exc.errors(include_url=False)},
            ) from exc
