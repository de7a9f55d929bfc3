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
"""Page and method rule types.

Page rule descriptor syntax:

* ``^...$`` — a regular expression (must start with ``^`` and end with
  ``$``); it has to match the whole normalized path.
* ``/*`` — every path.
* ``/prefix/*`` — ``/prefix`` itself and everything beneath it.
* ``*.ext`` — any path whose last segment ends with ``.ext``.
* anything else — an exact path, normalized to start with ``/``.

The same syntax is used by any client-side mirror of these rules.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum

from csrfguard.kernel.exceptions import ConfigurationException
from csrfguard.policy.paths import normalize_resource_uri

HTTP_METHODS: frozenset[str] = frozenset(
    {"GET", "HEAD", "POST", "PUT", "DELETE", "CONNECT", "OPTIONS", "TRACE", "PATCH"}
)
"""HTTP methods accepted in protected/unprotected method rules."""


class Disposition(StrEnum):
    """Whether CSRF validation applies to a request."""

    PROTECTED = "PROTECTED"
    UNPROTECTED = "UNPROTECTED"


class PatternKind(StrEnum):
    """How a page rule descriptor is matched, in order of precedence."""

    EXACT = "EXACT"
    WILDCARD = "WILDCARD"
    EXTENSION = "EXTENSION"
    REGEX = "REGEX"


def is_regex_descriptor(descriptor: str) -> bool:
    """Return ``True`` if *descriptor* follows the ``^...$`` regex convention."""
    return len(descriptor) >= 2 and descriptor.startswith("^") and descriptor.endswith("$")


@dataclass(frozen=True)
class PageRule:
    """A compiled (pattern, disposition) pair."""

    descriptor: str
    kind: PatternKind
    disposition: Disposition
    regex: re.Pattern[str] | None = None

    def __post_init__(self) -> None:
        if self.kind is PatternKind.REGEX and self.regex is None:
            raise ConfigurationException(
                f"Regex page rule '{self.descriptor}' has no compiled pattern",
                code="CONFIG_PAGE_REGEX",
                context={"descriptor": self.descriptor},
            )

    @property
    def approximate(self) -> bool:
        """Wildcard and extension rules cannot carry a single shared page token."""
        return self.kind in (PatternKind.WILDCARD, PatternKind.EXTENSION)

    def matches(self, path: str) -> bool:
        """Return ``True`` if the normalized *path* matches this rule."""
        if self.kind is PatternKind.EXACT:
            return path == self.descriptor

        if self.kind is PatternKind.WILDCARD:
            prefix = self.descriptor[:-2]
            if not prefix:
                return True
            return path == prefix or path.startswith(prefix + "/")

        if self.kind is PatternKind.EXTENSION:
            last_segment = path.rsplit("/", 1)[-1]
            return last_segment.endswith(self.descriptor[1:])

        return self.regex is not None and self.regex.fullmatch(path) is not None


def compile_rule(descriptor: str, disposition: Disposition) -> PageRule:
    """Compile a page descriptor into a :class:`PageRule`.

    Raises:
        ConfigurationException: if a regex descriptor does not compile.
    """
    descriptor = descriptor.strip()

    if is_regex_descriptor(descriptor):
        try:
            pattern = re.compile(descriptor)
        except re.error as exc:
            raise ConfigurationException(
                f"Page rule '{descriptor}' is not a valid regular expression: {exc}",
                code="CONFIG_PAGE_REGEX",
                context={"descriptor": descriptor},
            ) from exc
        return PageRule(descriptor, PatternKind.REGEX, disposition, pattern)

    if descriptor.startswith("*."):
        return PageRule(descriptor, PatternKind.EXTENSION, disposition)

    descriptor = normalize_resource_uri(descriptor)
    if descriptor.endswith("/*"):
        return PageRule(descriptor, PatternKind.WILDCARD, disposition)

    return PageRule(descriptor, PatternKind.EXACT, disposition)


def normalize_methods(methods: Iterable[str] | str | None) -> frozenset[str]:
    """Parse a method list (iterable or comma-separated string) into upper-case names."""
    if methods is None:
        return frozenset()
    if isinstance(methods, str):
        methods = methods.split(",")
    return frozenset(m.strip().upper() for m in methods if m and m.strip())


def validate_methods(protected: frozenset[str], unprotected: frozenset[str]) -> None:
    """Reject unknown HTTP methods and overlapping protected/unprotected sets.

    Raises:
        ConfigurationException: if either set holds an unknown method or
            the two sets intersect.
    """
    unknown = (protected | unprotected) - HTTP_METHODS
    if unknown:
        raise ConfigurationException(
            f"Unknown HTTP method(s) in method rules: {sorted(unknown)}",
            code="CONFIG_METHOD_UNKNOWN",
            context={"methods": sorted(unknown)},
        )

    overlap = protected & unprotected
    if overlap:
        raise ConfigurationException(
            f"The {sorted(overlap)} HTTP method(s) cannot be both protected and unprotected.",
            code="CONFIG_METHOD_OVERLAP",
            context={"methods": sorted(overlap)},
        )
