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
"""Request path normalization shared by the matcher and token scoping."""

from __future__ import annotations

import re
from urllib.parse import urlsplit

_SLASHES_RE = re.compile(r"/{2,}")


def normalize_resource_uri(uri: str) -> str:
    """Ensure a configured resource URI starts with ``/``."""
    return uri if uri.startswith("/") else "/" + uri


def normalize_path(path: str, context_path: str = "") -> str:
    """Normalize a request path for rule matching.

    Absolute URLs lose their scheme and host (both case-insensitive, so they
    never take part in matching); query string and fragment are dropped; the
    application *context_path* prefix is stripped; repeated slashes collapse.
    The result always starts with ``/``.
    """
    raw = path.strip()
    if "://" in raw:
        raw = urlsplit(raw).path
    else:
        raw = raw.split("#", 1)[0].split("?", 1)[0]

    normalized = normalize_resource_uri(_SLASHES_RE.sub("/", raw))

    prefix = context_path.rstrip("/")
    if prefix:
        prefix = normalize_resource_uri(prefix)
        if normalized == prefix:
            return "/"
        if normalized.startswith(prefix + "/"):
            normalized = normalized[len(prefix):]

    return normalized
