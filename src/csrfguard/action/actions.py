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
"""Built-in violation actions and the name -> action registry."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog

from csrfguard.action.types import Violation, ViolationAction, ViolationOutcome
from csrfguard.config.properties import ActionRecord
from csrfguard.kernel.exceptions import ActionException, ConfigurationException, TokenStoreException
from csrfguard.token.lifecycle import TokenLifecycleManager

logger = structlog.get_logger("csrfguard.action")

DEFAULT_LOG_MESSAGE = (
    "potential cross-site request forgery (CSRF) attack thwarted "
    "(user:%user_agent%, ip:%remote_ip%, method:%request_method%, uri:%request_uri%, reason:%reason%)"
)

DEFAULT_ATTRIBUTE_NAME = "csrfguard_violation"


class _BaseAction:
    def __init__(self, record: ActionRecord) -> None:
        self.name = record.name
        self._record = record


class LogAction(_BaseAction):
    """Logs the violation using a ``%placeholder%`` message template."""

    def __init__(self, record: ActionRecord) -> None:
        super().__init__(record)
        self._template = str(record.parameter("message", DEFAULT_LOG_MESSAGE))
        self._level = str(record.parameter("level", "warning")).lower()

    def render(self, violation: Violation) -> str:
        values = {
            "%request_uri%": violation.path,
            "%request_method%": violation.method,
            "%remote_ip%": violation.remote_ip or "<unknown>",
            "%user_agent%": violation.user_agent or "<unknown>",
            "%session_id%": violation.session_id or "<none>",
            "%reason%": violation.reason.value,
        }
        message = self._template
        for placeholder, value in values.items():
            message = message.replace(placeholder, value)
        return message

    async def execute(self, violation: Violation, outcome: ViolationOutcome, request: Any) -> None:
        log = getattr(logger, self._level, logger.warning)
        log("csrf_violation", message=self.render(violation), reason=violation.reason.value)


class EmptyAction(_BaseAction):
    """Sends an empty body."""

    async def execute(self, violation: Violation, outcome: ViolationOutcome, request: Any) -> None:
        outcome.body = ""


class ErrorAction(_BaseAction):
    """Sets the response status code and message."""

    def __init__(self, record: ActionRecord) -> None:
        super().__init__(record)
        try:
            self._code = int(record.parameter("code", 403))
        except (TypeError, ValueError) as exc:
            raise ConfigurationException(
                f"Action '{record.name}' has a non-numeric code", code="CONFIG_ACTION_PARAM"
            ) from exc
        self._message = record.parameter("message")

    async def execute(self, violation: Violation, outcome: ViolationOutcome, request: Any) -> None:
        outcome.status_code = self._code
        if self._message is not None:
            outcome.body = str(self._message)


class RedirectAction(_BaseAction):
    """Redirects the client to an error page."""

    def __init__(self, record: ActionRecord) -> None:
        super().__init__(record)
        page = record.parameter("page")
        if not page:
            raise ConfigurationException(
                f"Action '{record.name}' requires a 'page' parameter", code="CONFIG_ACTION_PARAM"
            )
        self._page = str(page)

    async def execute(self, violation: Violation, outcome: ViolationOutcome, request: Any) -> None:
        outcome.redirect = self._page
        outcome.status_code = 302


class RotateAction(_BaseAction):
    """Issues a fresh token for the violated scope."""

    def __init__(self, record: ActionRecord, lifecycle: TokenLifecycleManager) -> None:
        super().__init__(record)
        self._lifecycle = lifecycle

    async def execute(self, violation: Violation, outcome: ViolationOutcome, request: Any) -> None:
        if violation.session_id is None or violation.scope is None:
            return
        try:
            await self._lifecycle.rotate(violation.session_id, violation.scope)
        except TokenStoreException as exc:
            raise ActionException(f"Could not rotate token: {exc}", code="ACTION_ROTATE") from exc


class InvalidateAction(_BaseAction):
    """Drops every token of the session and asks the caller to end it."""

    def __init__(self, record: ActionRecord, lifecycle: TokenLifecycleManager) -> None:
        super().__init__(record)
        self._lifecycle = lifecycle

    async def execute(self, violation: Violation, outcome: ViolationOutcome, request: Any) -> None:
        outcome.invalidate_session = True
        session = getattr(getattr(request, "state", None), "session", None)
        if session is not None and callable(getattr(session, "invalidate", None)):
            session.invalidate()
        if violation.session_id is None:
            return
        try:
            await self._lifecycle.discard(violation.session_id)
        except TokenStoreException as exc:
            raise ActionException(f"Could not discard session tokens: {exc}", code="ACTION_INVALIDATE") from exc


class RequestAttributeAction(_BaseAction):
    """Exposes the violation on ``request.state`` under an attribute name."""

    def __init__(self, record: ActionRecord) -> None:
        super().__init__(record)
        self._attribute = str(record.parameter("attribute-name", DEFAULT_ATTRIBUTE_NAME))

    async def execute(self, violation: Violation, outcome: ViolationOutcome, request: Any) -> None:
        outcome.attributes[self._attribute] = violation
        state = getattr(request, "state", None)
        if state is not None:
            setattr(state, self._attribute, violation)


ActionFactory = Callable[[ActionRecord, TokenLifecycleManager], ViolationAction]

ACTION_TYPES: dict[str, ActionFactory] = {
    "log": lambda record, _: LogAction(record),
    "empty": lambda record, _: EmptyAction(record),
    "error": lambda record, _: ErrorAction(record),
    "redirect": lambda record, _: RedirectAction(record),
    "rotate": RotateAction,
    "invalidate": InvalidateAction,
    "request-attribute": lambda record, _: RequestAttributeAction(record),
}
"""Action name (case-insensitive, ``_`` or ``-``) -> factory."""


def create_action(record: ActionRecord, lifecycle: TokenLifecycleManager) -> ViolationAction:
    """Instantiate the registered action named by *record*.

    Raises:
        ConfigurationException: if no action is registered under that name.
    """
    key = record.name.strip().lower().replace("_", "-")
    factory = ACTION_TYPES.get(key)
    if factory is None:
        raise ConfigurationException(
            f"Unknown action '{record.name}'. Available actions: {sorted(ACTION_TYPES)}",
            code="CONFIG_ACTION_UNKNOWN",
            context={"action": record.name},
        )
    return factory(record, lifecycle)
