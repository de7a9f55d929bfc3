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
"""ViolationActionPipeline — runs the configured actions for INVALID verdicts."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

import structlog

from csrfguard.action.actions import create_action
from csrfguard.action.types import Violation, ViolationAction, ViolationOutcome
from csrfguard.config.properties import ActionRecord
from csrfguard.kernel.exceptions import ActionException
from csrfguard.token.lifecycle import TokenLifecycleManager
from csrfguard.validation.verdict import Verdict

logger = structlog.get_logger(__name__)


class ViolationActionPipeline:
    """Executes actions in configured order.

    A failing action is logged and the remaining actions still run.
    """

    def __init__(self, actions: Sequence[ViolationAction]) -> None:
        self._actions = tuple(actions)

    @classmethod
    def from_records(
        cls, records: Iterable[ActionRecord], lifecycle: TokenLifecycleManager
    ) -> ViolationActionPipeline:
        return cls([create_action(record, lifecycle) for record in records])

    @property
    def actions(self) -> tuple[ViolationAction, ...]:
        return self._actions

    async def execute(self, verdict: Verdict, request: Any) -> ViolationOutcome:
        """Run every action for an INVALID *verdict* and return the accumulated outcome."""
        violation = Violation.from_verdict(verdict, request)
        outcome = ViolationOutcome()
        for action in self._actions:
            try:
                await action.execute(violation, outcome, request)
            except ActionException as exc:
                logger.error("action_failed", action=action.name, error=str(exc), code=exc.code)
        return outcome
