"""Inbound message dispatch.

Messages are taken one at a time: decoded, mapped to an action, and handed
to the executor chain in a background task. Intake never waits for an
action to finish, and in-flight actions have no ordering among themselves.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Optional

from gestureflow.actions import (
    ActionOutcome,
    ActionRequest,
    ActionResult,
    GESTURE_ACTIONS,
    TargetAction,
    map_message,
)
from gestureflow.errors import MessageDecodeError
from gestureflow.executors import ExecutorChain
from gestureflow.messages import ActionMessage, decode_message
from gestureflow.metrics import MetricsCollector

logger = logging.getLogger("gestureflow.dispatcher")

_OUTCOME_MESSAGES = {
    ActionOutcome.NO_HOST: "no presentation application running",
    ActionOutcome.NO_DOCUMENT: "no document loaded",
    ActionOutcome.NO_SESSION: "no active session",
    ActionOutcome.UNSUPPORTED: "no backend supports this action",
}


class ActionDispatcher:
    """Maps wire messages to actions and runs them fire-and-forget."""

    def __init__(self, chain: ExecutorChain, metrics: Optional[MetricsCollector] = None):
        self.chain = chain
        self.metrics = metrics or MetricsCollector()
        self.recent: deque[ActionResult] = deque(maxlen=50)
        self.received = 0
        self.rejected = 0
        self._in_flight: set[asyncio.Task] = set()

    async def start(self):
        await self.chain.start()
        logger.info("Dispatcher ready; bindings: %s", self.chain.bindings)

    def handle_raw(self, raw: str | bytes | dict) -> Optional[asyncio.Task]:
        """Decode and dispatch one inbound frame. Malformed frames are logged and skipped."""
        try:
            message = decode_message(raw)
        except MessageDecodeError as e:
            self.rejected += 1
            logger.warning("Rejected message: %s", e)
            return None
        return self.dispatch(message)

    def dispatch(self, message: ActionMessage) -> Optional[asyncio.Task]:
        """Start executing the action for ``message``; returns its task, or None for a no-op."""
        self.received += 1
        self.metrics.record_message(message)

        request = map_message(message, self.chain.screen_size())
        if request is None:
            logger.debug("No action for %s", message)
            return None

        task = asyncio.create_task(self._execute(request))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    async def _execute(self, request: ActionRequest) -> ActionResult:
        result = await self.chain.execute(request)
        self.recent.append(result)
        self.metrics.record_action(
            request.action.value, result.backend, result.outcome.value, result.duration
        )
        self._log_result(result)
        return result

    def _log_result(self, result: ActionResult):
        action = result.request.describe()
        if result.outcome == ActionOutcome.OK:
            level = logging.DEBUG if result.request.action == TargetAction.CURSOR_MOVE else logging.INFO
            logger.log(level, "%s -> ok via %s (%.0f ms)", action, result.backend, result.duration * 1000)
        elif result.outcome == ActionOutcome.FAILED:
            logger.error("%s failed via %s: %s", action, result.backend, result.detail)
        else:
            logger.warning(
                "%s via %s: %s%s", action, result.backend,
                _OUTCOME_MESSAGES.get(result.outcome, result.outcome.value),
                f" ({result.detail})" if result.detail else "",
            )

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def drain(self):
        """Wait for every in-flight action to finish. Actions are never cancelled."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    async def close(self):
        await self.drain()
        await self.chain.close()

    def action_table(self) -> dict[str, Optional[str]]:
        table = {label.value: (action.value if action else None) for label, action in GESTURE_ACTIONS.items()}
        table["pointer"] = TargetAction.CURSOR_MOVE.value
        return table
