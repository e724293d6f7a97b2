"""Tests for inbound message dispatch."""

import asyncio
import logging

from conftest import POINTER_AND_ZOOM, FakeExecutor
from gestureflow.actions import ActionOutcome, TargetAction
from gestureflow.dispatcher import ActionDispatcher
from gestureflow.executors import ExecutorChain
from gestureflow.gestures import GestureLabel
from gestureflow.messages import GestureMessage, PointerMessage


def make_dispatcher(*executors):
    if not executors:
        executors = (
            FakeExecutor("native", supported=POINTER_AND_ZOOM, screen=(1000, 500)),
            FakeExecutor("helper"),
        )
    return ActionDispatcher(ExecutorChain(executors))


class TestDispatch:
    def test_gesture_to_action(self):
        dispatcher = make_dispatcher()

        async def go():
            await dispatcher.start()
            task = dispatcher.dispatch(GestureMessage(GestureLabel.SWIPE_RIGHT))
            return await task

        result = asyncio.run(go())
        assert result.request.action == TargetAction.NEXT
        assert result.backend == "helper"
        assert list(dispatcher.recent) == [result]

    def test_pointer_scaled_by_screen(self):
        dispatcher = make_dispatcher()

        async def go():
            await dispatcher.start()
            return await dispatcher.dispatch(PointerMessage(0.5, 0.25))

        result = asyncio.run(go())
        assert result.request.action == TargetAction.CURSOR_MOVE
        assert (result.request.x, result.request.y) == (500, 125)
        assert result.backend == "native"

    def test_none_gesture_is_noop(self):
        dispatcher = make_dispatcher()

        async def go():
            await dispatcher.start()
            return dispatcher.dispatch(GestureMessage(GestureLabel.NONE))

        assert asyncio.run(go()) is None
        assert dispatcher.received == 1

    def test_intake_does_not_wait(self):
        class Slow(FakeExecutor):
            async def execute(self, request):
                await self.gate.wait()
                return await super().execute(request)

        slow = Slow("helper")

        async def go():
            slow.gate = asyncio.Event()
            dispatcher = make_dispatcher(slow)
            await dispatcher.start()
            for label in (GestureLabel.SWIPE_RIGHT, GestureLabel.SWIPE_LEFT, GestureLabel.OPEN_PALM):
                dispatcher.dispatch(GestureMessage(label))
            await asyncio.sleep(0)
            pending = dispatcher.in_flight
            slow.gate.set()
            await dispatcher.drain()
            return pending, dispatcher.in_flight

        pending, after = asyncio.run(go())
        assert pending == 3
        assert after == 0
        assert len(slow.calls) == 3

    def test_failures_never_raise(self, caplog):
        broken = FakeExecutor("helper", error=OSError("pipe closed"))
        dispatcher = make_dispatcher(broken)

        async def go():
            await dispatcher.start()
            return await dispatcher.dispatch(GestureMessage(GestureLabel.OPEN_PALM))

        with caplog.at_level(logging.ERROR, logger="gestureflow.dispatcher"):
            result = asyncio.run(go())
        assert result.outcome == ActionOutcome.FAILED
        assert "pipe closed" in caplog.text

    def test_no_document_logged_as_warning(self, caplog):
        dispatcher = make_dispatcher(FakeExecutor("script", outcome=ActionOutcome.NO_DOCUMENT))

        async def go():
            await dispatcher.start()
            return await dispatcher.dispatch(GestureMessage(GestureLabel.OPEN_PALM))

        with caplog.at_level(logging.WARNING, logger="gestureflow.dispatcher"):
            result = asyncio.run(go())
        assert result.outcome == ActionOutcome.NO_DOCUMENT
        assert "no document loaded" in caplog.text

    def test_close_drains_and_closes_chain(self):
        helper = FakeExecutor("helper")
        dispatcher = make_dispatcher(helper)

        async def go():
            await dispatcher.start()
            dispatcher.dispatch(GestureMessage(GestureLabel.SWIPE_LEFT))
            await dispatcher.close()

        asyncio.run(go())
        assert len(helper.calls) == 1
        assert helper.closed


class TestRawFrames:
    def test_malformed_skipped(self, caplog):
        dispatcher = make_dispatcher()

        async def go():
            await dispatcher.start()
            return [dispatcher.handle_raw(raw) for raw in ("{oops", '{"type": "wave"}')]

        with caplog.at_level(logging.WARNING, logger="gestureflow.dispatcher"):
            tasks = asyncio.run(go())
        assert tasks == [None, None]
        assert dispatcher.rejected == 2
        assert dispatcher.received == 0
        assert "Rejected message" in caplog.text

    def test_valid_frame(self):
        dispatcher = make_dispatcher()

        async def go():
            await dispatcher.start()
            return await dispatcher.handle_raw('{"type": "gesture", "gesture": "PINCH"}')

        result = asyncio.run(go())
        assert result.request.action == TargetAction.ZOOM_OUT
        assert result.backend == "native"


class TestBookkeeping:
    def test_metrics(self):
        dispatcher = make_dispatcher()

        async def go():
            await dispatcher.start()
            await dispatcher.dispatch(GestureMessage(GestureLabel.SPREAD))
            await dispatcher.dispatch(PointerMessage(0.1, 0.1))

        asyncio.run(go())
        assert dispatcher.metrics.gesture_counts == {"SPREAD": 1}
        assert dispatcher.metrics.action_counts[("zoom_in", "native", "ok")] == 1
        assert dispatcher.metrics.action_counts[("cursor_move", "native", "ok")] == 1

    def test_action_table(self):
        table = make_dispatcher().action_table()
        assert table["SWIPE_RIGHT"] == "next"
        assert table["CLOSED_FIST"] == "close"
        assert table["NONE"] is None
        assert table["pointer"] == "cursor_move"
