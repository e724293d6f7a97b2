"""Shared fixtures: synthetic hands and in-process execution backends."""

import numpy as np

from gestureflow.actions import ActionOutcome, TargetAction
from gestureflow.errors import ExecutorUnavailableError
from gestureflow.executors import ActionExecutor

FINGERS = ("index", "middle", "ring", "pinky")

# (mcp, pip, dip, tip) indices and x column of each finger
_FINGER_LAYOUT = {
    "index": ((5, 6, 7, 8), 0.45),
    "middle": ((9, 10, 11, 12), 0.50),
    "ring": ((13, 14, 15, 16), 0.54),
    "pinky": ((17, 18, 19, 20), 0.58),
}


def make_hand(extended=FINGERS, thumb=(0.30, 0.65), offset_x=0.0, depth=-0.05):
    """Upright right hand, wrist at (0.5, 0.8), fingers pointing up the image.

    Extended fingers reach y=0.4; bent ones curl back to y=0.68, closer
    to the wrist than their PIP joint. Palm center is (0.51 + offset_x, 0.6667).
    """
    lm = np.zeros((21, 3), dtype=np.float32)
    lm[0] = [0.50, 0.80, 0.0]
    lm[1] = [0.42, 0.75, 0.0]
    lm[2] = [0.37, 0.71, 0.0]
    lm[3] = [0.33, 0.68, 0.0]
    lm[4] = [thumb[0], thumb[1], 0.0]

    for finger, ((mcp, pip, dip, tip), x) in _FINGER_LAYOUT.items():
        lm[mcp] = [x, 0.60, 0.0]
        lm[pip] = [x, 0.50, 0.0]
        if finger in extended:
            lm[dip] = [x, 0.45, 0.0]
            lm[tip] = [x, 0.40, 0.0]
        else:
            lm[dip] = [x, 0.58, 0.0]
            lm[tip] = [x, 0.68, 0.0]

    lm[9, 2] = depth
    lm[:, 0] += offset_x
    return lm


def fist(**kw):
    return make_hand(extended=(), **kw)


def open_palm(**kw):
    return make_hand(extended=FINGERS, **kw)


def pointing(**kw):
    return make_hand(extended=("index",), **kw)


class FakeExecutor(ActionExecutor):
    """Backend double that records requests and answers with a fixed outcome."""

    def __init__(
        self,
        name="fake",
        supported=None,
        outcome=ActionOutcome.OK,
        available=True,
        screen=None,
        error=None,
    ):
        self.name = name
        if supported is not None:
            self.supported = frozenset(supported)
        self.outcome = outcome
        self.available = available
        self.screen = screen
        self.error = error
        self.calls = []
        self.started = False
        self.closed = False

    async def start(self):
        if not self.available:
            raise ExecutorUnavailableError(f"{self.name} not on this host")
        self.started = True

    async def execute(self, request):
        self.calls.append(request)
        if self.error is not None:
            raise self.error
        return self._result(request, self.outcome)

    def screen_size(self):
        return self.screen

    async def close(self):
        self.closed = True


POINTER_AND_ZOOM = {TargetAction.CURSOR_MOVE, TargetAction.ZOOM_IN, TargetAction.ZOOM_OUT}
