"""Rate limiting for continuous pointer updates."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from gestureflow.gestures import GestureLabel, HandObservation
from gestureflow.messages import PointerMessage

POINTER_INTERVAL_MS = 33.0


@dataclass
class PointerThrottleState:
    last_sent: Optional[float] = None


class PointerThrottle:
    """Emits pointer messages while the hand is POINTING, at most every ``interval_ms``.

    This follows the raw per-frame label rather than the hold-confirmed
    one, so the cursor starts tracking before LASER is confirmed.
    """

    def __init__(self, interval_ms: float = POINTER_INTERVAL_MS):
        self.interval_ms = interval_ms
        self.state = PointerThrottleState()

    def update(self, observation: HandObservation, now: float) -> Optional[PointerMessage]:
        if not observation.detected or observation.gesture != GestureLabel.POINTING:
            return None

        last = self.state.last_sent
        if last is not None and now - last <= self.interval_ms:
            return None

        self.state.last_sent = now
        return PointerMessage(observation.position.x, observation.position.y)
