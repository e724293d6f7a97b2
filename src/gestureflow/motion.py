"""Velocity-based horizontal swipe detection on the palm center."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from gestureflow.gestures import GestureLabel

SWIPE_VELOCITY = 0.8  # normalized units / second
SWIPE_COOLDOWN_MS = 400.0
MIN_DT_MS = 1.0


@dataclass
class SwipeTrackerState:
    previous_center: Optional[tuple[float, float]] = None
    previous_timestamp: Optional[float] = None
    last_swipe_timestamp: float = float("-inf")


class SwipeTracker:
    """Emits SWIPE_LEFT / SWIPE_RIGHT when the palm moves fast enough.

    Velocity is measured between consecutive detections in raw camera
    coordinates. After a swipe fires, further swipes are suppressed for
    ``cooldown_ms``. Losing the hand drops the velocity baseline, so the
    first detection afterwards can never swipe.
    """

    def __init__(
        self,
        velocity_threshold: float = SWIPE_VELOCITY,
        cooldown_ms: float = SWIPE_COOLDOWN_MS,
    ):
        self.velocity_threshold = velocity_threshold
        self.cooldown_ms = cooldown_ms
        self.state = SwipeTrackerState()

    def update(self, center: tuple[float, float], now: float) -> Optional[GestureLabel]:
        """Feed the palm center of a detected hand at time ``now`` (ms)."""
        st = self.state
        swipe = None

        if st.previous_center is not None and st.previous_timestamp is not None:
            dt = max(MIN_DT_MS, now - st.previous_timestamp)
            velocity = (center[0] - st.previous_center[0]) / (dt / 1000.0)
            if abs(velocity) > self.velocity_threshold and (now - st.last_swipe_timestamp) > self.cooldown_ms:
                swipe = GestureLabel.SWIPE_RIGHT if velocity > 0 else GestureLabel.SWIPE_LEFT
                st.last_swipe_timestamp = now

        st.previous_center = (center[0], center[1])
        st.previous_timestamp = now
        return swipe

    def reset(self):
        """Forget the velocity baseline (hand lost). Cooldown is kept."""
        self.state.previous_center = None
        self.state.previous_timestamp = None
