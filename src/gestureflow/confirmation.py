"""Hold confirmation for discrete gestures.

A gesture message is emitted only after the instantaneous label has been
held continuously for its required duration, and only once per continuous
occupancy. This filters single-frame misclassifications from the
per-frame classifier.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from gestureflow.gestures import GestureLabel
from gestureflow.messages import GestureMessage

DEFAULT_HOLD_MS = 150.0

HOLD_REQUIRED_MS: dict[GestureLabel, float] = {
    GestureLabel.POINTING: 600.0,
    GestureLabel.CLOSED_FIST: 800.0,
    GestureLabel.OPEN_PALM: 1000.0,
    GestureLabel.PINCH: 200.0,
    GestureLabel.SPREAD: 200.0,
}


@dataclass
class GestureHoldState:
    """The single armed gesture slot."""
    last_label: GestureLabel = GestureLabel.NONE
    hold_start: float = 0.0
    emitted: bool = False

    def arm(self, label: GestureLabel, now: float):
        self.last_label = label
        self.hold_start = now
        self.emitted = False

    def clear(self):
        self.last_label = GestureLabel.NONE
        self.emitted = False


class GestureConfirmer:
    """Edge-triggered debouncer from instantaneous labels to gesture messages."""

    def __init__(
        self,
        hold_ms: Optional[Mapping[GestureLabel, float]] = None,
        default_hold_ms: float = DEFAULT_HOLD_MS,
    ):
        self.hold_ms = dict(HOLD_REQUIRED_MS)
        if hold_ms:
            self.hold_ms.update(hold_ms)
        self.default_hold_ms = default_hold_ms
        self.state = GestureHoldState()

    def required(self, label: GestureLabel) -> float:
        return self.hold_ms.get(label, self.default_hold_ms)

    def update(self, label: GestureLabel, now: float) -> Optional[GestureMessage]:
        """Advance with the label seen at ``now`` (ms); return a message to send, if any."""
        if label.is_swipe:
            raise ValueError(f"{label.value} bypasses hold confirmation")

        st = self.state
        if label == GestureLabel.NONE:
            st.clear()
            return None

        if label != st.last_label:
            st.arm(label, now)

        if not st.emitted and (now - st.hold_start) >= self.required(label):
            st.emitted = True
            return GestureMessage(label)
        return None

    def reset(self):
        self.state.clear()
