"""Gesture labels, landmark indices and the per-frame observation record."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class GestureLabel(str, Enum):
    """Instantaneous gesture label. Values are the wire names."""
    NONE = "NONE"
    OPEN_PALM = "OPEN_PALM"
    CLOSED_FIST = "CLOSED_FIST"
    POINTING = "POINTING"
    PINCH = "PINCH"
    SPREAD = "SPREAD"
    SWIPE_LEFT = "SWIPE_LEFT"
    SWIPE_RIGHT = "SWIPE_RIGHT"

    @property
    def is_swipe(self) -> bool:
        return self in (GestureLabel.SWIPE_LEFT, GestureLabel.SWIPE_RIGHT)


# MediaPipe hand landmark indices
WRIST = 0
THUMB_TIP = 4
INDEX_MCP, INDEX_PIP, INDEX_TIP = 5, 6, 8
MIDDLE_MCP, MIDDLE_PIP, MIDDLE_TIP = 9, 10, 12
RING_PIP, RING_TIP = 14, 16
PINKY_MCP, PINKY_PIP, PINKY_TIP = 17, 18, 20

NUM_LANDMARKS = 21
LANDMARK_DIM = 3  # x, y, z

# (tip, pip) pairs for the four measured fingers, index first
FINGER_JOINTS = [
    (INDEX_TIP, INDEX_PIP),
    (MIDDLE_TIP, MIDDLE_PIP),
    (RING_TIP, RING_PIP),
    (PINKY_TIP, PINKY_PIP),
]

PALM_ANCHORS = (WRIST, INDEX_MCP, PINKY_MCP)


def clamp01(value: float) -> float:
    return min(1.0, max(0.0, float(value)))


@dataclass(frozen=True)
class HandPosition:
    """Normalized hand position; x is already mirrored for display."""
    x: float = 0.5
    y: float = 0.5
    z: float = 0.0

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "z": self.z}


@dataclass(frozen=True)
class HandObservation:
    """Output record produced once per processed frame.

    Consumers (renderers, previews) receive a fresh instance every frame;
    an observation is never updated in place.
    """
    detected: bool = False
    position: HandPosition = field(default_factory=HandPosition)
    gesture: GestureLabel = GestureLabel.NONE
    tilt: float = 0.0  # radians

    def lost(self) -> HandObservation:
        """Observation for a frame with no hand, keeping the last position."""
        return HandObservation(
            detected=False,
            position=self.position,
            gesture=GestureLabel.NONE,
            tilt=self.tilt,
        )

    def to_dict(self) -> dict:
        return {
            "detected": self.detected,
            "position": self.position.to_dict(),
            "gesture": self.gesture.value,
            "tilt": self.tilt,
        }
