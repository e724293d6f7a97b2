"""Stateless geometric hand-pose classifier.

Works on a single frame of MediaPipe landmarks. Finger extension is decided
by comparing fingertip distance from the wrist against the PIP joint
distance from the wrist (extended fingers have their tips farther out).
Only the planar (x, y) coordinates take part in the distance checks; the
relative depth reported by the landmark model is too noisy for this.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from gestureflow.gestures import (
    FINGER_JOINTS,
    GestureLabel,
    INDEX_TIP,
    LANDMARK_DIM,
    MIDDLE_MCP,
    NUM_LANDMARKS,
    PALM_ANCHORS,
    THUMB_TIP,
    WRIST,
)

PINCH_THRESHOLD = 0.22
SPREAD_THRESHOLD = 0.45


@dataclass(frozen=True)
class Classification:
    """Result of classifying one landmark set."""
    gesture: GestureLabel
    palm_center: tuple[float, float]  # raw camera coordinates, not mirrored
    tilt: float  # radians, wrist -> middle MCP
    depth: float  # z of the middle MCP
    pinch_ratio: float
    bent: tuple[bool, bool, bool, bool]  # index, middle, ring, pinky


class LandmarkClassifier:
    """Maps a (21, 3) landmark array to an instantaneous gesture label.

    Rules are evaluated in order and the first match wins:

    1. all four fingers bent      -> CLOSED_FIST
    2. all four fingers extended  -> OPEN_PALM
    3. only the index extended    -> POINTING
    4. thumb-index ratio < pinch  -> PINCH
    5. thumb-index ratio > spread -> SPREAD
    6. otherwise                  -> NONE
    """

    def __init__(
        self,
        pinch_threshold: float = PINCH_THRESHOLD,
        spread_threshold: float = SPREAD_THRESHOLD,
    ):
        if pinch_threshold >= spread_threshold:
            raise ValueError("pinch_threshold must be below spread_threshold")
        self.pinch_threshold = pinch_threshold
        self.spread_threshold = spread_threshold

    def classify(self, landmarks: np.ndarray) -> Classification:
        """Classify one hand.

        Args:
            landmarks: Landmark array, shape (21, 3), x/y normalized to [0, 1].

        Returns:
            Classification with the label, palm center and tilt.
        """
        lm = np.asarray(landmarks, dtype=np.float64)
        if lm.shape != (NUM_LANDMARKS, LANDMARK_DIM):
            raise ValueError(
                f"expected landmarks of shape ({NUM_LANDMARKS}, {LANDMARK_DIM}), got {lm.shape}"
            )

        bent = self.finger_states(lm)
        ratio = self.pinch_ratio(lm)

        center = lm[list(PALM_ANCHORS), :2].mean(axis=0)
        dx, dy = lm[MIDDLE_MCP, :2] - lm[WRIST, :2]

        return Classification(
            gesture=self._label(bent, ratio),
            palm_center=(float(center[0]), float(center[1])),
            tilt=math.atan2(float(dy), float(dx)),
            depth=float(lm[MIDDLE_MCP, 2]),
            pinch_ratio=ratio,
            bent=bent,
        )

    def _label(self, bent: tuple[bool, ...], ratio: float) -> GestureLabel:
        index_bent, middle_bent, ring_bent, pinky_bent = bent

        if all(bent):
            return GestureLabel.CLOSED_FIST
        if not any(bent):
            return GestureLabel.OPEN_PALM
        if not index_bent and middle_bent and ring_bent and pinky_bent:
            return GestureLabel.POINTING
        # NaN ratios fall through both comparisons to NONE
        if ratio < self.pinch_threshold:
            return GestureLabel.PINCH
        if ratio > self.spread_threshold:
            return GestureLabel.SPREAD
        return GestureLabel.NONE

    @staticmethod
    def finger_states(landmarks: np.ndarray) -> tuple[bool, bool, bool, bool]:
        """Bent flag for index, middle, ring and pinky."""
        wrist = landmarks[WRIST, :2]
        states = []
        for tip, pip in FINGER_JOINTS:
            tip_dist = np.linalg.norm(landmarks[tip, :2] - wrist)
            pip_dist = np.linalg.norm(landmarks[pip, :2] - wrist)
            states.append(bool(tip_dist < pip_dist))
        return tuple(states)  # type: ignore[return-value]

    @staticmethod
    def pinch_ratio(landmarks: np.ndarray) -> float:
        """Thumb-tip to index-tip distance, normalized by hand scale."""
        hand_size = np.linalg.norm(landmarks[MIDDLE_MCP, :2] - landmarks[WRIST, :2]) + 1e-6
        gap = np.linalg.norm(landmarks[THUMB_TIP, :2] - landmarks[INDEX_TIP, :2])
        return float(gap / hand_size)
