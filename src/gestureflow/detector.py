"""Hand landmark acquisition using MediaPipe Hand Landmarker."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import numpy as np

from gestureflow.errors import AcquisitionError
from gestureflow.gestures import LANDMARK_DIM, NUM_LANDMARKS

try:
    import mediapipe as mp
    from mediapipe.tasks import python as mp_tasks
    from mediapipe.tasks.python import vision as mp_vision
except ImportError:
    mp = None

logger = logging.getLogger("gestureflow.detector")

MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/hand_landmarker/"
    "hand_landmarker/float16/1/hand_landmarker.task"
)


class HandDetector:
    """Extracts the 21 landmarks of a single tracked hand per video frame.

    Each landmark is (x, y, z) with x and y normalized to [0, 1] relative to
    the image and z a relative depth. Only one hand is tracked.
    """

    def __init__(
        self,
        model_path: str | Path,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
    ):
        if mp is None:
            raise AcquisitionError(
                "mediapipe is required. Install with: pip install mediapipe"
            )

        model_path = Path(model_path)
        if not model_path.is_file():
            raise AcquisitionError(
                f"hand landmarker model not found at {model_path} (download it from {MODEL_URL})"
            )

        options = mp_vision.HandLandmarkerOptions(
            base_options=mp_tasks.BaseOptions(model_asset_path=str(model_path)),
            running_mode=mp_vision.RunningMode.VIDEO,
            num_hands=1,
            min_hand_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )
        try:
            self._landmarker = mp_vision.HandLandmarker.create_from_options(options)
        except (RuntimeError, ValueError) as e:
            raise AcquisitionError(f"could not load hand landmarker: {e}") from e
        self._last_ts = -1

    def detect(self, frame_rgb: np.ndarray, timestamp_ms: int) -> Optional[np.ndarray]:
        """Detect the hand in one frame.

        Args:
            frame_rgb: RGB image as numpy array (H, W, 3), uint8.
            timestamp_ms: Frame timestamp; must increase between calls.

        Returns:
            Landmark array of shape (21, 3), or None if no hand is visible.
        """
        # The landmarker rejects non-increasing timestamps
        timestamp_ms = max(int(timestamp_ms), self._last_ts + 1)
        self._last_ts = timestamp_ms

        image = mp.Image(image_format=mp.ImageFormat.SRGB, data=frame_rgb)
        result = self._landmarker.detect_for_video(image, timestamp_ms)

        if not result.hand_landmarks:
            return None

        landmarks = np.array(
            [[lm.x, lm.y, lm.z] for lm in result.hand_landmarks[0]],
            dtype=np.float32,
        )
        if landmarks.shape != (NUM_LANDMARKS, LANDMARK_DIM):
            logger.debug("Discarding malformed landmark set %s", landmarks.shape)
            return None
        return landmarks

    def close(self):
        """Release MediaPipe resources."""
        self._landmarker.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
