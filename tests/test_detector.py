"""Tests for landmark acquisition setup (no camera or model download needed)."""

import pytest

from gestureflow.detector import MODEL_URL, HandDetector
from gestureflow.errors import AcquisitionError, GestureFlowError


class TestHandDetector:
    def test_missing_model(self, tmp_path):
        with pytest.raises(AcquisitionError) as exc:
            HandDetector(tmp_path / "hand_landmarker.task")
        assert isinstance(exc.value, GestureFlowError)

    def test_missing_model_points_to_download(self, tmp_path):
        pytest.importorskip("mediapipe")
        with pytest.raises(AcquisitionError, match="hand_landmarker"):
            HandDetector(tmp_path / "missing.task")

    def test_model_url(self):
        assert MODEL_URL.endswith("hand_landmarker.task")
