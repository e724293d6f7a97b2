"""Tests for the geometric landmark classifier."""

import math

import numpy as np
import pytest

from conftest import fist, make_hand, open_palm, pointing
from gestureflow.classifier import LandmarkClassifier
from gestureflow.gestures import GestureLabel


@pytest.fixture
def classifier():
    return LandmarkClassifier()


class TestHandShapes:
    def test_closed_fist(self, classifier):
        assert classifier.classify(fist()).gesture == GestureLabel.CLOSED_FIST

    @pytest.mark.parametrize("thumb", [(0.30, 0.65), (0.46, 0.41), (0.10, 0.30), (0.50, 0.55)])
    def test_fist_regardless_of_thumb(self, classifier, thumb):
        assert classifier.classify(fist(thumb=thumb)).gesture == GestureLabel.CLOSED_FIST

    def test_open_palm(self, classifier):
        assert classifier.classify(open_palm()).gesture == GestureLabel.OPEN_PALM

    def test_open_palm_regardless_of_thumb(self, classifier):
        # A touching thumb doesn't turn a flat hand into a pinch
        lm = open_palm(thumb=(0.46, 0.41))
        assert classifier.classify(lm).gesture == GestureLabel.OPEN_PALM

    def test_pointing(self, classifier):
        assert classifier.classify(pointing()).gesture == GestureLabel.POINTING

    def test_pinch(self, classifier):
        lm = make_hand(extended=("index", "middle"), thumb=(0.46, 0.41))
        assert classifier.classify(lm).gesture == GestureLabel.PINCH

    def test_spread(self, classifier):
        lm = make_hand(extended=("index", "middle"), thumb=(0.20, 0.60))
        assert classifier.classify(lm).gesture == GestureLabel.SPREAD

    def test_ambiguous_is_none(self, classifier):
        lm = make_hand(extended=("index", "middle"), thumb=(0.51, 0.40))
        assert classifier.classify(lm).gesture == GestureLabel.NONE

    def test_pointing_beats_pinch(self, classifier):
        lm = pointing(thumb=(0.46, 0.41))
        assert classifier.classify(lm).gesture == GestureLabel.POINTING


class TestGeometry:
    def test_finger_states(self):
        bent = LandmarkClassifier.finger_states(make_hand(extended=("index", "ring")))
        assert bent == (False, True, False, True)

    def test_pinch_ratio_normalized_by_hand_size(self):
        lm = make_hand(thumb=(0.51, 0.40))
        # thumb 0.06 from the index tip, wrist -> middle MCP is 0.2
        assert LandmarkClassifier.pinch_ratio(lm) == pytest.approx(0.3, abs=1e-4)

    def test_ratio_is_scale_invariant(self):
        lm = make_hand(thumb=(0.51, 0.40))
        scaled = lm.copy()
        scaled[:, :2] *= 0.5
        assert LandmarkClassifier.pinch_ratio(scaled) == pytest.approx(
            LandmarkClassifier.pinch_ratio(lm), rel=1e-4
        )

    def test_palm_center(self, classifier):
        c = classifier.classify(open_palm())
        assert c.palm_center[0] == pytest.approx(0.51, abs=1e-5)
        assert c.palm_center[1] == pytest.approx((0.8 + 0.6 + 0.6) / 3, abs=1e-5)

    def test_tilt_upright(self, classifier):
        c = classifier.classify(open_palm())
        assert c.tilt == pytest.approx(-math.pi / 2, abs=1e-5)

    def test_depth_from_middle_mcp(self, classifier):
        c = classifier.classify(open_palm(depth=-0.12))
        assert c.depth == pytest.approx(-0.12, abs=1e-6)

    def test_depth_ignored_for_extension(self, classifier):
        lm = fist()
        lm[:, 2] = np.linspace(-1, 1, 21)
        assert classifier.classify(lm).gesture == GestureLabel.CLOSED_FIST


class TestValidation:
    @pytest.mark.parametrize("shape", [(20, 3), (21, 2), (63,), (2, 21, 3)])
    def test_wrong_shape(self, classifier, shape):
        with pytest.raises(ValueError):
            classifier.classify(np.zeros(shape))

    def test_accepts_nested_lists(self, classifier):
        assert classifier.classify(fist().tolist()).gesture == GestureLabel.CLOSED_FIST

    def test_thresholds_must_be_ordered(self):
        with pytest.raises(ValueError):
            LandmarkClassifier(pinch_threshold=0.5, spread_threshold=0.4)

    def test_custom_thresholds(self):
        lm = make_hand(extended=("index", "middle"), thumb=(0.51, 0.40))  # ratio 0.3
        assert LandmarkClassifier(pinch_threshold=0.35, spread_threshold=0.5).classify(lm).gesture == GestureLabel.PINCH
        assert LandmarkClassifier(pinch_threshold=0.1, spread_threshold=0.25).classify(lm).gesture == GestureLabel.SPREAD
