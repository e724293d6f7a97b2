"""Per-frame recognition pipeline and the live camera loop.

landmarks -> classifier -> swipe tracker -> hold confirmation / pointer
throttle -> wire messages.

Swipes are transient and go straight out. Every other label has to pass
hold confirmation first. Pointer updates follow the raw POINTING label
with their own rate limit.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Optional

import numpy as np

from gestureflow.classifier import LandmarkClassifier
from gestureflow.confirmation import GestureConfirmer
from gestureflow.config import RecognitionConfig
from gestureflow.errors import AcquisitionError
from gestureflow.gestures import HandObservation, HandPosition, clamp01
from gestureflow.messages import ActionMessage, GestureMessage
from gestureflow.metrics import MetricsCollector
from gestureflow.motion import SwipeTracker
from gestureflow.pointer import PointerThrottle

logger = logging.getLogger("gestureflow.pipeline")


@dataclass
class FrameResult:
    """Everything one processed frame produced."""
    observation: HandObservation
    messages: list[ActionMessage] = field(default_factory=list)
    timestamp: float = 0.0


@dataclass
class PipelineStats:
    """Frame and message counters."""
    total_frames: int
    frames_with_hand: int
    total_messages: int


class GesturePipeline:
    """Turns one frame's landmarks (or their absence) into an observation and messages.

    Holds the only instances of the swipe, hold and pointer state, so it
    must be driven from a single loop.
    """

    def __init__(
        self,
        classifier: Optional[LandmarkClassifier] = None,
        swipe_tracker: Optional[SwipeTracker] = None,
        confirmer: Optional[GestureConfirmer] = None,
        pointer: Optional[PointerThrottle] = None,
    ):
        self.classifier = classifier or LandmarkClassifier()
        self.swipe_tracker = swipe_tracker or SwipeTracker()
        self.confirmer = confirmer or GestureConfirmer()
        self.pointer = pointer or PointerThrottle()

        self._observation = HandObservation()
        self._callbacks: list[Callable[[HandObservation], None]] = []
        self._total_frames = 0
        self._frames_with_hand = 0
        self._total_messages = 0

    @classmethod
    def from_config(cls, config: RecognitionConfig) -> GesturePipeline:
        return cls(
            classifier=LandmarkClassifier(
                pinch_threshold=config.pinch_threshold,
                spread_threshold=config.spread_threshold,
            ),
            swipe_tracker=SwipeTracker(
                velocity_threshold=config.swipe_velocity,
                cooldown_ms=config.swipe_cooldown_ms,
            ),
            confirmer=GestureConfirmer(
                hold_ms=config.hold_overrides(),
                default_hold_ms=config.default_hold_ms,
            ),
            pointer=PointerThrottle(interval_ms=config.pointer_interval_ms),
        )

    def on_observation(self, callback: Callable[[HandObservation], None]):
        """Register a callback receiving every frame's observation."""
        self._callbacks.append(callback)

    @property
    def observation(self) -> HandObservation:
        return self._observation

    def process(self, landmarks: Optional[np.ndarray], now: float) -> FrameResult:
        """Process one frame.

        Args:
            landmarks: (21, 3) landmark array, or None when no hand was found.
            now: Frame timestamp in milliseconds.
        """
        self._total_frames += 1

        if landmarks is None:
            self.swipe_tracker.reset()
            self.confirmer.reset()
            result = FrameResult(self._observation.lost(), timestamp=now)
        else:
            self._frames_with_hand += 1
            result = self._process_hand(landmarks, now)

        self._observation = result.observation
        self._total_messages += len(result.messages)

        for cb in self._callbacks:
            cb(result.observation)
        return result

    def _process_hand(self, landmarks: np.ndarray, now: float) -> FrameResult:
        c = self.classifier.classify(landmarks)
        swipe = self.swipe_tracker.update(c.palm_center, now)
        label = swipe or c.gesture

        observation = HandObservation(
            detected=True,
            position=HandPosition(
                x=clamp01(1.0 - c.palm_center[0]),
                y=clamp01(c.palm_center[1]),
                z=c.depth,
            ),
            gesture=label,
            tilt=c.tilt,
        )

        messages: list[ActionMessage] = []
        if swipe is not None:
            messages.append(GestureMessage(swipe))
        else:
            confirmed = self.confirmer.update(label, now)
            if confirmed is not None:
                messages.append(confirmed)

        pointer = self.pointer.update(observation, now)
        if pointer is not None:
            messages.append(pointer)

        return FrameResult(observation, messages, now)

    @property
    def stats(self) -> PipelineStats:
        return PipelineStats(
            total_frames=self._total_frames,
            frames_with_hand=self._frames_with_hand,
            total_messages=self._total_messages,
        )

    def reset(self):
        """Clear all tracking state."""
        self.swipe_tracker.reset()
        self.confirmer.reset()
        self.pointer.state.last_sent = None
        self._observation = HandObservation()
        self._total_frames = 0
        self._frames_with_hand = 0
        self._total_messages = 0


class RecognitionLoop:
    """Camera -> landmarks -> pipeline -> transport, one frame at a time.

    Each iteration runs to completion before the next frame is read. The
    capture buffer is kept to a single frame, so a slow iteration skips
    frames instead of building a backlog.
    """

    def __init__(
        self,
        config: RecognitionConfig,
        transport=None,
        pipeline: Optional[GesturePipeline] = None,
        metrics: Optional[MetricsCollector] = None,
        detector_factory: Optional[Callable[[], object]] = None,
    ):
        self.config = config
        self.transport = transport
        self.pipeline = pipeline or GesturePipeline.from_config(config)
        self.metrics = metrics or MetricsCollector()
        self._detector_factory = detector_factory
        self._detector = None
        self._capture = None
        self._frame_times: deque = deque(maxlen=30)
        self.running = False

    def start(self):
        """Open the camera and the landmark model. Raises AcquisitionError once on failure."""
        try:
            import cv2
        except ImportError as e:
            raise AcquisitionError("opencv-python is required for camera capture") from e

        capture = cv2.VideoCapture(self.config.camera_index)
        if not capture.isOpened():
            raise AcquisitionError(f"could not open camera {self.config.camera_index}")
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.config.camera_width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.config.camera_height)
        capture.set(cv2.CAP_PROP_BUFFERSIZE, 1)

        try:
            self._detector = self._create_detector()
        except AcquisitionError:
            capture.release()
            raise

        self._capture = capture
        logger.info("Camera %d opened", self.config.camera_index)

    def _create_detector(self):
        if self._detector_factory is not None:
            return self._detector_factory()
        from gestureflow.detector import HandDetector
        return HandDetector(
            model_path=self.config.model_path,
            min_detection_confidence=self.config.min_detection_confidence,
            min_tracking_confidence=self.config.min_tracking_confidence,
        )

    async def step(self, frame_rgb: np.ndarray, now: float) -> FrameResult:
        """Run one frame through detection, the pipeline and the transport."""
        if self._detector is None:
            self._detector = self._create_detector()
        t_start = time.monotonic()
        landmarks = self._detector.detect(frame_rgb, int(now))
        result = self.pipeline.process(landmarks, now)

        for message in result.messages:
            self.metrics.record_message(message)
            if self.transport is not None:
                await self.transport.send(message)

        latency = time.monotonic() - t_start
        self._frame_times.append(latency)
        self.metrics.record_frame(latency, landmarks is not None)
        return result

    async def run(self, max_frames: Optional[int] = None):
        """Process frames until stopped (or ``max_frames`` have been handled)."""
        import cv2

        if self._capture is None:
            self.start()

        self.running = True
        frames = 0
        try:
            while self.running:
                ret, frame = self._capture.read()
                if not ret:
                    await asyncio.sleep(0.01)
                    continue

                frame_rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
                await self.step(frame_rgb, time.monotonic() * 1000.0)

                frames += 1
                if max_frames is not None and frames >= max_frames:
                    break
                await asyncio.sleep(0)
        finally:
            self.running = False
            self.close()
            logger.info("Recognition loop stopped after %d frames", frames)

    def stop(self):
        self.running = False

    @property
    def fps(self) -> float:
        if not self._frame_times:
            return 0.0
        avg = sum(self._frame_times) / len(self._frame_times)
        return 1.0 / avg if avg > 0 else 0.0

    def close(self):
        """Release the camera and the landmark model."""
        if self._capture is not None:
            self._capture.release()
            self._capture = None
        if self._detector is not None:
            self._detector.close()
            self._detector = None
