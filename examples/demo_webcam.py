#!/usr/bin/env python3
"""Offline webcam preview: shows what the recognizer sees without a bridge.

Draws the mirrored palm position and instantaneous label on the camera
image and prints every message that would be sent.

Usage:
    python examples/demo_webcam.py [--camera 0] [--model hand_landmarker.task] [--no-display]
"""

import argparse
import sys
import time

import cv2

sys.path.insert(0, "src")
from gestureflow import GesturePipeline, HandObservation
from gestureflow.detector import HandDetector
from gestureflow.errors import AcquisitionError


def draw_overlay(frame, obs: HandObservation, fps: float):
    """Draw the observation record on a (mirrored) BGR frame."""
    h, w = frame.shape[:2]
    cv2.putText(frame, f"FPS: {fps:.1f}", (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 0.7, (0, 255, 0), 2)

    if not obs.detected:
        cv2.putText(frame, "no hand", (10, 60), cv2.FONT_HERSHEY_SIMPLEX, 0.7, (0, 0, 255), 2)
        return frame

    x, y = int(obs.position.x * w), int(obs.position.y * h)
    radius = max(6, int(20 - obs.position.z * 200))
    cv2.circle(frame, (x, y), radius, (0, 255, 255), 2)
    cv2.putText(
        frame, f"{obs.gesture.value}  tilt {obs.tilt:+.2f}", (x + 25, y),
        cv2.FONT_HERSHEY_SIMPLEX, 0.8, (0, 255, 255), 2,
    )
    return frame


def main():
    parser = argparse.ArgumentParser(description="GestureFlow webcam preview")
    parser.add_argument("--camera", type=int, default=0, help="Camera index")
    parser.add_argument("--model", default="hand_landmarker.task", help="Hand landmarker model path")
    parser.add_argument("--no-display", action="store_true", help="Run headless")
    args = parser.parse_args()

    cap = cv2.VideoCapture(args.camera)
    if not cap.isOpened():
        print(f"Error: Cannot open camera {args.camera}")
        sys.exit(1)
    cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)

    try:
        detector = HandDetector(args.model)
    except AcquisitionError as e:
        print(f"Error: {e}")
        cap.release()
        sys.exit(1)

    print("Starting GestureFlow preview...")
    print("Press 'q' to quit\n")

    pipeline = GesturePipeline()
    t_prev = time.monotonic()
    fps = 0.0

    with detector:
        while True:
            ret, frame = cap.read()
            if not ret:
                break

            now = time.monotonic() * 1000.0
            frame_rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
            result = pipeline.process(detector.detect(frame_rgb, int(now)), now)

            for message in result.messages:
                print(f"  ✋ {message.to_dict()}")

            t = time.monotonic()
            fps = 0.9 * fps + 0.1 / max(t - t_prev, 1e-6)
            t_prev = t

            if not args.no_display:
                frame = draw_overlay(cv2.flip(frame, 1), result.observation, fps)
                cv2.imshow("GestureFlow", frame)
                if cv2.waitKey(1) & 0xFF == ord("q"):
                    break

    cap.release()
    cv2.destroyAllWindows()

    stats = pipeline.stats
    print(f"\n{stats.total_frames} frames, {stats.frames_with_hand} with a hand, {stats.total_messages} messages")


if __name__ == "__main__":
    main()
