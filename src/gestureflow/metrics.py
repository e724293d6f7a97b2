"""Prometheus-compatible metrics for GestureFlow.

Generates the text exposition format directly; no client library needed.

Tracked metrics:
- gestureflow_messages_total (counter, by message type)
- gestureflow_gestures_total (counter, by gesture label)
- gestureflow_actions_total (counter, by action, backend and outcome)
- gestureflow_action_latency_seconds (histogram)
- gestureflow_frame_latency_seconds (histogram)
- gestureflow_frames_total / gestureflow_hand_frames_total (counters)
- gestureflow_hand_detection_rate (gauge)
- gestureflow_active_connections (gauge)
"""

from __future__ import annotations

import threading
import time
from collections import Counter

from gestureflow.messages import ActionMessage, GestureMessage


class _Histogram:
    """Cumulative-bucket histogram."""

    def __init__(self, buckets: list[float]):
        self.buckets = sorted(buckets)
        self.bucket_counts = [0] * len(self.buckets)
        self.count = 0
        self.sum = 0.0
        self._lock = threading.Lock()

    def observe(self, value: float):
        with self._lock:
            self.count += 1
            self.sum += value
            for i, b in enumerate(self.buckets):
                if value <= b:
                    self.bucket_counts[i] += 1
                    break

    def render(self, name: str, help_text: str) -> list[str]:
        lines = [f"# HELP {name} {help_text}", f"# TYPE {name} histogram"]
        with self._lock:
            cumulative = 0
            for b, n in zip(self.buckets, self.bucket_counts):
                cumulative += n
                lines.append(f'{name}_bucket{{le="{b}"}} {cumulative}')
            lines.append(f'{name}_bucket{{le="+Inf"}} {self.count}')
            lines.append(f"{name}_sum {self.sum:.6f}")
            lines.append(f"{name}_count {self.count}")
        return lines


class MetricsCollector:
    """Counters shared by the recognition loop and the dispatcher."""

    def __init__(self):
        self._message_counts: Counter = Counter()
        self._gesture_counts: Counter = Counter()
        self._action_counts: Counter = Counter()  # (action, backend, outcome)
        self._frames_total = 0
        self._hand_frames = 0
        self._hand_detection_rate = 0.0
        self._active_connections = 0
        self._lock = threading.Lock()

        self._frame_latency = _Histogram([0.005, 0.010, 0.020, 0.033, 0.050, 0.100])
        self._action_latency = _Histogram([0.001, 0.010, 0.050, 0.100, 0.250, 0.500, 1.0, 5.0])
        self._start_time = time.time()

    def record_message(self, message: ActionMessage):
        with self._lock:
            if isinstance(message, GestureMessage):
                self._message_counts["gesture"] += 1
                self._gesture_counts[message.gesture.value] += 1
            else:
                self._message_counts["pointer"] += 1

    def record_frame(self, latency_seconds: float, hand_detected: bool):
        with self._lock:
            self._frames_total += 1
            if hand_detected:
                self._hand_frames += 1
            # Exponential moving average
            rate = 1.0 if hand_detected else 0.0
            self._hand_detection_rate = 0.95 * self._hand_detection_rate + 0.05 * rate
        self._frame_latency.observe(latency_seconds)

    def record_action(self, action: str, backend: str, outcome: str, seconds: float):
        with self._lock:
            self._action_counts[(action, backend, outcome)] += 1
        self._action_latency.observe(seconds)

    def set_connections(self, count: int):
        self._active_connections = count

    def render(self) -> str:
        """Render all metrics in Prometheus text exposition format."""
        lines: list[str] = [
            "# HELP gestureflow_uptime_seconds Time since process start",
            "# TYPE gestureflow_uptime_seconds gauge",
            f"gestureflow_uptime_seconds {time.time() - self._start_time:.1f}",
            "",
        ]

        with self._lock:
            lines.append("# HELP gestureflow_messages_total Wire messages by type")
            lines.append("# TYPE gestureflow_messages_total counter")
            for kind, count in sorted(self._message_counts.items()):
                lines.append(f'gestureflow_messages_total{{type="{kind}"}} {count}')
            lines.append("")

            lines.append("# HELP gestureflow_gestures_total Gesture messages by label")
            lines.append("# TYPE gestureflow_gestures_total counter")
            for name, count in sorted(self._gesture_counts.items()):
                lines.append(f'gestureflow_gestures_total{{gesture="{name}"}} {count}')
            lines.append("")

            lines.append("# HELP gestureflow_actions_total Executed actions by backend and outcome")
            lines.append("# TYPE gestureflow_actions_total counter")
            for (action, backend, outcome), count in sorted(self._action_counts.items()):
                lines.append(
                    f'gestureflow_actions_total{{action="{action}",backend="{backend}",outcome="{outcome}"}} {count}'
                )
            lines.append("")

            frames, hand_frames, rate = self._frames_total, self._hand_frames, self._hand_detection_rate

        lines.extend(self._action_latency.render(
            "gestureflow_action_latency_seconds", "Action execution time in seconds"
        ))
        lines.append("")
        lines.extend(self._frame_latency.render(
            "gestureflow_frame_latency_seconds", "Frame processing latency in seconds"
        ))
        lines.append("")

        lines.append("# HELP gestureflow_frames_total Total frames processed")
        lines.append("# TYPE gestureflow_frames_total counter")
        lines.append(f"gestureflow_frames_total {frames}")
        lines.append("")
        lines.append("# HELP gestureflow_hand_frames_total Frames with a detected hand")
        lines.append("# TYPE gestureflow_hand_frames_total counter")
        lines.append(f"gestureflow_hand_frames_total {hand_frames}")
        lines.append("")
        lines.append("# HELP gestureflow_hand_detection_rate Moving average of hand detection")
        lines.append("# TYPE gestureflow_hand_detection_rate gauge")
        lines.append(f"gestureflow_hand_detection_rate {rate:.4f}")
        lines.append("")
        lines.append("# HELP gestureflow_active_connections Current WebSocket connections")
        lines.append("# TYPE gestureflow_active_connections gauge")
        lines.append(f"gestureflow_active_connections {self._active_connections}")
        lines.append("")

        return "\n".join(lines) + "\n"

    @property
    def gesture_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._gesture_counts)

    @property
    def action_counts(self) -> dict[tuple[str, str, str], int]:
        with self._lock:
            return dict(self._action_counts)
