"""Wire messages and helper-process commands.

Two families of JSON objects cross process boundaries:

Recognition -> dispatcher (one WebSocket text frame each):
    {"type": "gesture", "gesture": "OPEN_PALM"}
    {"type": "pointer", "x": 0.42, "y": 0.61}

Dispatcher -> helper process (one line each):
    {"cmd": "ppt", "action": "next"}
    {"cmd": "cursor", "x": 960, "y": 540}
    {"cmd": "wheel", "delta": -1}
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from typing import Union

from gestureflow.errors import MessageDecodeError
from gestureflow.gestures import GestureLabel, clamp01


@dataclass(frozen=True)
class GestureMessage:
    gesture: GestureLabel

    def to_dict(self) -> dict:
        return {"type": "gesture", "gesture": self.gesture.value}


@dataclass(frozen=True)
class PointerMessage:
    x: float
    y: float

    def __post_init__(self):
        object.__setattr__(self, "x", clamp01(self.x))
        object.__setattr__(self, "y", clamp01(self.y))

    def to_dict(self) -> dict:
        return {"type": "pointer", "x": self.x, "y": self.y}


ActionMessage = Union[GestureMessage, PointerMessage]


def encode_message(message: ActionMessage) -> str:
    return json.dumps(message.to_dict())


def decode_message(raw: str | bytes | dict) -> ActionMessage:
    """Parse a wire message. Raises MessageDecodeError on anything malformed."""
    if isinstance(raw, dict):
        data = raw
    else:
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise MessageDecodeError(f"invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MessageDecodeError("message must be a JSON object")

    kind = data.get("type")
    if kind == "gesture":
        try:
            return GestureMessage(GestureLabel(data.get("gesture")))
        except ValueError as e:
            raise MessageDecodeError(f"unknown gesture: {data.get('gesture')!r}") from e

    if kind == "pointer":
        x, y = data.get("x"), data.get("y")
        if not _is_number(x) or not _is_number(y):
            raise MessageDecodeError("pointer message needs numeric x and y")
        return PointerMessage(float(x), float(y))

    raise MessageDecodeError(f"unknown message type: {kind!r}")


def _is_number(value) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


# --- Helper process commands ---

PPT_ACTIONS = ("next", "prev", "stop", "start", "close", "laser")


@dataclass(frozen=True)
class PptCommand:
    action: str

    def __post_init__(self):
        if self.action not in PPT_ACTIONS:
            raise ValueError(f"unknown presentation action: {self.action!r}")


@dataclass(frozen=True)
class CursorCommand:
    """Absolute screen pixels, already scaled by the dispatcher."""

    x: int
    y: int


@dataclass(frozen=True)
class WheelCommand:
    delta: int


HelperCommand = Union[PptCommand, CursorCommand, WheelCommand]


def encode_command(command: HelperCommand) -> str:
    """Encode a helper command as a single line (newline included)."""
    if isinstance(command, PptCommand):
        payload = {"cmd": "ppt", "action": command.action}
    elif isinstance(command, CursorCommand):
        payload = {"cmd": "cursor", "x": command.x, "y": command.y}
    elif isinstance(command, WheelCommand):
        payload = {"cmd": "wheel", "delta": command.delta}
    else:
        raise TypeError(f"not a helper command: {command!r}")
    return json.dumps(payload) + "\n"
