"""Target actions and the message -> action mapping table."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from gestureflow.gestures import GestureLabel
from gestureflow.messages import ActionMessage, GestureMessage, PointerMessage


class TargetAction(Enum):
    NEXT = "next"
    PREV = "prev"
    START = "start"
    CLOSE = "close"
    LASER = "laser"
    ZOOM_IN = "zoom_in"
    ZOOM_OUT = "zoom_out"
    CURSOR_MOVE = "cursor_move"

    @property
    def is_presentation(self) -> bool:
        return self in PRESENTATION_ACTIONS


PRESENTATION_ACTIONS = frozenset({
    TargetAction.NEXT,
    TargetAction.PREV,
    TargetAction.START,
    TargetAction.CLOSE,
    TargetAction.LASER,
})

GESTURE_ACTIONS: dict[GestureLabel, Optional[TargetAction]] = {
    GestureLabel.SWIPE_RIGHT: TargetAction.NEXT,
    GestureLabel.SWIPE_LEFT: TargetAction.PREV,
    GestureLabel.PINCH: TargetAction.ZOOM_OUT,
    GestureLabel.SPREAD: TargetAction.ZOOM_IN,
    GestureLabel.OPEN_PALM: TargetAction.START,
    GestureLabel.CLOSED_FIST: TargetAction.CLOSE,
    GestureLabel.POINTING: TargetAction.LASER,
    GestureLabel.NONE: None,
}


class ActionOutcome(Enum):
    OK = "ok"
    NO_HOST = "no_host"  # no running presentation application
    NO_DOCUMENT = "no_document"  # application running, nothing loaded
    NO_SESSION = "no_session"  # no slideshow in progress
    FAILED = "failed"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class ActionRequest:
    """A resolved action; cursor moves carry pixel coordinates."""
    action: TargetAction
    x: Optional[int] = None
    y: Optional[int] = None

    def describe(self) -> str:
        if self.action == TargetAction.CURSOR_MOVE:
            return f"{self.action.value}({self.x}, {self.y})"
        return self.action.value


@dataclass(frozen=True)
class ActionResult:
    request: ActionRequest
    outcome: ActionOutcome
    backend: str
    detail: str = ""
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.outcome == ActionOutcome.OK

    def to_dict(self) -> dict:
        return {
            "action": self.request.action.value,
            "outcome": self.outcome.value,
            "backend": self.backend,
            "detail": self.detail,
            "duration_ms": round(self.duration * 1000, 2),
        }


def map_message(
    message: ActionMessage, screen_size: tuple[int, int]
) -> Optional[ActionRequest]:
    """Resolve a wire message to an action. Returns None for no-op messages."""
    if isinstance(message, GestureMessage):
        action = GESTURE_ACTIONS.get(message.gesture)
        return ActionRequest(action) if action is not None else None

    if isinstance(message, PointerMessage):
        width, height = screen_size
        return ActionRequest(
            TargetAction.CURSOR_MOVE,
            x=round(message.x * width),
            y=round(message.y * height),
        )

    raise TypeError(f"not an action message: {message!r}")
