"""GestureFlow configuration.

Settings live in dataclasses with working defaults. A YAML file can
override any subset of them:

    recognition:
      camera_index: 1
      hold_ms:
        OPEN_PALM: 1200
    transport:
      url: ws://192.168.1.20:3001
    dispatcher:
      port: 3001
      executors: [native, helper, script]

Environment variables (``GESTUREFLOW_CAMERA``, ``GESTUREFLOW_BRIDGE_URL``,
``GESTUREFLOW_HOST``, ``GESTUREFLOW_PORT``, ``GESTUREFLOW_LOG_LEVEL``) take
precedence over the file.
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Optional

import yaml

from gestureflow.gestures import GestureLabel

logger = logging.getLogger("gestureflow.config")

PACKAGE_DIR = Path(__file__).parent
DEFAULT_HELPER_SCRIPT = PACKAGE_DIR / "scripts" / "ps_handler.ps1"


@dataclass
class RecognitionConfig:
    camera_index: int = 0
    camera_width: int = 640
    camera_height: int = 480
    model_path: str = "hand_landmarker.task"
    min_detection_confidence: float = 0.5
    min_tracking_confidence: float = 0.5
    pinch_threshold: float = 0.22
    spread_threshold: float = 0.45
    swipe_velocity: float = 0.8
    swipe_cooldown_ms: float = 400.0
    pointer_interval_ms: float = 33.0
    default_hold_ms: float = 150.0
    hold_ms: dict[str, float] = field(default_factory=dict)

    def hold_overrides(self) -> dict[GestureLabel, float]:
        """Hold-time overrides keyed by label; unknown names are rejected."""
        overrides = {}
        for name, ms in self.hold_ms.items():
            try:
                label = GestureLabel(name.upper())
            except ValueError:
                raise ValueError(f"unknown gesture in hold_ms: {name!r}") from None
            if label.is_swipe:
                raise ValueError(f"{label.value} is not hold-confirmed")
            overrides[label] = float(ms)
        return overrides


@dataclass
class TransportConfig:
    url: str = "ws://localhost:3001"
    connect_timeout: float = 2.0
    reconnect_interval: float = 2.0


@dataclass
class DispatcherConfig:
    host: str = "127.0.0.1"
    port: int = 3001
    executors: list[str] = field(default_factory=lambda: ["native", "helper", "script"])
    per_call_fallback: bool = False
    powershell: str = "powershell"
    helper_script: str = str(DEFAULT_HELPER_SCRIPT)
    zoom_notches: int = 1
    require_all_actions: bool = False
    screen_width: int = 1920  # used when no backend can report the display size
    screen_height: int = 1080


@dataclass
class GestureFlowConfig:
    recognition: RecognitionConfig = field(default_factory=RecognitionConfig)
    transport: TransportConfig = field(default_factory=TransportConfig)
    dispatcher: DispatcherConfig = field(default_factory=DispatcherConfig)
    log_level: str = "info"

    @classmethod
    def from_dict(cls, data: dict) -> GestureFlowConfig:
        data = data or {}
        return cls(
            recognition=_build(RecognitionConfig, data.get("recognition")),
            transport=_build(TransportConfig, data.get("transport")),
            dispatcher=_build(DispatcherConfig, data.get("dispatcher")),
            log_level=str(data.get("log_level", "info")),
        )

    @classmethod
    def from_yaml(cls, path: str | Path) -> GestureFlowConfig:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path}: top level must be a mapping")
        return cls.from_dict(data)

    def to_dict(self) -> dict:
        return asdict(self)

    def to_yaml(self, path: str | Path):
        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    def apply_env(self, environ: Optional[dict] = None) -> GestureFlowConfig:
        env = os.environ if environ is None else environ
        if "GESTUREFLOW_CAMERA" in env:
            self.recognition.camera_index = int(env["GESTUREFLOW_CAMERA"])
        if "GESTUREFLOW_BRIDGE_URL" in env:
            self.transport.url = env["GESTUREFLOW_BRIDGE_URL"]
        if "GESTUREFLOW_HOST" in env:
            self.dispatcher.host = env["GESTUREFLOW_HOST"]
        if "GESTUREFLOW_PORT" in env:
            self.dispatcher.port = int(env["GESTUREFLOW_PORT"])
        if "GESTUREFLOW_LOG_LEVEL" in env:
            self.log_level = env["GESTUREFLOW_LOG_LEVEL"]
        return self


def _build(section_cls, data: Optional[dict]):
    if not data:
        return section_cls()
    known = {f.name for f in fields(section_cls)}
    unknown = set(data) - known
    if unknown:
        logger.warning("Ignoring unknown %s keys: %s", section_cls.__name__, sorted(unknown))
    return section_cls(**{k: v for k, v in data.items() if k in known})


def load_config(path: Optional[str | Path] = None) -> GestureFlowConfig:
    """Load configuration from an optional YAML file, then apply the environment."""
    config = GestureFlowConfig.from_yaml(path) if path else GestureFlowConfig()
    return config.apply_env()
