"""Tests for the command-line interface."""

import socket

import pytest
import yaml
from typer.testing import CliRunner

from gestureflow.cli import app

runner = CliRunner()


def closed_url():
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        port = s.getsockname()[1]
    return f"ws://127.0.0.1:{port}/ws"


class TestConfigDump:
    def test_prints_yaml(self):
        result = runner.invoke(app, ["config-dump"])
        assert result.exit_code == 0
        data = yaml.safe_load(result.stdout)
        assert data["dispatcher"]["port"] == 3001

    def test_writes_file(self, tmp_path):
        out = tmp_path / "out.yaml"
        result = runner.invoke(app, ["config-dump", "-o", str(out)])
        assert result.exit_code == 0
        assert yaml.safe_load(out.read_text())["transport"]["url"] == "ws://localhost:3001"

    def test_env_applied(self, monkeypatch):
        monkeypatch.setenv("GESTUREFLOW_PORT", "4321")
        result = runner.invoke(app, ["config-dump"])
        assert yaml.safe_load(result.stdout)["dispatcher"]["port"] == 4321

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["config-dump", "--config", str(tmp_path / "nope.yaml")])
        assert result.exit_code == 2


class TestSend:
    def test_unknown_gesture(self):
        result = runner.invoke(app, ["send", "gesture", "WAVE"])
        assert result.exit_code == 2

    def test_unreachable_bridge(self):
        result = runner.invoke(app, ["send", "gesture", "swipe_right", "--bridge-url", closed_url()])
        assert result.exit_code == 1

    def test_pointer_unreachable(self):
        result = runner.invoke(app, ["send", "pointer", "0.5", "0.5", "--bridge-url", closed_url()])
        assert result.exit_code == 1


class TestBackends:
    def test_unknown_backend_in_config(self, tmp_path):
        path = tmp_path / "c.yaml"
        path.write_text("dispatcher:\n  executors: [carrier_pigeon]\n")
        result = runner.invoke(app, ["backends", "--config", str(path)])
        assert result.exit_code == 2


class TestTrack:
    def test_camera_failure_exits_nonzero(self):
        pytest.importorskip("cv2")
        result = runner.invoke(app, ["track", "--camera", "97", "--quiet", "--bridge-url", closed_url()])
        assert result.exit_code == 1
