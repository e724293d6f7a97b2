"""GestureFlow CLI.

Usage:
    gestureflow bridge            Run the dispatcher server
    gestureflow track             Run camera recognition against a bridge
    gestureflow send gesture X    Send one gesture message to a bridge
    gestureflow send pointer X Y  Send one pointer message to a bridge
    gestureflow backends          Probe execution backends and show bindings
    gestureflow config-dump       Print or write the effective configuration
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Optional

try:
    import typer
except ImportError:
    raise ImportError("typer is required for CLI. Install with: pip install typer")

from gestureflow.config import GestureFlowConfig, load_config
from gestureflow.errors import AcquisitionError, GestureFlowError, NoExecutorError
from gestureflow.gestures import GestureLabel, HandObservation
from gestureflow.messages import GestureMessage, PointerMessage

app = typer.Typer(
    name="gestureflow",
    help="✋ Hand gestures in, presentation and pointer actions out.",
    add_completion=False,
)
send_app = typer.Typer(help="Send one message to a running bridge.")
app.add_typer(send_app, name="send")


def _load(config_path: Optional[str], log_level: Optional[str]) -> GestureFlowConfig:
    try:
        config = load_config(config_path)
    except (OSError, ValueError) as e:
        typer.echo(f"❌ Could not load config: {e}", err=True)
        raise typer.Exit(2)
    if log_level:
        config.log_level = log_level
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return config


@app.command()
def bridge(
    host: Optional[str] = typer.Option(None, help="Bind address (default from config)"),
    port: Optional[int] = typer.Option(None, help="Port (default from config)"),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to YAML config"),
    log_level: Optional[str] = typer.Option(None, help="Log level"),
    fallback: Optional[bool] = typer.Option(
        None, "--fallback/--no-fallback", help="Retry failed actions on lower backends"
    ),
):
    """Start the dispatcher: receives messages and executes actions."""
    import uvicorn
    from gestureflow.server import create_app

    config = _load(config_path, log_level)
    if host:
        config.dispatcher.host = host
    if port:
        config.dispatcher.port = port
    if fallback is not None:
        config.dispatcher.per_call_fallback = fallback

    try:
        fastapi_app = create_app(config)
    except ValueError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(2)

    typer.echo(f"🚀 Starting GestureFlow bridge on {config.dispatcher.host}:{config.dispatcher.port}")
    typer.echo(f"   Backends (priority order): {', '.join(config.dispatcher.executors)}")
    # uvicorn exits the process itself when the port cannot be bound
    uvicorn.run(
        fastapi_app,
        host=config.dispatcher.host,
        port=config.dispatcher.port,
        log_level=config.log_level.lower(),
    )


@app.command()
def track(
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to YAML config"),
    camera: Optional[int] = typer.Option(None, help="Camera device index"),
    bridge_url: Optional[str] = typer.Option(None, help="Bridge WebSocket URL"),
    model: Optional[str] = typer.Option(None, help="Path to hand_landmarker.task"),
    log_level: Optional[str] = typer.Option(None, help="Log level"),
    quiet: bool = typer.Option(False, help="Don't print the live status line"),
):
    """Recognize gestures from the camera and send them to the bridge."""
    from gestureflow.pipeline import RecognitionLoop
    from gestureflow.transport import MessageTransport

    config = _load(config_path, log_level)
    if camera is not None:
        config.recognition.camera_index = camera
    if bridge_url:
        config.transport.url = bridge_url
    if model:
        config.recognition.model_path = model

    transport = MessageTransport(
        config.transport.url,
        connect_timeout=config.transport.connect_timeout,
        reconnect_interval=config.transport.reconnect_interval,
    )
    try:
        loop = RecognitionLoop(config.recognition, transport=transport)
    except ValueError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(2)

    if not quiet:
        loop.pipeline.on_observation(_status_printer())

    try:
        loop.start()
    except AcquisitionError as e:
        typer.echo(f"❌ Camera unavailable: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"🎥 Tracking on camera {config.recognition.camera_index} -> {config.transport.url}")
    typer.echo("   Press Ctrl+C to stop")

    async def _run():
        await transport.connect()
        try:
            await loop.run()
        finally:
            await transport.close()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        pass

    stats = loop.pipeline.stats
    typer.echo(
        f"\n✅ {stats.total_frames} frames, {stats.frames_with_hand} with a hand, "
        f"{transport.sent} messages sent ({transport.dropped} dropped)"
    )


def _status_printer():
    last = [None]

    def show(obs: HandObservation):
        if not obs.detected:
            line = "no hand"
        else:
            p = obs.position
            line = f"{obs.gesture.value:<12} x={p.x:.2f} y={p.y:.2f} z={p.z:+.3f} tilt={obs.tilt:+.2f}"
        if line != last[0]:
            sys.stdout.write(f"\r{line:<60}")
            sys.stdout.flush()
            last[0] = line

    return show


def _send_one(url: str, message) -> bool:
    from gestureflow.transport import MessageTransport

    async def _go():
        async with MessageTransport(url) as transport:
            return await transport.send(message)

    return asyncio.run(_go())


@send_app.command("gesture")
def send_gesture(
    label: str = typer.Argument(..., help="Gesture label, e.g. SWIPE_RIGHT"),
    bridge_url: Optional[str] = typer.Option(None, help="Bridge WebSocket URL"),
):
    """Send one gesture message."""
    try:
        gesture = GestureLabel(label.upper())
    except ValueError:
        choices = ", ".join(g.value for g in GestureLabel)
        typer.echo(f"❌ Unknown gesture {label!r}. Choose from: {choices}", err=True)
        raise typer.Exit(2)

    url = bridge_url or load_config().transport.url
    if not _send_one(url, GestureMessage(gesture)):
        typer.echo(f"❌ Could not reach bridge at {url}", err=True)
        raise typer.Exit(1)
    typer.echo(f"✅ Sent {gesture.value}")


@send_app.command("pointer")
def send_pointer(
    x: float = typer.Argument(..., help="Normalized x in [0, 1]"),
    y: float = typer.Argument(..., help="Normalized y in [0, 1]"),
    bridge_url: Optional[str] = typer.Option(None, help="Bridge WebSocket URL"),
):
    """Send one pointer message."""
    message = PointerMessage(x, y)
    url = bridge_url or load_config().transport.url
    if not _send_one(url, message):
        typer.echo(f"❌ Could not reach bridge at {url}", err=True)
        raise typer.Exit(1)
    typer.echo(f"✅ Sent pointer ({message.x:.3f}, {message.y:.3f})")


@app.command()
def backends(
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to YAML config"),
    log_level: Optional[str] = typer.Option("warning", help="Log level"),
):
    """Probe the execution backends and show which one handles each action."""
    from gestureflow.executors import ExecutorChain

    config = _load(config_path, log_level)

    async def _probe():
        chain = ExecutorChain.from_config(config.dispatcher)
        try:
            await chain.start()
            return chain.active, chain.bindings, chain.screen_size()
        finally:
            await chain.close()

    try:
        active, bindings, screen = asyncio.run(_probe())
    except NoExecutorError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)
    except (GestureFlowError, ValueError) as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(2)

    typer.echo(f"Active backends: {', '.join(ex.name for ex in active)}")
    typer.echo(f"Screen: {screen[0]}x{screen[1]}")
    typer.echo(f"\n{'Action':<14} {'Backend':<10}")
    typer.echo("─" * 26)
    for action, name in bindings.items():
        typer.echo(f"{action:<14} {name:<10}")


@app.command("config-dump")
def config_dump(
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to YAML config"),
    output: Optional[str] = typer.Option(None, "-o", help="Write to file instead of stdout"),
):
    """Show the effective configuration (file + environment) as YAML."""
    import yaml

    try:
        config = load_config(config_path)
    except (OSError, ValueError) as e:
        typer.echo(f"❌ Could not load config: {e}", err=True)
        raise typer.Exit(2)

    if output:
        config.to_yaml(output)
        typer.echo(f"✅ Config written to {output}")
    else:
        typer.echo(yaml.dump(config.to_dict(), default_flow_style=False, sort_keys=False), nl=False)


def main():
    app()


if __name__ == "__main__":
    main()
