"""Tiered action-execution backends.

Three strategies, in default priority order:

1. ``native``: pyautogui input injection. Cursor moves and ctrl+wheel zoom only.
2. ``helper``: a persistent PowerShell process reading one JSON command per
   line on stdin and answering one status line per command on stdout.
3. ``script``: a one-shot PowerShell invocation built for each call.

``ExecutorChain`` starts the backends once, at process start, and binds
every action to the first backend that started and supports it. A failed
call is not retried on another tier unless ``per_call_fallback`` is set.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Sequence

from gestureflow.actions import (
    ActionOutcome,
    ActionRequest,
    ActionResult,
    PRESENTATION_ACTIONS,
    TargetAction,
)
from gestureflow.config import DispatcherConfig
from gestureflow.errors import ExecutorUnavailableError, NoExecutorError
from gestureflow.messages import (
    CursorCommand,
    HelperCommand,
    PptCommand,
    WheelCommand,
    encode_command,
)

logger = logging.getLogger("gestureflow.executors")

# Status words shared by the helper replies and the one-shot scripts
STATUS_OUTCOMES = {
    "OK": ActionOutcome.OK,
    "NoPowerPoint": ActionOutcome.NO_HOST,
    "NoPresentation": ActionOutcome.NO_DOCUMENT,
    "NoSlideShow": ActionOutcome.NO_SESSION,
    "CmdError": ActionOutcome.FAILED,
    "Unsupported": ActionOutcome.UNSUPPORTED,
}

ZOOM_ACTIONS = frozenset({TargetAction.ZOOM_IN, TargetAction.ZOOM_OUT})


def parse_status(line: str) -> tuple[ActionOutcome, str]:
    """Split a status line such as ``CmdError Access denied`` into outcome and detail."""
    word, _, detail = line.strip().partition(" ")
    outcome = STATUS_OUTCOMES.get(word)
    if outcome is None:
        return ActionOutcome.FAILED, line.strip() or "empty reply"
    return outcome, detail


def to_command(request: ActionRequest, zoom_notches: int = 1) -> HelperCommand:
    """Translate an action into the helper's command vocabulary."""
    action = request.action
    if action in PRESENTATION_ACTIONS:
        return PptCommand(action.value)
    if action == TargetAction.ZOOM_IN:
        return WheelCommand(zoom_notches)
    if action == TargetAction.ZOOM_OUT:
        return WheelCommand(-zoom_notches)
    if action == TargetAction.CURSOR_MOVE:
        return CursorCommand(int(request.x), int(request.y))
    raise ValueError(f"no helper command for {action}")


class ActionExecutor(ABC):
    """One execution backend."""

    name: str = "base"
    supported: frozenset[TargetAction] = frozenset(TargetAction)

    def supports(self, action: TargetAction) -> bool:
        return action in self.supported

    async def start(self):
        """Probe and initialize. Raise ExecutorUnavailableError if this host can't run it."""

    @abstractmethod
    async def execute(self, request: ActionRequest) -> ActionResult:
        ...

    def screen_size(self) -> Optional[tuple[int, int]]:
        """Primary display size in pixels, if this backend can tell."""
        return None

    async def close(self):
        pass

    def _result(self, request: ActionRequest, outcome: ActionOutcome, detail: str = "") -> ActionResult:
        return ActionResult(request=request, outcome=outcome, backend=self.name, detail=detail)


class NativeInputExecutor(ActionExecutor):
    """Low-latency input injection through pyautogui."""

    name = "native"
    supported = frozenset({TargetAction.CURSOR_MOVE}) | ZOOM_ACTIONS

    def __init__(self, zoom_notches: int = 1):
        self.zoom_notches = max(1, zoom_notches)
        self._gui = None

    async def start(self):
        try:
            import pyautogui
        except Exception as e:
            # pyautogui also fails at import time when no display is available
            raise ExecutorUnavailableError(f"pyautogui unavailable: {e}") from e
        pyautogui.FAILSAFE = False
        pyautogui.PAUSE = 0
        self._gui = pyautogui

    async def execute(self, request: ActionRequest) -> ActionResult:
        if not self.supports(request.action):
            return self._result(request, ActionOutcome.UNSUPPORTED)
        await asyncio.to_thread(self._inject, request)
        return self._result(request, ActionOutcome.OK)

    def _inject(self, request: ActionRequest):
        gui = self._gui
        if request.action == TargetAction.CURSOR_MOVE:
            gui.moveTo(request.x, request.y, duration=0)
            return

        clicks = 1 if request.action == TargetAction.ZOOM_IN else -1
        for _ in range(self.zoom_notches):
            gui.keyDown("ctrl")
            try:
                gui.scroll(clicks)
            finally:
                gui.keyUp("ctrl")

    def screen_size(self) -> Optional[tuple[int, int]]:
        if self._gui is None:
            return None
        width, height = self._gui.size()
        return int(width), int(height)


class HelperProcessExecutor(ActionExecutor):
    """Persistent helper process spoken to over stdin/stdout, one line per command."""

    name = "helper"
    READY = "READY"

    def __init__(self, argv: Sequence[str], zoom_notches: int = 1, ready_timeout: float = 15.0):
        self.argv = list(argv)
        self.zoom_notches = max(1, zoom_notches)
        self.ready_timeout = ready_timeout
        self._proc: Optional[asyncio.subprocess.Process] = None
        self._stderr_task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()

    @classmethod
    def powershell(cls, powershell: str, script: str | Path, zoom_notches: int = 1) -> HelperProcessExecutor:
        return cls(
            [powershell, "-NoProfile", "-NonInteractive", "-ExecutionPolicy", "Bypass", "-File", str(script)],
            zoom_notches=zoom_notches,
        )

    @property
    def alive(self) -> bool:
        return self._proc is not None and self._proc.returncode is None

    async def start(self):
        if shutil.which(self.argv[0]) is None:
            raise ExecutorUnavailableError(f"{self.argv[0]} not found")
        if "-File" in self.argv:
            script = Path(self.argv[self.argv.index("-File") + 1])
            if not script.is_file():
                raise ExecutorUnavailableError(f"helper script missing: {script}")

        try:
            self._proc = await asyncio.create_subprocess_exec(
                *self.argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            line = await asyncio.wait_for(self._proc.stdout.readline(), timeout=self.ready_timeout)
        except (OSError, asyncio.TimeoutError) as e:
            await self.close()
            raise ExecutorUnavailableError(f"helper did not start: {e!r}") from e

        if line.decode(errors="replace").strip() != self.READY:
            await self.close()
            raise ExecutorUnavailableError(f"unexpected helper greeting: {line!r}")

        self._stderr_task = asyncio.create_task(self._drain_stderr())
        logger.info("Helper process started (pid %d)", self._proc.pid)

    async def _drain_stderr(self):
        proc = self._proc
        while True:
            line = await proc.stderr.readline()
            if not line:
                break
            logger.warning("[helper] %s", line.decode(errors="replace").rstrip())

    async def execute(self, request: ActionRequest) -> ActionResult:
        command = to_command(request, self.zoom_notches)
        payload = encode_command(command).encode()

        # One command in flight at a time keeps lines and replies paired
        async with self._lock:
            if not self.alive:
                return self._result(request, ActionOutcome.FAILED, "helper process not running")
            try:
                self._proc.stdin.write(payload)
                await self._proc.stdin.drain()
                reply = await self._proc.stdout.readline()
            except (OSError, ConnectionError) as e:
                return self._result(request, ActionOutcome.FAILED, f"helper I/O error: {e}")

        if not reply:
            return self._result(request, ActionOutcome.FAILED, "helper closed its output")

        outcome, detail = parse_status(reply.decode(errors="replace"))
        logger.debug("[helper] %s -> %s %s", request.describe(), outcome.value, detail)
        return self._result(request, outcome, detail)

    async def close(self):
        proc, self._proc = self._proc, None
        if proc is not None and proc.returncode is None:
            if proc.stdin is not None:
                proc.stdin.close()
            try:
                await asyncio.wait_for(proc.wait(), timeout=2.0)
            except asyncio.TimeoutError:
                proc.kill()
                await proc.wait()
        if self._stderr_task is not None:
            self._stderr_task.cancel()
            self._stderr_task = None


class ScriptExecutor(ActionExecutor):
    """Builds and runs a one-shot PowerShell script per call.

    No timeout is applied: a hung script stalls only the action that
    launched it.
    """

    name = "script"

    def __init__(self, powershell: str = "powershell", zoom_notches: int = 1):
        self.powershell = powershell
        self.zoom_notches = max(1, zoom_notches)
        self._screen: Optional[tuple[int, int]] = None

    async def start(self):
        if shutil.which(self.powershell) is None:
            raise ExecutorUnavailableError(f"{self.powershell} not found")
        try:
            rc, out = await self.run_script(SCREEN_SIZE_SCRIPT)
        except OSError as e:
            raise ExecutorUnavailableError(f"could not run {self.powershell}: {e}") from e
        if rc == 0:
            try:
                width, height = (int(v) for v in out.split())
                self._screen = (width, height)
            except ValueError:
                logger.debug("Could not parse screen size %r", out)

    async def run_script(self, script: str) -> tuple[int, str]:
        proc = await asyncio.create_subprocess_exec(
            self.powershell, "-NoProfile", "-NonInteractive", "-Command", script,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await proc.communicate()
        if stderr:
            logger.debug("[script] stderr: %s", stderr.decode(errors="replace").strip())
        return proc.returncode, stdout.decode(errors="replace").strip()

    async def execute(self, request: ActionRequest) -> ActionResult:
        script = build_script(to_command(request, self.zoom_notches))
        try:
            rc, out = await self.run_script(script)
        except OSError as e:
            return self._result(request, ActionOutcome.FAILED, f"could not launch {self.powershell}: {e}")

        if rc == 0:
            return self._result(request, ActionOutcome.OK)
        last_line = out.splitlines()[-1] if out else ""
        outcome, detail = parse_status(last_line)
        if outcome == ActionOutcome.OK:
            outcome = ActionOutcome.FAILED
        return self._result(request, outcome, detail or f"exit code {rc}")

    def screen_size(self) -> Optional[tuple[int, int]]:
        return self._screen


# --- One-shot PowerShell scripts ---

SCREEN_SIZE_SCRIPT = (
    "Add-Type -AssemblyName System.Windows.Forms; "
    "$s = [System.Windows.Forms.Screen]::PrimaryScreen.Bounds; "
    "Write-Output \"$($s.Width) $($s.Height)\""
)

PPT_SCRIPT = """
try { $pp = [Runtime.InteropServices.Marshal]::GetActiveObject('PowerPoint.Application') } catch { Write-Output 'NoPowerPoint'; exit 3 }
try {
    if ($pp.SlideShowWindows.Count -gt 0) {
        $view = $pp.SlideShowWindows.Item(1).View
        switch ('%(action)s') {
            'next' { $view.Next() }
            'prev' { $view.Previous() }
            'stop' { $view.Exit() }
            'close' { $view.Exit() }
            'laser' { $view.PointerType = 1 }
            default { }
        }
        Write-Output 'OK'; exit 0
    }
    if ('%(action)s' -eq 'start') {
        if ($pp.Presentations.Count -gt 0) { $pp.ActivePresentation.SlideShowSettings.Run() | Out-Null; Write-Output 'OK'; exit 0 }
        Write-Output 'NoPresentation'; exit 4
    }
    Write-Output 'NoSlideShow'; exit 4
} catch { Write-Output ('CmdError ' + $_.Exception.Message); exit 5 }
"""

CURSOR_SCRIPT = """
Add-Type @"
using System; using System.Runtime.InteropServices;
public class GfCursor { [DllImport("user32.dll")] public static extern bool SetCursorPos(int X, int Y); }
"@
[GfCursor]::SetCursorPos(%(x)d, %(y)d) | Out-Null
Write-Output 'OK'
"""

WHEEL_SCRIPT = """
Add-Type @"
using System; using System.Runtime.InteropServices;
public class GfWheel {
  [DllImport("user32.dll")] public static extern void keybd_event(byte bVk, byte bScan, uint dwFlags, UIntPtr dwExtraInfo);
  [DllImport("user32.dll")] public static extern void mouse_event(uint dwFlags, uint dx, uint dy, int dwData, UIntPtr dwExtraInfo);
}
"@
for ($i = 0; $i -lt %(steps)d; $i++) {
  [GfWheel]::keybd_event(0x11, 0, 0, [UIntPtr]::Zero)
  Start-Sleep -Milliseconds 10
  [GfWheel]::mouse_event(0x0800, 0, 0, %(wheel)d, [UIntPtr]::Zero)
  Start-Sleep -Milliseconds 10
  [GfWheel]::keybd_event(0x11, 0, 2, [UIntPtr]::Zero)
}
Write-Output 'OK'
"""


def build_script(command: HelperCommand) -> str:
    """PowerShell source equivalent to one helper command."""
    if isinstance(command, PptCommand):
        return PPT_SCRIPT % {"action": command.action}
    if isinstance(command, CursorCommand):
        return CURSOR_SCRIPT % {"x": command.x, "y": command.y}
    if isinstance(command, WheelCommand):
        return WHEEL_SCRIPT % {
            "steps": max(1, abs(command.delta)),
            "wheel": 120 if command.delta > 0 else -120,
        }
    raise TypeError(f"not a helper command: {command!r}")


# --- Startup resolution ---

class ExecutorChain:
    """Priority-ordered backends, bound per action once at startup."""

    def __init__(
        self,
        executors: Sequence[ActionExecutor],
        per_call_fallback: bool = False,
        default_screen: tuple[int, int] = (1920, 1080),
        require_all_actions: bool = False,
    ):
        self.executors = list(executors)
        self.per_call_fallback = per_call_fallback
        self.require_all_actions = require_all_actions
        self.default_screen = default_screen
        self._active: list[ActionExecutor] = []
        self._bindings: dict[TargetAction, ActionExecutor] = {}
        self._screen: Optional[tuple[int, int]] = None

    @classmethod
    def from_config(cls, config: DispatcherConfig) -> ExecutorChain:
        return cls(
            build_executors(config),
            per_call_fallback=config.per_call_fallback,
            default_screen=(config.screen_width, config.screen_height),
            require_all_actions=config.require_all_actions,
        )

    async def start(self):
        """Start every backend in priority order and bind actions.

        Raises NoExecutorError if no backend at all could start, or if
        ``require_all_actions`` is set and some action has no backend; in
        that case the backends already started are closed first.
        """
        for executor in self.executors:
            try:
                await executor.start()
            except ExecutorUnavailableError as e:
                logger.warning("Backend %s unavailable: %s", executor.name, e)
                continue
            self._active.append(executor)
            logger.info("Backend %s ready", executor.name)

        if not self._active:
            raise NoExecutorError("no execution backend could be initialized")

        for action in TargetAction:
            executor = self._candidates(action)[:1]
            if executor:
                self._bindings[action] = executor[0]
            elif self.require_all_actions:
                # nothing will call close() after a failed startup
                await self.close()
                raise NoExecutorError(f"no backend available for {action.value}")
            else:
                logger.warning("No backend supports %s; it will be reported unsupported", action.value)

        for executor in self._active:
            size = executor.screen_size()
            if size:
                self._screen = size
                break

    def _candidates(self, action: TargetAction) -> list[ActionExecutor]:
        return [ex for ex in self._active if ex.supports(action)]

    @property
    def active(self) -> list[ActionExecutor]:
        return list(self._active)

    @property
    def bindings(self) -> dict[str, str]:
        return {action.value: ex.name for action, ex in self._bindings.items()}

    def binding(self, action: TargetAction) -> Optional[ActionExecutor]:
        return self._bindings.get(action)

    def screen_size(self) -> tuple[int, int]:
        return self._screen or self.default_screen

    async def execute(self, request: ActionRequest) -> ActionResult:
        """Run a request on its bound backend; failures come back as results."""
        bound = self._bindings.get(request.action)
        if bound is None:
            return ActionResult(request, ActionOutcome.UNSUPPORTED, backend="none", detail="no backend bound")

        tiers = [bound]
        if self.per_call_fallback:
            tiers += [ex for ex in self._candidates(request.action) if ex is not bound]

        t_start = time.monotonic()
        result = None
        for executor in tiers:
            result = await self._run_one(executor, request)
            if result.outcome != ActionOutcome.FAILED:
                break
            if executor is not tiers[-1]:
                logger.info("Backend %s failed for %s, trying next tier", executor.name, request.describe())

        return ActionResult(
            request=result.request,
            outcome=result.outcome,
            backend=result.backend,
            detail=result.detail,
            duration=time.monotonic() - t_start,
        )

    async def _run_one(self, executor: ActionExecutor, request: ActionRequest) -> ActionResult:
        try:
            return await executor.execute(request)
        except Exception as e:
            logger.error("Backend %s failed on %s: %s", executor.name, request.describe(), e)
            return ActionResult(request, ActionOutcome.FAILED, backend=executor.name, detail=str(e))

    async def close(self):
        for executor in self._active:
            try:
                await executor.close()
            except Exception as e:
                logger.error("Backend %s close error: %s", executor.name, e)
        self._active.clear()
        self._bindings.clear()


BACKENDS = ("native", "helper", "script")


def build_executors(config: DispatcherConfig) -> list[ActionExecutor]:
    """Instantiate backends in the configured priority order."""
    executors: list[ActionExecutor] = []
    for name in config.executors:
        if name == "native":
            executors.append(NativeInputExecutor(zoom_notches=config.zoom_notches))
        elif name == "helper":
            executors.append(HelperProcessExecutor.powershell(
                config.powershell, config.helper_script, zoom_notches=config.zoom_notches,
            ))
        elif name == "script":
            executors.append(ScriptExecutor(config.powershell, zoom_notches=config.zoom_notches))
        else:
            raise ValueError(f"unknown backend {name!r} (expected one of {', '.join(BACKENDS)})")
    return executors
