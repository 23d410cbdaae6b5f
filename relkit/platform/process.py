"""Subprocess execution with bounded waiting.

`run_captured` spawns one process, merges stdout and stderr into a temp file
(large build logs cannot fill a pipe and stall the child), and waits in short
polls so that a timeout or a cancel request can stop the child. Stopping is
always terminate, grace period, kill, reap: no child outlives the call.

Usage:
    result = run_captured(["git", "status", "--porcelain"], cwd=root, timeout=30)
    if result.ok:
        print(result.output)
"""

from __future__ import annotations

import os
import signal
import subprocess
import tempfile
import threading
import time
from dataclasses import dataclass
from pathlib import Path

__all__ = ["ProcessResult", "run_captured", "stop_process"]

_POLL_INTERVAL_SECONDS = 0.1
_POSIX = os.name != "nt"


@dataclass(frozen=True, slots=True)
class ProcessResult:
    """Outcome of one subprocess invocation.

    Attributes:
        command: The command that was executed.
        returncode: Exit code, or None when the process never started.
        output: Combined stdout and stderr.
        duration: Wall-clock seconds from spawn to reap.
        timed_out: The process was stopped because it exceeded its timeout.
        cancelled: The process was stopped because cancellation was requested.
        spawn_error: OS error text when the process could not be started.
    """

    command: tuple[str, ...]
    returncode: int | None
    output: str
    duration: float
    timed_out: bool = False
    cancelled: bool = False
    spawn_error: str | None = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not (self.timed_out or self.cancelled)

    def __str__(self) -> str:
        cmd_str = " ".join(self.command[:3])
        if len(self.command) > 3:
            cmd_str += " ..."
        if self.spawn_error is not None:
            return f"{cmd_str} could not start: {self.spawn_error}"
        if self.timed_out:
            return f"{cmd_str} timed out after {self.duration:.1f}s"
        if self.cancelled:
            return f"{cmd_str} cancelled"
        return f"{cmd_str} exited {self.returncode}"


def _signal(proc: subprocess.Popen[bytes], sig: signal.Signals) -> None:
    # The child leads its own session on POSIX, so signal the whole group to
    # reach the tools it spawned (python -m build forks a backend).
    if _POSIX:
        try:
            os.killpg(proc.pid, sig)
            return
        except (ProcessLookupError, PermissionError):
            pass
    if sig == signal.SIGTERM:
        proc.terminate()
    else:
        proc.kill()


def stop_process(proc: subprocess.Popen[bytes], *, grace: float) -> None:
    """Terminate, wait `grace` seconds, then kill. Always reaps the child."""
    if proc.poll() is not None:
        return

    try:
        _signal(proc, signal.SIGTERM)
    except OSError:
        pass

    try:
        proc.wait(timeout=grace)
        return
    except subprocess.TimeoutExpired:
        pass

    kill_sig = signal.SIGKILL if _POSIX else signal.SIGTERM
    try:
        _signal(proc, kill_sig)
    except OSError:
        pass
    proc.wait()


def run_captured(
    cmd: list[str],
    *,
    cwd: Path,
    env: dict[str, str] | None = None,
    timeout: float | None = None,
    grace: float = 5.0,
    cancel: threading.Event | None = None,
) -> ProcessResult:
    """Run a command to completion, timeout or cancellation.

    Never raises for a failing command. `KeyboardInterrupt` received while
    waiting stops the child and is then re-raised to the caller.
    """
    command = tuple(cmd)
    start = time.monotonic()

    fd, log_name = tempfile.mkstemp(prefix="relkit_", suffix=".log")
    os.close(fd)
    log_path = Path(log_name)

    timed_out = False
    cancelled = False
    try:
        with open(log_path, "wb") as log:
            try:
                proc = subprocess.Popen(
                    cmd,
                    cwd=str(cwd),
                    env=env,
                    stdin=subprocess.DEVNULL,
                    stdout=log,
                    stderr=subprocess.STDOUT,
                    start_new_session=_POSIX,
                )
            except OSError as e:
                return ProcessResult(
                    command=command,
                    returncode=None,
                    output=str(e),
                    duration=time.monotonic() - start,
                    spawn_error=str(e),
                )

            deadline = None if timeout is None else start + timeout
            try:
                while True:
                    try:
                        proc.wait(timeout=_POLL_INTERVAL_SECONDS)
                        break
                    except subprocess.TimeoutExpired:
                        pass
                    if cancel is not None and cancel.is_set():
                        cancelled = True
                        stop_process(proc, grace=grace)
                        break
                    if deadline is not None and time.monotonic() >= deadline:
                        timed_out = True
                        stop_process(proc, grace=grace)
                        break
            except KeyboardInterrupt:
                stop_process(proc, grace=grace)
                raise

        output = log_path.read_text(encoding="utf-8", errors="replace")
    finally:
        log_path.unlink(missing_ok=True)

    return ProcessResult(
        command=command,
        returncode=proc.returncode,
        output=output,
        duration=time.monotonic() - start,
        timed_out=timed_out,
        cancelled=cancelled,
    )
