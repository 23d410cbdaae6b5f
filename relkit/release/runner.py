"""The command-running capability steps depend on.

Steps never import subprocess; they call `ctx.runner.run(...)`. Production
code wires `SubprocessRunner`, tests wire a recording fake.
"""

from __future__ import annotations

import logging
import shlex
import threading
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from relkit.platform.process import run_captured
from relkit.release.model import StepResult

__all__ = ["CommandRunner", "SubprocessRunner", "SPAWN_FAILED_EXIT_CODE"]

logger = logging.getLogger(__name__)

SPAWN_FAILED_EXIT_CODE = 127


class CommandRunner(Protocol):
    def run(
        self,
        command: str,
        args: Sequence[str] = (),
        *,
        timeout: float | None = None,
    ) -> StepResult:
        """Run one external command and report its outcome.

        Never raises for a failing command: the exit code and combined output
        are in the result and the caller decides what a failure means.
        """
        ...


class SubprocessRunner:
    """CommandRunner that spawns real processes in the project root."""

    def __init__(
        self,
        *,
        cwd: Path,
        grace: float = 5.0,
        default_timeout: float | None = None,
        cancel: threading.Event | None = None,
        env: dict[str, str] | None = None,
    ) -> None:
        self._cwd = cwd
        self._grace = grace
        self._default_timeout = default_timeout
        self._cancel = cancel
        self._env = env

    def run(
        self,
        command: str,
        args: Sequence[str] = (),
        *,
        timeout: float | None = None,
    ) -> StepResult:
        cmd = [command, *args]
        limit = timeout if timeout is not None else self._default_timeout
        display = shlex.join(cmd)
        logger.debug("running %s", display, extra={"command": display})

        proc = run_captured(
            cmd,
            cwd=self._cwd,
            env=self._env,
            timeout=limit,
            grace=self._grace,
            cancel=self._cancel,
        )
        logger.debug(
            "%s",
            proc,
            extra={"command": display, "exit_code": proc.returncode, "duration": proc.duration},
        )

        if proc.spawn_error is not None:
            return StepResult.failed(
                "spawn_failed",
                f"{command}: cannot run ({proc.spawn_error})",
                output=proc.output,
                exit_code=SPAWN_FAILED_EXIT_CODE,
            )
        if proc.timed_out:
            return StepResult.failed(
                "timeout",
                f"{display} timed out after {limit}s",
                output=proc.output,
                exit_code=proc.returncode,
            )
        if proc.cancelled:
            return StepResult.failed(
                "cancelled",
                f"{display} cancelled",
                output=proc.output,
                exit_code=proc.returncode,
            )
        if proc.returncode != 0:
            return StepResult.failed(
                "non_zero_exit",
                f"{display} exited {proc.returncode}",
                output=proc.output,
                exit_code=proc.returncode,
            )
        return StepResult.success(output=proc.output, exit_code=0)
