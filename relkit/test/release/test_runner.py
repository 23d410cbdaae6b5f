from __future__ import annotations

import sys
import threading
from pathlib import Path

from relkit.release.runner import SPAWN_FAILED_EXIT_CODE, SubprocessRunner

PY = sys.executable


def test_success(tmp_path: Path) -> None:
    result = SubprocessRunner(cwd=tmp_path).run(PY, ["-c", "print('built')"])

    assert result.ok
    assert result.exit_code == 0
    assert "built" in result.output


def test_non_zero_exit(tmp_path: Path) -> None:
    result = SubprocessRunner(cwd=tmp_path).run(PY, ["-c", "import sys; print('nope'); sys.exit(4)"])

    assert result.failure == "non_zero_exit"
    assert result.exit_code == 4
    assert "nope" in result.output


def test_spawn_failed(tmp_path: Path) -> None:
    result = SubprocessRunner(cwd=tmp_path).run("nonexistent_command_12345", ["--version"])

    assert result.failure == "spawn_failed"
    assert result.exit_code == SPAWN_FAILED_EXIT_CODE


def test_default_timeout(tmp_path: Path) -> None:
    runner = SubprocessRunner(cwd=tmp_path, grace=0.5, default_timeout=0.5)

    result = runner.run(PY, ["-c", "import time; time.sleep(30)"])

    assert result.failure == "timeout"
    assert "timed out" in (result.reason or "")


def test_cancelled(tmp_path: Path) -> None:
    cancel = threading.Event()
    cancel.set()

    result = SubprocessRunner(cwd=tmp_path, grace=0.5, cancel=cancel).run(
        PY, ["-c", "import time; time.sleep(30)"]
    )

    assert result.failure == "cancelled"
