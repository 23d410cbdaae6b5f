"""Tests for relkit.platform.process module."""

from __future__ import annotations

import sys
import threading
from pathlib import Path

import pytest

from relkit.platform.process import ProcessResult, run_captured

PY = sys.executable


class TestProcessResult:
    def test_str_truncates_long_command(self) -> None:
        result = ProcessResult(
            command=("python", "-m", "build", "--sdist"),
            returncode=1,
            output="",
            duration=0.1,
        )
        assert str(result) == "python -m build ... exited 1"

    def test_ok_requires_zero_exit(self) -> None:
        assert ProcessResult(("x",), 0, "", 0.0).ok
        assert not ProcessResult(("x",), 2, "", 0.0).ok
        assert not ProcessResult(("x",), 0, "", 0.0, timed_out=True).ok


class TestRunCaptured:
    def test_success_captures_output(self, tmp_path: Path) -> None:
        result = run_captured([PY, "-c", "print('hello')"], cwd=tmp_path)

        assert result.ok
        assert result.returncode == 0
        assert "hello" in result.output

    def test_merges_stderr(self, tmp_path: Path) -> None:
        result = run_captured(
            [PY, "-c", "import sys; print('out'); sys.stderr.write('err\\n'); sys.exit(3)"],
            cwd=tmp_path,
        )

        assert not result.ok
        assert result.returncode == 3
        assert "out" in result.output
        assert "err" in result.output

    def test_uses_cwd(self, tmp_path: Path) -> None:
        (tmp_path / "marker.txt").write_text("x", encoding="utf-8")

        result = run_captured([PY, "-c", "import os; print(os.listdir('.'))"], cwd=tmp_path)

        assert "marker.txt" in result.output

    def test_spawn_failure(self, tmp_path: Path) -> None:
        result = run_captured(["nonexistent_command_12345"], cwd=tmp_path)

        assert result.returncode is None
        assert result.spawn_error is not None
        assert not result.ok

    def test_timeout_stops_child(self, tmp_path: Path) -> None:
        result = run_captured(
            [PY, "-c", "import time; time.sleep(30)"],
            cwd=tmp_path,
            timeout=0.5,
            grace=1.0,
        )

        assert result.timed_out
        assert not result.ok
        assert result.returncode is not None
        assert result.duration < 15

    def test_cancel_stops_child(self, tmp_path: Path) -> None:
        cancel = threading.Event()
        timer = threading.Timer(0.3, cancel.set)
        timer.start()
        try:
            result = run_captured(
                [PY, "-c", "import time; time.sleep(30)"],
                cwd=tmp_path,
                grace=1.0,
                cancel=cancel,
            )
        finally:
            timer.cancel()

        assert result.cancelled
        assert not result.timed_out
        assert result.duration < 15

    @pytest.mark.skipif(sys.platform == "win32", reason="SIGTERM is not catchable on Windows")
    def test_kill_after_grace_when_term_ignored(self, tmp_path: Path) -> None:
        script = (
            "import signal, time\n"
            "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
            "print('ready', flush=True)\n"
            "time.sleep(30)\n"
        )
        result = run_captured([PY, "-c", script], cwd=tmp_path, timeout=1.0, grace=0.5)

        assert result.timed_out
        assert result.returncode is not None
        assert result.duration < 15
