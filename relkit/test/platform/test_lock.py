from __future__ import annotations

import json
import os
import socket
import sys
from pathlib import Path

import pytest

from relkit.core.result import Err, Ok
from relkit.platform.lock import RunLock


def test_acquire_and_release(tmp_path: Path) -> None:
    path = tmp_path / "state" / "run.lock"
    lock = RunLock(path)

    result = lock.acquire()

    assert isinstance(result, Ok)
    assert result.value.pid == os.getpid()
    assert lock.held
    assert path.exists()

    lock.release()

    assert not lock.held
    assert not path.exists()


def test_second_lock_is_refused(tmp_path: Path) -> None:
    path = tmp_path / "run.lock"
    first = RunLock(path)
    assert isinstance(first.acquire(), Ok)

    result = RunLock(path).acquire()

    assert isinstance(result, Err)
    assert result.error.kind == "already_running"
    assert result.error.holder is not None
    assert result.error.holder.pid == os.getpid()
    first.release()


def test_context_manager_releases(tmp_path: Path) -> None:
    path = tmp_path / "run.lock"
    with RunLock(path) as lock:
        assert isinstance(lock.acquire(), Ok)
        assert path.exists()
    assert not path.exists()


@pytest.mark.skipif(sys.platform == "win32", reason="stale locks are never reclaimed on Windows")
def test_stale_lock_is_reclaimed(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import relkit.platform.lock as lock_mod

    path = tmp_path / "run.lock"
    path.write_text(
        json.dumps({"pid": 999_999, "host": socket.gethostname(), "acquired_at": "earlier"}),
        encoding="utf-8",
    )
    monkeypatch.setattr(lock_mod, "_pid_alive", lambda pid: False)

    result = RunLock(path).acquire()

    assert isinstance(result, Ok)
    assert result.value.pid == os.getpid()


def test_lock_from_other_host_is_not_reclaimed(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import relkit.platform.lock as lock_mod

    path = tmp_path / "run.lock"
    path.write_text(
        json.dumps({"pid": 1234, "host": "some-other-host", "acquired_at": "earlier"}),
        encoding="utf-8",
    )
    monkeypatch.setattr(lock_mod, "_pid_alive", lambda pid: False)

    result = RunLock(path).acquire()

    assert isinstance(result, Err)
    assert "some-other-host" in result.error.message


def test_unreadable_lock_is_held(tmp_path: Path) -> None:
    path = tmp_path / "run.lock"
    path.write_text("garbage", encoding="utf-8")

    result = RunLock(path).acquire()

    assert isinstance(result, Err)
    assert result.error.kind == "already_running"
    assert result.error.hint is not None
    assert path.exists()


def test_release_does_not_remove_foreign_lock(tmp_path: Path) -> None:
    path = tmp_path / "run.lock"
    lock = RunLock(path)
    assert isinstance(lock.acquire(), Ok)
    path.write_text(json.dumps({"pid": 1, "host": "elsewhere", "acquired_at": "x"}), encoding="utf-8")

    lock.release()

    assert path.exists()


@pytest.mark.skipif(sys.platform == "win32", reason="stale locks are never reclaimed on Windows")
def test_lock_replaced_during_reclaim_is_kept(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import relkit.platform.lock as lock_mod
    from relkit.platform.lock import LockInfo

    path = tmp_path / "run.lock"
    live = json.dumps({"pid": os.getpid(), "host": socket.gethostname(), "acquired_at": "live"})
    path.write_text(live, encoding="utf-8")

    # The first read still sees the dead holder; by the time the lock is
    # moved aside, a live process has taken it over.
    original = lock_mod._read_holder
    calls: list[Path] = []

    def read_holder(p: Path) -> LockInfo | None:
        calls.append(p)
        if len(calls) == 1:
            return LockInfo(pid=999_999, host=socket.gethostname(), acquired_at="old")
        return original(p)

    monkeypatch.setattr(lock_mod, "_read_holder", read_holder)
    monkeypatch.setattr(lock_mod, "_pid_alive", lambda pid: pid == os.getpid())

    result = RunLock(path).acquire()

    assert isinstance(result, Err)
    assert result.error.kind == "already_running"
    assert result.error.holder is not None
    assert result.error.holder.pid == os.getpid()
    assert path.read_text(encoding="utf-8") == live
    assert list(tmp_path.glob("*.stale")) == []


@pytest.mark.skipif(sys.platform == "win32", reason="stale locks are never reclaimed on Windows")
def test_reclaim_leaves_no_side_files(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import relkit.platform.lock as lock_mod

    path = tmp_path / "run.lock"
    path.write_text(
        json.dumps({"pid": 999_999, "host": socket.gethostname(), "acquired_at": "earlier"}),
        encoding="utf-8",
    )
    monkeypatch.setattr(lock_mod, "_pid_alive", lambda pid: pid == os.getpid())

    lock = RunLock(path)
    assert isinstance(lock.acquire(), Ok)

    assert sorted(p.name for p in tmp_path.iterdir()) == ["run.lock"]
    lock.release()
