"""Exclusive, host-visible run lock.

The lock is a file created with O_CREAT | O_EXCL, so exactly one process can
hold it. It records who holds it; a lock left behind by a process that no
longer exists on this host is stale and gets reclaimed.
"""

from __future__ import annotations

import json
import os
import socket
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Literal
from uuid import uuid4

from relkit.core.result import Err, Ok, Result
from relkit.core.structured import as_str_dict, get_int, get_str

__all__ = ["LockError", "LockInfo", "RunLock"]


@dataclass(frozen=True, slots=True)
class LockInfo:
    pid: int
    host: str
    acquired_at: str

    def describe(self) -> str:
        return f"pid {self.pid} on {self.host} since {self.acquired_at}"


@dataclass(frozen=True, slots=True)
class LockError:
    kind: Literal["already_running", "io_error"]
    message: str
    hint: str | None = None
    holder: LockInfo | None = None


def _pid_alive(pid: int) -> bool:
    if pid <= 0:
        return False
    if os.name == "nt":
        # No cheap liveness probe; never reclaim.
        return True
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def _read_holder(path: Path) -> LockInfo | None:
    try:
        obj: object = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    data = as_str_dict(obj)
    if data is None:
        return None
    pid = get_int(data, "pid")
    host = get_str(data, "host")
    if pid is None or host is None:
        return None
    return LockInfo(pid=pid, host=host, acquired_at=get_str(data, "acquired_at") or "?")


class RunLock:
    """Lifecycle wrapper for the release lock file."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._info: LockInfo | None = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def held(self) -> bool:
        return self._info is not None

    def holder(self) -> LockInfo | None:
        """Return the recorded holder, if a lock file exists and is readable."""
        return _read_holder(self._path)

    def acquire(self) -> Result[LockInfo, LockError]:
        if self._info is not None:
            return Ok(self._info)

        info = LockInfo(
            pid=os.getpid(),
            host=socket.gethostname(),
            acquired_at=datetime.now(UTC).isoformat(timespec="seconds"),
        )
        payload = json.dumps({"pid": info.pid, "host": info.host, "acquired_at": info.acquired_at})

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return Err(LockError(kind="io_error", message=f"cannot create state dir: {e}"))

        for _ in range(2):
            try:
                fd = os.open(self._path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
            except FileExistsError:
                holder = _read_holder(self._path)
                if holder is not None and self._is_stale(holder) and self._reclaim(holder):
                    continue
                return Err(self._held_error(_read_holder(self._path) or holder))
            except OSError as e:
                return Err(LockError(kind="io_error", message=f"cannot create lock file: {e}"))

            try:
                os.write(fd, payload.encode("utf-8"))
                os.fsync(fd)
            finally:
                os.close(fd)
            self._info = info
            return Ok(info)

        return Err(self._held_error(_read_holder(self._path)))

    def release(self) -> None:
        if self._info is None:
            return
        holder = _read_holder(self._path)
        if holder is None or (holder.pid, holder.host) == (self._info.pid, self._info.host):
            self._path.unlink(missing_ok=True)
        self._info = None

    def __enter__(self) -> RunLock:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: object | None,
    ) -> None:
        self.release()

    @staticmethod
    def _is_stale(holder: LockInfo) -> bool:
        return holder.host == socket.gethostname() and not _pid_alive(holder.pid)

    def _reclaim(self, stale: LockInfo) -> bool:
        """Move a stale lock aside; False if it turned out to belong to someone else.

        The file is renamed to a private name first and only removed once its
        content still matches `stale`, so a lock taken over by another process
        in the meantime is put back instead of deleted.
        """
        aside = self._path.with_name(f"{self._path.name}.{uuid4().hex}.stale")
        try:
            os.rename(self._path, aside)
        except FileNotFoundError:
            return True
        except OSError:
            return False

        if _read_holder(aside) == stale:
            aside.unlink(missing_ok=True)
            return True

        try:
            os.link(aside, self._path)
        except FileExistsError:
            # A newer lock already took the slot.
            pass
        except OSError:
            os.replace(aside, self._path)
            return False
        aside.unlink(missing_ok=True)
        return False

    def _held_error(self, holder: LockInfo | None) -> LockError:
        if holder is None:
            return LockError(
                kind="already_running",
                message="another release run holds the lock",
                hint=f"if no run is active, remove {self._path}",
            )
        return LockError(
            kind="already_running",
            message=f"another release run holds the lock ({holder.describe()})",
            hint=f"wait for it to finish; if it is gone, remove {self._path}",
            holder=holder,
        )
