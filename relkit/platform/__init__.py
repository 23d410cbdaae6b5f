"""Operating-system seams: files, processes, locks."""

from .files import append_line, atomic_write_text, truncate_file
from .lock import LockError, LockInfo, RunLock
from .process import ProcessResult, run_captured, stop_process

__all__ = [
    "append_line",
    "atomic_write_text",
    "truncate_file",
    "LockError",
    "LockInfo",
    "RunLock",
    "ProcessResult",
    "run_captured",
    "stop_process",
]
