"""Exit codes for CLI commands.

The numeric values are part of the command-line contract and must stay stable:
- 0: Workflow completed
- 1: User error (bad arguments, missing confirmation, pending checkpoint)
- 2: Configuration error (invalid config, broken step graph, bad version file)
- 3: Workflow aborted (a step failed, timed out or was cancelled)
- 4: Another run holds the release lock
- 5: I/O error (state directory not writable)
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Process exit codes used by every relkit command."""

    OK = 0
    USER_ERROR = 1
    CONFIG_ERROR = 2
    ABORTED = 3
    ALREADY_RUNNING = 4
    IO_ERROR = 5

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")
