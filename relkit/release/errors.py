from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

ReleaseErrorKind = Literal[
    "unknown_workflow",
    "cycle_detected",
    "unknown_step",
    "duplicate_step",
    "already_running",
    "io_error",
    "malformed",
    "checkpoint_pending",
    "no_checkpoint",
    "plan_mismatch",
    "confirmation_required",
]


@dataclass(frozen=True, slots=True)
class ReleaseError:
    """A workflow that could not be started (as opposed to one that aborted)."""

    kind: ReleaseErrorKind
    message: str
    hint: str | None = None
