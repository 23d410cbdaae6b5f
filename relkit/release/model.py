from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from relkit.release.version import Version

if TYPE_CHECKING:
    from relkit.release.context import WorkflowContext


StepStatus = Literal["success", "failure", "skipped", "started"]
FailureKind = Literal[
    "timeout",
    "non_zero_exit",
    "cancelled",
    "spawn_failed",
    "precondition",
    "needs_force",
    "error",
]


@dataclass(frozen=True, slots=True)
class StepResult:
    """Outcome of one step (or one command inside a step)."""

    status: StepStatus
    exit_code: int | None = None
    output: str = ""
    reason: str | None = None
    failure: FailureKind | None = None
    artifacts: tuple[str, ...] = ()

    @classmethod
    def success(
        cls,
        *,
        output: str = "",
        exit_code: int | None = 0,
        artifacts: tuple[str, ...] = (),
    ) -> StepResult:
        return cls(status="success", exit_code=exit_code, output=output, artifacts=artifacts)

    @classmethod
    def failed(
        cls,
        failure: FailureKind,
        reason: str,
        *,
        output: str = "",
        exit_code: int | None = None,
    ) -> StepResult:
        return cls(
            status="failure",
            exit_code=exit_code,
            output=output,
            reason=reason,
            failure=failure,
        )

    @classmethod
    def skipped(cls, reason: str) -> StepResult:
        return cls(status="skipped", reason=reason)

    @classmethod
    def started(cls) -> StepResult:
        """Marker recorded before a step that must not run twice."""
        return cls(status="started", exit_code=None)

    @property
    def ok(self) -> bool:
        return self.status in ("success", "skipped")

    def tail(self, lines: int = 20) -> str:
        """Last `lines` lines of captured output."""
        return "\n".join(self.output.rstrip().splitlines()[-lines:])


StepAction = Callable[["WorkflowContext"], StepResult]


@dataclass(frozen=True, slots=True)
class Step:
    """One unit of release work.

    A step without an action is a phony goal: it only pulls in its `needs`.
    `confirm` steps publish somewhere and must be explicitly confirmed by the
    caller before a run that includes them can start.
    """

    id: str
    needs: tuple[str, ...] = ()
    action: StepAction | None = None
    idempotent: bool = True
    side_effects: bool = False
    confirm: bool = False
    description: str = ""

    @property
    def phony(self) -> bool:
        return self.action is None


@dataclass(frozen=True, slots=True)
class RunOptions:
    """Caller decisions that replace interactive prompts."""

    force: frozenset[str] = frozenset()
    confirm: bool = False
    allow_any_branch: bool = False


@dataclass(frozen=True, slots=True)
class Completed:
    version: Version | None
    artifacts: tuple[str, ...]
    executed: tuple[str, ...]
    skipped: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class Aborted:
    step_id: str
    reason: str
    failure: FailureKind
    result: StepResult
    checkpoint_path: Path
    succeeded: tuple[str, ...]


RunOutcome = Completed | Aborted


@dataclass(frozen=True, slots=True)
class ReleasePlan:
    workflow: str
    goal: str
    steps: tuple[Step, ...]
    current_version: Version | None
    next_version: Version | None

    @property
    def step_ids(self) -> tuple[str, ...]:
        return tuple(s.id for s in self.steps)
