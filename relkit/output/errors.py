"""Outcome and error presentation.

Centralized formatting and exit code mapping so every command reports a
failed release the same way: failing step, output tail, checkpoint, next move.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from relkit.core.errors import ErrorCode
from relkit.output.console import Style
from relkit.release.model import Aborted, Completed, ReleasePlan, RunOutcome

if TYPE_CHECKING:
    from relkit.output.console import ConsoleProtocol
    from relkit.release.errors import ReleaseError

__all__ = [
    "print_release_error",
    "release_error_exit_code",
    "print_outcome",
    "outcome_exit_code",
    "print_plan",
]

_TAIL_LINES = 20


def print_release_error(error: ReleaseError, console: ConsoleProtocol) -> None:
    console.error(error.message)
    if error.hint:
        console.print(f"hint: {error.hint}", Style.DIM)


def release_error_exit_code(error: ReleaseError) -> int:
    match error.kind:
        case "already_running":
            return int(ErrorCode.ALREADY_RUNNING)
        case "cycle_detected" | "unknown_step" | "duplicate_step" | "malformed":
            return int(ErrorCode.CONFIG_ERROR)
        case "io_error":
            return int(ErrorCode.IO_ERROR)
        case (
            "unknown_workflow"
            | "checkpoint_pending"
            | "no_checkpoint"
            | "plan_mismatch"
            | "confirmation_required"
        ):
            return int(ErrorCode.USER_ERROR)
    return int(ErrorCode.USER_ERROR)


def print_outcome(outcome: RunOutcome, console: ConsoleProtocol) -> None:
    match outcome:
        case Completed(version=version, artifacts=artifacts, executed=executed, skipped=skipped):
            console.success(f"completed ({len(executed)} run, {len(skipped)} resumed)")
            if version is not None:
                console.print(f"version: {version}", Style.DIM)
            for artifact in artifacts:
                console.print(f"artifact: {artifact}", Style.DIM)
        case Aborted(step_id=step_id, reason=reason, result=result, checkpoint_path=path, succeeded=done):
            console.error(f"step '{step_id}' failed: {reason}")
            if result.exit_code is not None:
                console.print(f"exit code: {result.exit_code}", Style.DIM)
            tail = result.tail(_TAIL_LINES)
            if tail:
                console.header("output (tail)")
                console.print(tail)
            console.header("checkpoint")
            console.print(f"file: {path}", Style.DIM)
            console.print(f"done: {', '.join(done) if done else '(nothing)'}", Style.DIM)
            console.print(f"failed: {step_id}", Style.DIM)
            if result.failure == "needs_force":
                console.print(f"hint: relkit resume --force {step_id}", Style.DIM)
            else:
                console.print("hint: fix the cause, then run `relkit resume` (or `relkit abandon`)", Style.DIM)


def outcome_exit_code(outcome: RunOutcome) -> int:
    if isinstance(outcome, Completed):
        return int(ErrorCode.OK)
    return int(ErrorCode.ABORTED)


def print_plan(plan: ReleasePlan, console: ConsoleProtocol) -> None:
    console.header(f"DRY RUN: {plan.workflow} ({plan.goal})")
    console.print("This would:")
    for idx, step in enumerate((s for s in plan.steps if not s.phony), start=1):
        flags: list[str] = []
        if step.side_effects:
            flags.append("side effects")
        if not step.idempotent:
            flags.append("not repeatable")
        if step.confirm:
            flags.append("needs --yes")
        suffix = f"  [{', '.join(flags)}]" if flags else ""
        console.print(f"  {idx}. {step.id}: {step.description}{suffix}")
    console.newline()
    current = str(plan.current_version) if plan.current_version else "unknown"
    console.print(f"current version: {current}", Style.INFO)
    if plan.next_version is not None and plan.next_version != plan.current_version:
        console.print(f"next version would be: {plan.next_version}", Style.INFO)
