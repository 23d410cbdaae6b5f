"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn

import typer

from relkit.core.errors import ErrorCode
from relkit.core.result import Err, Result
from relkit.output.console import Style
from relkit.output.errors import (
    outcome_exit_code,
    print_outcome,
    print_release_error,
    release_error_exit_code,
)
from relkit.release.model import RunOptions, RunOutcome, StepResult

if TYPE_CHECKING:
    from relkit.cli.context import CLIContext
    from relkit.release.errors import ReleaseError


def exit_with_code(code: int) -> NoReturn:
    raise typer.Exit(code=code)


def run_workflow(ctx: CLIContext, workflow: str, options: RunOptions | None = None) -> None:
    """Run a named workflow, report it, and exit non-zero unless it completed."""
    finish_run(ctx, ctx.orchestrator.run(workflow, options))


def finish_run(ctx: CLIContext, result: Result[RunOutcome, ReleaseError]) -> None:
    if isinstance(result, Err):
        print_release_error(result.error, ctx.console)
        exit_with_code(release_error_exit_code(result.error))

    outcome = result.value
    print_outcome(outcome, ctx.console)
    code = outcome_exit_code(outcome)
    if code != int(ErrorCode.OK):
        exit_with_code(code)


def report_step(ctx: CLIContext, label: str, result: StepResult) -> None:
    """Print a one-off command result; exit ABORTED on failure."""
    if result.ok:
        if result.output.strip():
            ctx.console.print(result.output.rstrip(), Style.DIM)
        ctx.console.success(label)
        return

    ctx.console.error(f"{label}: {result.reason or 'failed'}")
    tail = result.tail()
    if tail:
        ctx.console.print(tail, Style.DIM)
    exit_with_code(int(ErrorCode.ABORTED))
