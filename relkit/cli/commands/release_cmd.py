from __future__ import annotations

from enum import Enum

import typer

from relkit.cli.commands._helpers import exit_with_code, finish_run, run_workflow
from relkit.cli.context import build_context
from relkit.core.result import Err
from relkit.output.console import Style
from relkit.output.errors import print_plan, print_release_error, release_error_exit_code
from relkit.release.model import RunOptions
from relkit.release.orchestrator import DRY_RUN_WORKFLOW


class Bump(str, Enum):
    patch = "patch"
    minor = "minor"
    major = "major"


def check(
    allow_branch: bool = typer.Option(
        False, "--allow-branch", help="Allow releasing from a branch other than the release branch."
    ),
) -> None:
    """Check if the environment is ready for release."""
    ctx = build_context()
    run_workflow(ctx, "check", RunOptions(allow_any_branch=allow_branch))


def bump(kind: Bump = typer.Argument(..., help="Version component to bump.")) -> None:
    """Bump the version file (X.Y.Z)."""
    ctx = build_context()
    run_workflow(ctx, f"bump-{kind.value}")


def build() -> None:
    """Build and validate distributions (runs lock-check first)."""
    ctx = build_context()
    run_workflow(ctx, "build")


def publish(
    test: bool = typer.Option(False, "--test", help="Upload to the test index only."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Confirm publishing."),
) -> None:
    """Publish to the package index and create the GitHub release."""
    ctx = build_context()
    run_workflow(ctx, "publish-test" if test else "publish", RunOptions(confirm=yes))


def verify() -> None:
    """Verify the current version is released."""
    ctx = build_context()
    run_workflow(ctx, "verify")


def release(
    kind: Bump = typer.Argument(..., help="Release kind."),
    allow_branch: bool = typer.Option(
        False, "--allow-branch", help="Allow releasing from a branch other than the release branch."
    ),
) -> None:
    """Prepare a release: check, bump, build."""
    ctx = build_context()
    run_workflow(ctx, kind.value, RunOptions(allow_any_branch=allow_branch))
    ctx.console.print("next: relkit publish --yes", Style.INFO)


def dry_run(
    kind: Bump = typer.Argument(Bump(DRY_RUN_WORKFLOW), help="Release kind to preview."),
) -> None:
    """Show what a release would do, without doing it."""
    ctx = build_context()
    result = ctx.orchestrator.plan(kind.value)
    if isinstance(result, Err):
        print_release_error(result.error, ctx.console)
        exit_with_code(release_error_exit_code(result.error))
    print_plan(result.value, ctx.console)


def resume(
    force: list[str] = typer.Option(
        [], "--force", help="Re-run this step even if recorded (repeatable)."
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Confirm publishing steps."),
    allow_branch: bool = typer.Option(False, "--allow-branch", help="Allow any branch."),
) -> None:
    """Continue the interrupted run from its checkpoint."""
    ctx = build_context()
    options = RunOptions(force=frozenset(force), confirm=yes, allow_any_branch=allow_branch)
    finish_run(ctx, ctx.orchestrator.resume(options))


def abandon() -> None:
    """Discard the pending checkpoint."""
    ctx = build_context()
    result = ctx.orchestrator.abandon()
    if isinstance(result, Err):
        print_release_error(result.error, ctx.console)
        exit_with_code(release_error_exit_code(result.error))
    header = result.value
    if header is None:
        ctx.console.info("no pending checkpoint")
    else:
        ctx.console.success(f"abandoned '{header.workflow}' run {header.run_id}")


def status() -> None:
    """Show the current version and any pending checkpoint."""
    ctx = build_context()
    report = ctx.orchestrator.status()
    console = ctx.console

    if report.version is not None:
        console.print(f"version: {report.version}")
    elif report.version_error is not None:
        console.warning(report.version_error.message)

    if report.lock_holder is not None:
        console.warning(f"run in progress: {report.lock_holder.describe()}")

    if report.checkpoint_error is not None:
        console.error(report.checkpoint_error.message)
        return
    pending = report.pending
    if pending is None:
        console.print("no pending checkpoint", Style.DIM)
        return

    console.header(f"pending: {pending.header.workflow} (started {pending.header.started_at})")
    for sid in pending.header.plan:
        latest = pending.latest(sid)
        if latest is None:
            console.print(f"  {sid}: pending", Style.DIM)
        elif latest.status == "started":
            console.print(f"  {sid}: interrupted (started, no result recorded)", Style.WARNING)
        elif latest.ok:
            console.print(f"  {sid}: {latest.status}", Style.SUCCESS)
        else:
            console.print(f"  {sid}: failed ({latest.reason})", Style.ERROR)
