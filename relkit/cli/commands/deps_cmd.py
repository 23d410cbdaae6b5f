from __future__ import annotations

import typer

from relkit.cli.commands._helpers import report_step
from relkit.cli.context import CLIContext, build_context
from relkit.release.deps import DependencyService
from relkit.release.runner import SubprocessRunner

deps_app = typer.Typer(add_completion=False, no_args_is_help=True, help="Manage poetry.lock.")


def _service(ctx: CLIContext) -> DependencyService:
    cfg = ctx.config
    runner = SubprocessRunner(cwd=cfg.root, grace=cfg.timeouts.grace, default_timeout=cfg.timeouts.default)
    return DependencyService(config=cfg, runner=runner)


@deps_app.command()
def lock() -> None:
    """Lock dependencies without updating them."""
    ctx = build_context()
    report_step(ctx, "dependencies locked in poetry.lock", _service(ctx).lock())


@deps_app.command()
def update() -> None:
    """Update all dependencies to the latest compatible versions."""
    ctx = build_context()
    report_step(ctx, "dependencies updated (review: git diff poetry.lock)", _service(ctx).update())


@deps_app.command()
def check() -> None:
    """Check that poetry.lock is up to date with pyproject.toml."""
    ctx = build_context()
    report_step(ctx, "lock file is up to date", _service(ctx).check())


@deps_app.command()
def install(
    prod: bool = typer.Option(False, "--prod", help="Main dependencies only (no dev)."),
    sync: bool = typer.Option(False, "--sync", help="Remove packages not in the lock file."),
) -> None:
    """Install dependencies from the lock file."""
    ctx = build_context()
    report_step(ctx, "dependencies installed", _service(ctx).install(prod=prod, sync=sync))


@deps_app.command()
def export() -> None:
    """Export requirements.txt and requirements-dev.txt."""
    ctx = build_context()
    report_step(ctx, "exported requirements.txt and requirements-dev.txt", _service(ctx).export())


@deps_app.command()
def info() -> None:
    """Show lock file information."""
    ctx = build_context()
    report_step(ctx, "lock file info", _service(ctx).info())
