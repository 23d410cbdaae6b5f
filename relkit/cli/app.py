from __future__ import annotations

import os
from pathlib import Path

import typer

from relkit import __version__
from relkit.cli.commands.deps_cmd import deps_app
from relkit.cli.commands.release_cmd import (
    abandon,
    build,
    bump,
    check,
    dry_run,
    publish,
    release,
    resume,
    status,
    verify,
)
from relkit.cli.context import CONFIG_ENV, ROOT_ENV, VERBOSE_ENV
from relkit.core.errors import ErrorCode


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# Commands
app.command()(check)
app.command()(bump)
app.command()(build)
app.command()(publish)
app.command()(verify)
app.command()(release)
app.command("dry-run")(dry_run)
app.command()(resume)
app.command()(abandon)
app.command()(status)

# Sub-apps
app.add_typer(deps_app, name="deps")


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
    root: Path | None = typer.Option(
        None,
        "--root",
        help="Project root (default: current directory).",
    ),
    config: Path | None = typer.Option(
        None,
        "--config",
        help="Config file (default: relkit.toml or [tool.relkit] in pyproject.toml).",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs."),
) -> None:
    if version:
        typer.echo(__version__)
        raise typer.Exit(code=0)

    if root is not None:
        resolved = root.expanduser().resolve()
        if not resolved.is_dir():
            typer.echo(f"error: --root '{resolved}' is not a directory", err=True)
            raise typer.Exit(code=int(ErrorCode.USER_ERROR))
        os.environ[ROOT_ENV] = str(resolved)

    if config is not None:
        os.environ[CONFIG_ENV] = str(config.expanduser().resolve())

    if verbose:
        os.environ[VERBOSE_ENV] = "1"


def main() -> None:
    app()
