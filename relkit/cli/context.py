from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import typer

from relkit.core.config import Config, load_config
from relkit.core.errors import ErrorCode
from relkit.core.result import Err
from relkit.output.console import ConsoleProtocol, RichConsole
from relkit.output.log import setup_logging
from relkit.release.orchestrator import ReleaseOrchestrator

ROOT_ENV = "RELKIT_ROOT"
CONFIG_ENV = "RELKIT_CONFIG"
VERBOSE_ENV = "RELKIT_VERBOSE"


@dataclass(frozen=True, slots=True)
class CLIContext:
    config: Config
    console: ConsoleProtocol
    orchestrator: ReleaseOrchestrator


def _project_root() -> Path:
    env = os.environ.get(ROOT_ENV)
    if env:
        return Path(env).expanduser().resolve()
    return Path.cwd().resolve()


def build_context() -> CLIContext:
    root = _project_root()
    config_env = os.environ.get(CONFIG_ENV)
    config_path = Path(config_env).expanduser().resolve() if config_env else None

    config_result = load_config(root, config_path)
    if isinstance(config_result, Err):
        typer.echo(f"error: {config_result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.CONFIG_ERROR))
    config = config_result.value

    setup_logging(verbose=os.environ.get(VERBOSE_ENV) == "1", log_file=config.log_path)

    console = RichConsole()
    return CLIContext(
        config=config,
        console=console,
        orchestrator=ReleaseOrchestrator(config=config, console=console),
    )
