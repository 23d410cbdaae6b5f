"""Poetry lock file management.

Thin wrappers: every operation is one or two poetry invocations through the
CommandRunner. The `lock-check` release step reuses `DependencyService.check`.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import TYPE_CHECKING

from relkit.release.model import StepResult

if TYPE_CHECKING:
    from relkit.core.config import Config
    from relkit.release.runner import CommandRunner

POETRY_HINT = "Poetry not found. Install: pip install poetry"
LOCK_FILE = "poetry.lock"
_TREE_LINES = 20


def run_sequence(
    runner: CommandRunner,
    calls: list[tuple[str, list[str]]],
    *,
    timeout: float | None,
) -> StepResult:
    """Run commands in order, stopping at the first failure.

    The returned result carries a transcript of every command that ran.
    """
    transcript: list[str] = []
    for command, args in calls:
        result = runner.run(command, args, timeout=timeout)
        transcript.append(f"$ {' '.join([command, *args])}")
        if result.output.strip():
            transcript.append(result.output.rstrip())
        if result.status == "failure":
            return replace(result, output="\n".join(transcript))
    return StepResult.success(output="\n".join(transcript))


class DependencyService:
    def __init__(self, *, config: Config, runner: CommandRunner) -> None:
        self._config = config
        self._runner = runner

    @property
    def _poetry(self) -> str:
        return self._config.tools.poetry

    def _run(self, *calls: list[str]) -> StepResult:
        result = run_sequence(
            self._runner,
            [(self._poetry, args) for args in calls],
            timeout=self._config.timeouts.default,
        )
        if result.failure == "spawn_failed":
            return replace(result, reason=POETRY_HINT)
        return result

    def lock(self) -> StepResult:
        """Lock dependencies without upgrading them."""
        return self._run(["lock", "--no-update"])

    def update(self) -> StepResult:
        """Update all dependencies to the latest compatible versions."""
        return self._run(["update"])

    def check(self) -> StepResult:
        """Fail when poetry.lock is out of date with pyproject.toml."""
        return self._run(["check"], ["lock", "--check"])

    def install(self, *, prod: bool = False, sync: bool = False) -> StepResult:
        args = ["install"]
        if prod:
            args += ["--only", "main"]
        if sync:
            args.append("--sync")
        return self._run(args)

    def export(self) -> StepResult:
        """Write requirements.txt and requirements-dev.txt from the lock file."""
        base = ["export", "-f", "requirements.txt", "--without-hashes"]
        result = self._run(
            [*base, "--output", "requirements.txt"],
            [*base, "--with", "dev", "--output", "requirements-dev.txt"],
        )
        if result.ok:
            return replace(result, artifacts=("requirements.txt", "requirements-dev.txt"))
        return result

    def info(self) -> StepResult:
        lock_path = self._config.root / LOCK_FILE
        try:
            stat = lock_path.stat()
        except FileNotFoundError:
            return StepResult.failed(
                "precondition",
                f"{LOCK_FILE} not found",
                output="run `relkit deps lock` to create it",
            )

        modified = datetime.fromtimestamp(stat.st_mtime).strftime("%Y-%m-%d %H:%M:%S")
        lines = [
            f"{LOCK_FILE} exists",
            f"modified: {modified}",
            f"size: {stat.st_size} bytes",
        ]
        tree = self._run(["show", "--tree", "--only", "main"])
        if tree.ok:
            # Drop the "$ poetry show ..." transcript line.
            body = tree.output.splitlines()[1:]
            lines.append("direct dependencies:")
            lines.extend(body[:_TREE_LINES])
        return StepResult.success(output="\n".join(lines))
