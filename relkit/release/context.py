from __future__ import annotations

import threading
from dataclasses import dataclass, field

from relkit.core.config import Config
from relkit.output.console import ConsoleProtocol
from relkit.release.checkpoint import Checkpoint, CheckpointState
from relkit.release.model import RunOptions
from relkit.release.runner import CommandRunner
from relkit.release.version import Version, VersionStore


def _no_artifacts() -> list[str]:
    return []


@dataclass
class WorkflowContext:
    """Mutable state of one workflow run. Never shared between runs.

    `prior` is the checkpoint the run resumes from (None for a fresh run).
    `artifacts` are paths relative to the project root.
    """

    config: Config
    runner: CommandRunner
    versions: VersionStore
    checkpoint: Checkpoint
    console: ConsoleProtocol
    workflow: str = ""
    environment: str = "development"
    options: RunOptions = field(default_factory=RunOptions)
    version: Version | None = None
    artifacts: list[str] = field(default_factory=_no_artifacts)
    prior: CheckpointState | None = None
    cancel: threading.Event = field(default_factory=threading.Event)

    def add_artifacts(self, paths: tuple[str, ...]) -> None:
        for p in paths:
            if p not in self.artifacts:
                self.artifacts.append(p)
