"""Public entry point: named workflows in, structured outcomes out.

This is the only module that knows workflow names. It owns the run lock and
the checkpoint lifecycle; everything else is delegated to the step graph and
the engine.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from relkit.core.config import Config
from relkit.core.result import Err, Ok, Result
from relkit.output.console import ConsoleProtocol
from relkit.platform.lock import LockInfo, RunLock
from relkit.release.checkpoint import Checkpoint, CheckpointError, CheckpointHeader, CheckpointState
from relkit.release.context import WorkflowContext
from relkit.release.engine import WorkflowEngine
from relkit.release.errors import ReleaseError
from relkit.release.graph import StepGraph
from relkit.release.model import ReleasePlan, RunOptions, RunOutcome
from relkit.release.runner import CommandRunner, SubprocessRunner
from relkit.release.steps import bump_step_id, default_graph, release_goal_id
from relkit.release.version import BUMP_KINDS, Version, VersionError, VersionStore

__all__ = ["ReleaseOrchestrator", "StatusReport", "WORKFLOWS", "DRY_RUN_WORKFLOW"]

logger = logging.getLogger(__name__)

WORKFLOWS: dict[str, str] = {
    "check": "check",
    "lock-check": "lock-check",
    **{bump_step_id(kind): bump_step_id(kind) for kind in BUMP_KINDS},
    "build": "build",
    "publish": "publish-release",
    "publish-test": "publish-test",
    "verify": "verify",
    **{kind: release_goal_id(kind) for kind in BUMP_KINDS},
}

# `dry-run` with no kind previews a patch release.
DRY_RUN_WORKFLOW = "patch"


@dataclass(frozen=True, slots=True)
class StatusReport:
    version: Version | None
    version_error: VersionError | None
    pending: CheckpointState | None
    checkpoint_error: CheckpointError | None
    lock_holder: LockInfo | None


def _checkpoint_error(error: CheckpointError) -> ReleaseError:
    return ReleaseError(kind=error.kind, message=error.message, hint=error.hint)


class ReleaseOrchestrator:
    def __init__(
        self,
        *,
        config: Config,
        console: ConsoleProtocol,
        runner: CommandRunner | None = None,
        graph: StepGraph | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        self._config = config
        self._console = console
        self._cancel = cancel or threading.Event()
        self._runner = runner or SubprocessRunner(
            cwd=config.root,
            grace=config.timeouts.grace,
            default_timeout=config.timeouts.default,
            cancel=self._cancel,
        )
        self._graph = graph or default_graph()
        self._versions = VersionStore(config.version_path)
        self._checkpoint = Checkpoint(config.checkpoint_path)
        self._lock = RunLock(config.lock_path)

    @property
    def checkpoint(self) -> Checkpoint:
        return self._checkpoint

    @property
    def lock(self) -> RunLock:
        return self._lock

    # -------------------------------------------------------------------------
    # Planning
    # -------------------------------------------------------------------------

    def plan(self, workflow: str) -> Result[ReleasePlan, ReleaseError]:
        """Resolve a workflow to its ordered steps. No side effects."""
        goal = WORKFLOWS.get(workflow)
        if goal is None:
            return Err(
                ReleaseError(
                    kind="unknown_workflow",
                    message=f"unknown workflow: {workflow}",
                    hint=f"available: {', '.join(WORKFLOWS)}",
                )
            )

        built = self._graph.build(goal)
        if isinstance(built, Err):
            return Err(ReleaseError(kind=built.error.kind, message=built.error.message))
        steps = built.value

        read = self._versions.read()
        current = read.value if isinstance(read, Ok) else None
        next_version = current
        if current is not None:
            for kind in BUMP_KINDS:
                if any(s.id == bump_step_id(kind) for s in steps):
                    next_version = current.bump(kind)

        return Ok(
            ReleasePlan(
                workflow=workflow,
                goal=goal,
                steps=steps,
                current_version=current,
                next_version=next_version,
            )
        )

    # -------------------------------------------------------------------------
    # Running
    # -------------------------------------------------------------------------

    def run(self, workflow: str, options: RunOptions | None = None) -> Result[RunOutcome, ReleaseError]:
        """Run a workflow, resuming its pending checkpoint if there is one."""
        planned = self.plan(workflow)
        if isinstance(planned, Err):
            return planned
        return self._locked_run(planned.value, options or RunOptions())

    def resume(self, options: RunOptions | None = None) -> Result[RunOutcome, ReleaseError]:
        """Continue the run recorded in the pending checkpoint."""
        loaded = self._checkpoint.load()
        if isinstance(loaded, Err):
            return Err(_checkpoint_error(loaded.error))
        if loaded.value is None:
            return Err(
                ReleaseError(
                    kind="no_checkpoint",
                    message="nothing to resume: no pending checkpoint",
                    hint=f"expected {self._checkpoint.path}",
                )
            )

        planned = self.plan(loaded.value.header.workflow)
        if isinstance(planned, Err):
            return planned
        return self._locked_run(planned.value, options or RunOptions(), require_pending=True)

    def abandon(self) -> Result[CheckpointHeader | None, ReleaseError]:
        """Discard the pending checkpoint. Returns the header that was dropped."""
        acquired = self._acquire()
        if isinstance(acquired, Err):
            return acquired
        try:
            loaded = self._checkpoint.load()
            header = loaded.value.header if isinstance(loaded, Ok) and loaded.value else None
            cleared = self._checkpoint.clear()
            if isinstance(cleared, Err):
                return Err(_checkpoint_error(cleared.error))
            if header is not None:
                logger.info("abandoned checkpoint of %s", header.workflow, extra={"workflow": header.workflow})
            return Ok(header)
        finally:
            self._lock.release()

    def status(self) -> StatusReport:
        read = self._versions.read()
        loaded = self._checkpoint.load()
        return StatusReport(
            version=read.value if isinstance(read, Ok) else None,
            version_error=read.error if isinstance(read, Err) else None,
            pending=loaded.value if isinstance(loaded, Ok) else None,
            checkpoint_error=loaded.error if isinstance(loaded, Err) else None,
            lock_holder=self._lock.holder() if self._lock.path.exists() else None,
        )

    def _acquire(self) -> Result[LockInfo, ReleaseError]:
        acquired = self._lock.acquire()
        if isinstance(acquired, Err):
            return Err(
                ReleaseError(
                    kind=acquired.error.kind,
                    message=acquired.error.message,
                    hint=acquired.error.hint,
                )
            )
        return acquired

    def _locked_run(
        self,
        plan: ReleasePlan,
        options: RunOptions,
        *,
        require_pending: bool = False,
    ) -> Result[RunOutcome, ReleaseError]:
        acquired = self._acquire()
        if isinstance(acquired, Err):
            return acquired
        try:
            return self._run_plan(plan, options, require_pending=require_pending)
        finally:
            self._lock.release()

    def _run_plan(
        self,
        plan: ReleasePlan,
        options: RunOptions,
        *,
        require_pending: bool,
    ) -> Result[RunOutcome, ReleaseError]:
        loaded = self._checkpoint.load()
        if isinstance(loaded, Err):
            return Err(_checkpoint_error(loaded.error))
        prior = loaded.value

        if prior is None and require_pending:
            return Err(ReleaseError(kind="no_checkpoint", message="nothing to resume: no pending checkpoint"))

        if prior is not None:
            if prior.header.workflow != plan.workflow:
                return Err(
                    ReleaseError(
                        kind="checkpoint_pending",
                        message=f"an interrupted '{prior.header.workflow}' run is pending",
                        hint="run `relkit resume` to finish it or `relkit abandon` to discard it",
                    )
                )
            if prior.header.plan != plan.step_ids:
                return Err(
                    ReleaseError(
                        kind="plan_mismatch",
                        message="the pending checkpoint was recorded for a different step plan",
                        hint="run `relkit abandon` and start the workflow again",
                    )
                )

        done = set(prior.succeeded()) if prior is not None else set()
        unconfirmed = [s.id for s in plan.steps if s.confirm and s.id not in done]
        if unconfirmed and not options.confirm:
            return Err(
                ReleaseError(
                    kind="confirmation_required",
                    message=f"{', '.join(unconfirmed)} will publish {plan.next_version or 'the current version'}",
                    hint="re-run with --yes to confirm",
                )
            )

        if prior is None:
            started = self._checkpoint.start(
                CheckpointHeader.new(workflow=plan.workflow, goal=plan.goal, plan=plan.step_ids)
            )
            if isinstance(started, Err):
                return Err(_checkpoint_error(started.error))
        else:
            self._console.info(
                f"resuming '{plan.workflow}' from checkpoint ({len(prior.succeeded())} step(s) done)"
            )

        read = self._versions.read()
        context = WorkflowContext(
            config=self._config,
            runner=self._runner,
            versions=self._versions,
            checkpoint=self._checkpoint,
            console=self._console,
            workflow=plan.workflow,
            environment=self._config.environment,
            options=options,
            version=read.value if isinstance(read, Ok) else None,
            prior=prior,
            cancel=self._cancel,
        )
        return Ok(WorkflowEngine().execute(plan.steps, context))
