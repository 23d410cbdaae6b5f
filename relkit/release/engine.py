"""Sequential, checkpointed execution of a step plan.

The engine runs steps strictly one after another and stops at the first
failure. It never retries: a failed run leaves a checkpoint behind and the
operator decides whether to `resume` it. On resume, steps recorded as
succeeded are skipped unless explicitly forced, and a step that is not safe
to repeat (e.g. an upload) is never re-run without `force`. Such a step gets
a `started` record before it runs, so a process killed mid-step is treated
like a failure of that step.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from enum import Enum

from relkit.core.result import Err
from relkit.release.context import WorkflowContext
from relkit.release.model import Aborted, Completed, RunOutcome, Step, StepResult

__all__ = ["RunState", "WorkflowEngine"]

logger = logging.getLogger(__name__)


class RunState(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


class WorkflowEngine:
    """Executes one run. Create a new engine per run."""

    def __init__(self) -> None:
        self._state = RunState.PENDING

    @property
    def state(self) -> RunState:
        return self._state

    def execute(self, steps: Sequence[Step], context: WorkflowContext) -> RunOutcome:
        if self._state is not RunState.PENDING:
            raise RuntimeError(f"engine already used (state: {self._state.value})")
        self._state = RunState.RUNNING

        executed: list[str] = []
        skipped: list[str] = []
        prior = context.prior
        extra = {"workflow": context.workflow}
        logger.info("run %s started (%d steps)", context.workflow, len(steps), extra=extra)

        for step in steps:
            if context.cancel.is_set():
                return self._abort(
                    context,
                    step,
                    StepResult.failed("cancelled", "run cancelled before this step started"),
                    executed,
                )

            recorded = prior.latest(step.id) if prior is not None else None
            forced = step.id in context.options.force

            if recorded is not None and recorded.status == "success" and not forced:
                logger.info("%s: already succeeded, skipping", step.id, extra={"step": step.id})
                context.add_artifacts(recorded.artifacts)
                context.console.print(f"- {step.id}: done in a previous attempt")
                skipped.append(step.id)
                continue

            if (
                recorded is not None
                and recorded.status in ("failure", "started")
                and not step.idempotent
                and not forced
            ):
                what = "failed" if recorded.status == "failure" else "was interrupted"
                result = StepResult.failed(
                    "needs_force",
                    f"'{step.id}' {what} in a previous attempt and may have partly applied; "
                    f"repeat it only with --force {step.id}",
                )
                return self._abort(context, step, result, executed)

            if not step.idempotent and step.action is not None:
                # Recorded before running so a kill mid-step is visible on resume.
                marked = context.checkpoint.append(step.id, StepResult.started())
                if isinstance(marked, Err):
                    logger.error("%s: %s", step.id, marked.error.message, extra={"step": step.id})
                    failure = StepResult.failed(
                        "error",
                        f"step not started, the checkpoint cannot be written: {marked.error.message}",
                    )
                    return self._aborted(context, step, failure, executed)

            result = self._run_step(step, context)

            appended = context.checkpoint.append(step.id, result)
            if isinstance(appended, Err):
                logger.error("%s: %s", step.id, appended.error.message, extra={"step": step.id})
                failure = StepResult.failed(
                    "error",
                    f"step finished but its result could not be recorded: {appended.error.message}",
                    output=result.output,
                    exit_code=result.exit_code,
                )
                return self._aborted(context, step, failure, executed)

            if result.status == "failure":
                return self._aborted(context, step, result, executed)

            context.add_artifacts(result.artifacts)
            executed.append(step.id)

        cleared = context.checkpoint.clear()
        if isinstance(cleared, Err):
            logger.warning("%s", cleared.error.message)

        self._state = RunState.COMPLETED
        logger.info("run %s completed", context.workflow, extra=extra)
        return Completed(
            version=context.version,
            artifacts=tuple(context.artifacts),
            executed=tuple(executed),
            skipped=tuple(skipped),
        )

    def _run_step(self, step: Step, context: WorkflowContext) -> StepResult:
        if step.action is None:
            return StepResult.success(exit_code=None)

        context.console.print(f"> {step.id}")
        logger.info("%s: started", step.id, extra={"step": step.id})
        try:
            result = step.action(context)
        except KeyboardInterrupt:
            context.cancel.set()
            result = StepResult.failed("cancelled", "interrupted by operator")
        except Exception as e:
            # A crashing step must still leave a checkpoint behind.
            logger.exception("%s: step raised", step.id, extra={"step": step.id})
            result = StepResult.failed("error", f"{type(e).__name__}: {e}")

        logger.info(
            "%s: %s",
            step.id,
            result.status if result.ok else f"failed ({result.reason})",
            extra={"step": step.id, "exit_code": result.exit_code},
        )
        return result

    def _abort(
        self,
        context: WorkflowContext,
        step: Step,
        result: StepResult,
        executed: list[str],
    ) -> Aborted:
        appended = context.checkpoint.append(step.id, result)
        if isinstance(appended, Err):
            logger.error("%s", appended.error.message)
        return self._aborted(context, step, result, executed)

    def _aborted(
        self,
        context: WorkflowContext,
        step: Step,
        result: StepResult,
        executed: list[str],
    ) -> Aborted:
        self._state = RunState.ABORTED
        succeeded = list(context.prior.succeeded()) if context.prior is not None else []
        succeeded.extend(sid for sid in executed if sid not in succeeded)
        reason = result.reason or "step failed"
        logger.warning(
            "run %s aborted at %s: %s",
            context.workflow,
            step.id,
            reason,
            extra={"workflow": context.workflow, "step": step.id},
        )
        return Aborted(
            step_id=step.id,
            reason=reason,
            failure=result.failure or "error",
            result=result,
            checkpoint_path=context.checkpoint.path,
            succeeded=tuple(succeeded),
        )
