"""Crash-consistent run log used to resume interrupted workflows.

Format: JSON Lines. The first line is a header describing the run (workflow,
goal, planned step ids); each following line records one step result. Lines
are appended with a single write + fsync, so after a crash only the last line
can be incomplete. Such a line is ignored on load and cut off before the
next append.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Literal, cast
from uuid import uuid4

from relkit.core.result import Err, Ok, Result
from relkit.core.structured import StrDict, as_str_dict, get_int, get_str, get_str_list
from relkit.platform.files import append_line, atomic_write_text, truncate_file
from relkit.release.model import FailureKind, StepResult, StepStatus

logger = logging.getLogger(__name__)

CHECKPOINT_SCHEMA = 1

# Only the end of a step's output is kept; the full log lives in relkit.log.
_OUTPUT_TAIL_CHARS = 4000

_STATUSES: tuple[StepStatus, ...] = ("success", "failure", "skipped", "started")
_FAILURES: tuple[FailureKind, ...] = (
    "timeout",
    "non_zero_exit",
    "cancelled",
    "spawn_failed",
    "precondition",
    "needs_force",
    "error",
)


def _now() -> str:
    return datetime.now(UTC).isoformat(timespec="seconds")


@dataclass(frozen=True, slots=True)
class CheckpointHeader:
    workflow: str
    goal: str
    plan: tuple[str, ...]
    started_at: str
    run_id: str

    @classmethod
    def new(cls, *, workflow: str, goal: str, plan: tuple[str, ...]) -> CheckpointHeader:
        return cls(
            workflow=workflow,
            goal=goal,
            plan=plan,
            started_at=_now(),
            run_id=uuid4().hex[:12],
        )


@dataclass(frozen=True, slots=True)
class CheckpointEntry:
    step_id: str
    result: StepResult
    at: str


@dataclass(frozen=True, slots=True)
class CheckpointState:
    header: CheckpointHeader
    entries: tuple[CheckpointEntry, ...]

    def latest(self, step_id: str) -> StepResult | None:
        for entry in reversed(self.entries):
            if entry.step_id == step_id:
                return entry.result
        return None

    def succeeded(self) -> tuple[str, ...]:
        """Planned step ids whose latest record is a success, in plan order."""
        out: list[str] = []
        for sid in self.header.plan:
            latest = self.latest(sid)
            if latest is not None and latest.status == "success":
                out.append(sid)
        return tuple(out)


@dataclass(frozen=True, slots=True)
class CheckpointError:
    kind: Literal["malformed", "io_error"]
    message: str
    hint: str | None = None


def _encode_header(header: CheckpointHeader) -> str:
    payload: dict[str, object] = {
        "type": "run",
        "schema": CHECKPOINT_SCHEMA,
        "run_id": header.run_id,
        "workflow": header.workflow,
        "goal": header.goal,
        "plan": list(header.plan),
        "started_at": header.started_at,
    }
    return json.dumps(payload, separators=(",", ":"))


def _encode_entry(step_id: str, result: StepResult, at: str) -> str:
    payload: dict[str, object] = {
        "type": "step",
        "step": step_id,
        "status": result.status,
        "at": at,
        "exit_code": result.exit_code,
        "failure": result.failure,
        "reason": result.reason,
        "artifacts": list(result.artifacts),
        "output_tail": result.output[-_OUTPUT_TAIL_CHARS:],
    }
    return json.dumps(payload, separators=(",", ":"))


def _decode_header(data: StrDict) -> CheckpointHeader | None:
    if get_str(data, "type") != "run" or get_int(data, "schema") != CHECKPOINT_SCHEMA:
        return None
    workflow = get_str(data, "workflow")
    goal = get_str(data, "goal")
    plan = get_str_list(data, "plan")
    if workflow is None or goal is None or plan is None:
        return None
    return CheckpointHeader(
        workflow=workflow,
        goal=goal,
        plan=tuple(plan),
        started_at=get_str(data, "started_at") or "?",
        run_id=get_str(data, "run_id") or "?",
    )


def _decode_entry(data: StrDict) -> CheckpointEntry | None:
    if get_str(data, "type") != "step":
        return None
    step_id = get_str(data, "step")
    status = get_str(data, "status")
    if step_id is None or status not in _STATUSES:
        return None
    failure = get_str(data, "failure")
    output = data.get("output_tail")
    result = StepResult(
        status=cast(StepStatus, status),
        exit_code=get_int(data, "exit_code"),
        output=output if isinstance(output, str) else "",
        reason=get_str(data, "reason"),
        failure=cast(FailureKind, failure) if failure in _FAILURES else None,
        artifacts=tuple(get_str_list(data, "artifacts") or ()),
    )
    return CheckpointEntry(step_id=step_id, result=result, at=get_str(data, "at") or "?")


class Checkpoint:
    """The checkpoint file of one project."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    def load(self) -> Result[CheckpointState | None, CheckpointError]:
        """Read the pending checkpoint; Ok(None) when there is none."""
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return Ok(None)
        except (OSError, UnicodeDecodeError) as e:
            return Err(CheckpointError(kind="io_error", message=f"cannot read checkpoint: {e}"))

        lines = [line for line in text.split("\n") if line.strip()]
        records: list[StrDict] = []
        for idx, line in enumerate(lines):
            data: StrDict | None
            try:
                data = as_str_dict(json.loads(line))
            except ValueError:
                data = None
            if data is None:
                if idx == len(lines) - 1:
                    # Torn final append from an interrupted process.
                    break
                return Err(self._malformed(f"unreadable entry on line {idx + 1}"))
            records.append(data)

        if not records:
            return Ok(None)

        header = _decode_header(records[0])
        if header is None:
            return Err(self._malformed("missing or unsupported run header"))

        entries: list[CheckpointEntry] = []
        for idx, record in enumerate(records[1:], start=2):
            entry = _decode_entry(record)
            if entry is None:
                return Err(self._malformed(f"invalid step entry on line {idx}"))
            entries.append(entry)

        return Ok(CheckpointState(header=header, entries=tuple(entries)))

    def start(self, header: CheckpointHeader) -> Result[CheckpointState, CheckpointError]:
        """Replace any previous checkpoint with a fresh run header."""
        try:
            atomic_write_text(self._path, _encode_header(header) + "\n")
        except OSError as e:
            return Err(CheckpointError(kind="io_error", message=f"cannot write checkpoint: {e}"))
        return Ok(CheckpointState(header=header, entries=()))

    def append(self, step_id: str, result: StepResult) -> Result[None, CheckpointError]:
        try:
            self._repair_tail()
            append_line(self._path, _encode_entry(step_id, result, _now()))
        except OSError as e:
            return Err(CheckpointError(kind="io_error", message=f"cannot append checkpoint: {e}"))
        return Ok(None)

    def clear(self) -> Result[None, CheckpointError]:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as e:
            return Err(CheckpointError(kind="io_error", message=f"cannot remove checkpoint: {e}"))
        return Ok(None)

    def _repair_tail(self) -> None:
        """Make the file end on a line boundary before the next append.

        A final line without its newline is either a complete record (kept,
        newline added) or a torn write from a killed process (cut off).
        """
        try:
            data = self._path.read_bytes()
        except FileNotFoundError:
            return
        if not data or data.endswith(b"\n"):
            return

        cut = data.rfind(b"\n") + 1
        try:
            complete = as_str_dict(json.loads(data[cut:])) is not None
        except ValueError:
            complete = False

        if complete:
            append_line(self._path, "")
        else:
            logger.warning("dropping torn checkpoint entry (%d bytes)", len(data) - cut)
            truncate_file(self._path, cut)

    def _malformed(self, detail: str) -> CheckpointError:
        return CheckpointError(
            kind="malformed",
            message=f"checkpoint is corrupt: {detail}",
            hint=f"inspect {self._path}, then run `relkit abandon` to discard it",
        )
