"""Release workflows: version store, step graph, engine, orchestrator."""

from .errors import ReleaseError
from .model import Aborted, Completed, ReleasePlan, RunOptions, RunOutcome, Step, StepResult
from .orchestrator import ReleaseOrchestrator
from .version import Version, VersionStore

__all__ = [
    "Aborted",
    "Completed",
    "ReleaseError",
    "ReleaseOrchestrator",
    "ReleasePlan",
    "RunOptions",
    "RunOutcome",
    "Step",
    "StepResult",
    "Version",
    "VersionStore",
]
