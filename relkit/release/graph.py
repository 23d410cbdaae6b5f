"""Step dependency graph and deterministic plan ordering."""

from __future__ import annotations

import heapq
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Literal

from relkit.core.result import Err, Ok, Result
from relkit.release.model import Step


@dataclass(frozen=True, slots=True)
class GraphError:
    kind: Literal["cycle_detected", "unknown_step", "duplicate_step"]
    message: str
    steps: tuple[str, ...] = ()


class StepGraph:
    """Steps in declaration order, with `needs` edges.

    Declaration order matters: when several steps are ready at once, the one
    declared first runs first. The same graph and goal therefore always yield
    the same plan, which is what lets a checkpoint be matched against a
    re-built plan on resume.
    """

    def __init__(self, steps: Iterable[Step]) -> None:
        self._steps: tuple[Step, ...] = tuple(steps)
        self._by_id: dict[str, Step] = {}
        self._order: dict[str, int] = {}
        for idx, step in enumerate(self._steps):
            self._by_id.setdefault(step.id, step)
            self._order.setdefault(step.id, idx)

    def __contains__(self, step_id: object) -> bool:
        return step_id in self._by_id

    def __iter__(self) -> Iterator[Step]:
        return iter(self._steps)

    def __len__(self) -> int:
        return len(self._steps)

    def get(self, step_id: str) -> Step | None:
        return self._by_id.get(step_id)

    def validate(self) -> Result[None, GraphError]:
        """Check every step id is unique and every prerequisite is declared."""
        seen: set[str] = set()
        dupes: list[str] = []
        for step in self._steps:
            if step.id in seen and step.id not in dupes:
                dupes.append(step.id)
            seen.add(step.id)
        if dupes:
            return Err(
                GraphError(
                    kind="duplicate_step",
                    message=f"duplicate step ids: {', '.join(dupes)}",
                    steps=tuple(dupes),
                )
            )

        for step in self._steps:
            for need in step.needs:
                if need not in self._by_id:
                    return Err(
                        GraphError(
                            kind="unknown_step",
                            message=f"step '{step.id}' needs unknown step '{need}'",
                            steps=(step.id, need),
                        )
                    )
        return Ok(None)

    def build(self, goal: str) -> Result[tuple[Step, ...], GraphError]:
        """Return `goal` and its transitive prerequisites in execution order."""
        valid = self.validate()
        if isinstance(valid, Err):
            return valid

        if goal not in self._by_id:
            return Err(
                GraphError(
                    kind="unknown_step",
                    message=f"unknown goal '{goal}'",
                    steps=(goal,),
                )
            )

        wanted = self._closure(goal)

        indeg: dict[str, int] = {sid: 0 for sid in wanted}
        dependents: dict[str, list[str]] = {sid: [] for sid in wanted}
        for sid in wanted:
            for need in dict.fromkeys(self._by_id[sid].needs):
                indeg[sid] += 1
                dependents[need].append(sid)

        ready = [(self._order[sid], sid) for sid, deg in indeg.items() if deg == 0]
        heapq.heapify(ready)

        ordered: list[Step] = []
        while ready:
            _, sid = heapq.heappop(ready)
            ordered.append(self._by_id[sid])
            for nxt in dependents[sid]:
                indeg[nxt] -= 1
                if indeg[nxt] == 0:
                    heapq.heappush(ready, (self._order[nxt], nxt))

        if len(ordered) != len(wanted):
            stuck = tuple(sorted((sid for sid, d in indeg.items() if d > 0), key=self._order.__getitem__))
            return Err(
                GraphError(
                    kind="cycle_detected",
                    message=f"step prerequisites form a cycle; stuck steps: {', '.join(stuck)}",
                    steps=stuck,
                )
            )

        return Ok(tuple(ordered))

    def _closure(self, goal: str) -> set[str]:
        wanted: set[str] = set()
        stack = [goal]
        while stack:
            sid = stack.pop()
            if sid in wanted:
                continue
            wanted.add(sid)
            stack.extend(self._by_id[sid].needs)
        return wanted
