# results.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from .model import ActionState, Event


class RunStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class ActionResult:
    """Terminal outcome of one action within a workflow run."""
    name: str
    state: ActionState
    exit_code: Optional[int] = None
    log: str = ""
    duration: float = 0.0
    error: Optional[str] = None


@dataclass
class WorkflowRun:
    """All action results of one workflow run, plus the overall verdict."""
    workflow: str
    event: Event
    results: Dict[str, ActionResult] = field(default_factory=dict)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    cancelled: bool = False

    @property
    def status(self) -> RunStatus:
        # succeeded iff every action reached succeeded
        if all(r.state == ActionState.SUCCEEDED for r in self.results.values()):
            return RunStatus.SUCCEEDED
        return RunStatus.FAILED

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.SUCCEEDED

    @property
    def duration(self) -> float:
        if self.started_at is None or self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def states(self) -> Dict[str, ActionState]:
        return {name: r.state for name, r in self.results.items()}

    def summary(self) -> Dict[str, int]:
        counts = {s.value: 0 for s in ActionState if s.terminal}
        for r in self.results.values():
            counts[r.state.value] = counts.get(r.state.value, 0) + 1
        return counts

    def failures(self) -> List[ActionResult]:
        return [r for r in self.results.values() if r.state == ActionState.FAILED]


@dataclass
class DispatchReport:
    """Every workflow run started by one event."""
    event: Event
    runs: List[WorkflowRun] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return all(run.succeeded for run in self.runs)

    @property
    def cancelled(self) -> bool:
        return any(run.cancelled for run in self.runs)

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1


def aggregate(
    workflow: str,
    event: Event,
    results: Dict[str, ActionResult],
    *,
    started_at: Optional[datetime] = None,
    finished_at: Optional[datetime] = None,
    cancelled: bool = False,
) -> WorkflowRun:
    """Collect terminal action results into a WorkflowRun."""
    for r in results.values():
        if not r.state.terminal:
            raise ValueError(f"Action '{r.name}' has not finished (state={r.state.value})")
    return WorkflowRun(
        workflow=workflow,
        event=event,
        results=dict(sorted(results.items())),
        started_at=started_at,
        finished_at=finished_at,
        cancelled=cancelled,
    )
