# model.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping, Tuple, Union

from .errors import IllegalTransitionError


class Event(str, Enum):
    """Repository events a workflow can be triggered by."""
    PUSH = "push"
    PULL_REQUEST = "pull_request"
    RELEASE = "release"
    CREATE = "create"
    DELETE = "delete"
    DEPLOYMENT = "deployment"
    DEPLOYMENT_STATUS = "deployment_status"
    ISSUES = "issues"
    ISSUE_COMMENT = "issue_comment"
    FORK = "fork"
    WATCH = "watch"
    STATUS = "status"
    REPOSITORY_DISPATCH = "repository_dispatch"
    WORKFLOW_DISPATCH = "workflow_dispatch"

    @classmethod
    def names(cls) -> list[str]:
        return [e.value for e in cls]


@dataclass(frozen=True)
class Action:
    """
    A single unit of work.

    `uses` picks the implementation (see actionci.uses), `args` is the opaque
    command string handed to it.

    Dependencies can be declared from either side:
      - needs:    actions that must succeed BEFORE this one
      - resolves: actions that run AFTER this one succeeds
    """
    name: str
    uses: str
    args: str = ""
    needs: Tuple[str, ...] = ()
    resolves: Tuple[str, ...] = ()
    env: Tuple[Tuple[str, str], ...] = ()

    def __post_init__(self) -> None:
        # env may be given as a mapping; it is kept as sorted (key, value) pairs
        env: Union[Mapping[str, str], Tuple[Tuple[str, str], ...]] = self.env
        pairs = env.items() if isinstance(env, Mapping) else env
        object.__setattr__(self, "env", tuple(sorted((str(k), str(v)) for k, v in pairs)))

    def environment(self) -> Dict[str, str]:
        return dict(self.env)


@dataclass(frozen=True)
class Workflow:
    """A named, triggerable entry point into the action graph."""
    name: str
    on: Event
    resolves: Tuple[str, ...] = ()


class ActionState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def terminal(self) -> bool:
        return self in (ActionState.SUCCEEDED, ActionState.FAILED, ActionState.SKIPPED)


_ALLOWED: Dict[ActionState, Tuple[ActionState, ...]] = {
    ActionState.PENDING: (ActionState.RUNNING, ActionState.SKIPPED),
    ActionState.RUNNING: (ActionState.SUCCEEDED, ActionState.FAILED),
    ActionState.SUCCEEDED: (),
    ActionState.FAILED: (),
    ActionState.SKIPPED: (),
}


def transition(current: ActionState, to: ActionState) -> ActionState:
    """Return `to` if the state machine allows current -> to, else raise."""
    if to not in _ALLOWED[current]:
        raise IllegalTransitionError(f"Illegal action transition: {current.value} -> {to.value}")
    return to


@dataclass(frozen=True)
class ExitStatus:
    """What an action runner reports back for one command."""
    code: int
    log: str = ""
    duration: float = 0.0
    timed_out: bool = False
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.code == 0
