# errors.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List


class ActionCIError(Exception):
    """Base class for every error raised by actionci."""


class ConfigError(ActionCIError):
    """Malformed declaration or configuration. Fatal at load time."""

    def __init__(self, message: str, details: List[str] | None = None):
        super().__init__(message)
        self.message = message
        self.details = list(details or [])

    def __str__(self) -> str:
        if not self.details:
            return self.message
        return "\n".join([self.message, *(f"  {d}" for d in self.details)])


class ActionReferenceError(ConfigError):
    """A `resolves` or `needs` entry names an action that was never declared."""

    def __init__(self, owner: str, target: str, known: List[str]):
        super().__init__(
            f"'{owner}' references undeclared action '{target}'",
            details=[f"Known actions: {sorted(known)}"],
        )
        self.owner = owner
        self.target = target


class CycleError(ConfigError):
    """The action graph contains a cycle."""

    def __init__(self, cycle: List[str]):
        super().__init__(f"Action graph has a cycle: {' -> '.join(cycle)}")
        self.cycle = list(cycle)


class IllegalTransitionError(ActionCIError):
    """An action state change that the state machine does not allow."""


@dataclass
class ExecutionError(ActionCIError):
    """
    An action's command exited non-zero (or could not run at all).

    Reported per action; never fatal for the engine.
    """
    action: str
    command: str
    exit_code: int
    log: str = ""
    reason: str = field(default="")
    duration: float = 0.0

    def __str__(self) -> str:
        msg = f"[{self.action}] failed (exit={self.exit_code}): {self.command}"
        if self.reason:
            msg += f" ({self.reason})"
        return msg
