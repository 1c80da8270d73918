"""Console output formatting utilities for actionci."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, List, Optional, Sequence

if TYPE_CHECKING:
    from ..results import DispatchReport, WorkflowRun

# failed action logs are cut to this many lines unless debug is on
FAILURE_LOG_LINES = 20


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False, quiet: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
            quiet: If True, suppress per-action progress lines
        """
        self.debug = debug
        self.quiet = quiet

    def _progress(self, message: str) -> None:
        if not self.quiet:
            print(message)

    def print_run_started(self, repository: str, event: str, workflows: Sequence[str]) -> None:
        """Print dispatch start information."""
        print("\nRUN STARTED")
        print(f"Repository: {repository}")
        print(f"Event: {event}")
        print(f"Workflows: {', '.join(workflows) if workflows else '(none matched)'}")
        print()

    def print_workflow_started(self, name: str, event: str, levels: List[List[str]]) -> None:
        self._progress(f"\nWORKFLOW STARTED: {name} (on {event})")
        for idx, level in enumerate(levels, start=1):
            self._progress(f"  stage {idx}: {', '.join(level)}")

    def print_action_start(self, name: str) -> None:
        self._progress(f"ACTION STARTED: {name}")

    def print_action_succeeded(self, name: str, duration: float) -> None:
        self._progress(f"ACTION SUCCEEDED: {name} ({duration:.1f}s)")

    def print_action_failed(
        self,
        name: str,
        exit_code: Optional[int],
        reason: str,
        log: str = "",
    ) -> None:
        """
        Print failure message for an action.

        The captured log is cut to its last lines unless debug is on.
        """
        print(f"ACTION FAILED: {name}")
        if exit_code is not None:
            print(f"Exit code: {exit_code}")
        if reason:
            print(f"Error: {reason.splitlines()[0]}")
        if log:
            lines = log.rstrip().splitlines()
            if not self.debug:
                lines = lines[-FAILURE_LOG_LINES:]
            for line in lines:
                print(f"  | {line}")

    def print_action_skipped(self, name: str, reason: str) -> None:
        self._progress(f"ACTION SKIPPED: {name} ({reason})")

    def print_workflow_finished(self, run: "WorkflowRun") -> None:
        self._progress(f"WORKFLOW {run.status.value.upper()}: {run.workflow} ({run.duration:.1f}s)")

    def print_plan(self, name: str, event: str, levels: List[List[str]]) -> None:
        """Print a workflow's trigger and execution stages."""
        print(f"\n{name}")
        print(f"  on: {event}")
        if not levels:
            print("  (no actions)")
        for idx, level in enumerate(levels, start=1):
            print(f"  stage {idx}: {', '.join(level)}")

    def print_results(self, report: "DispatchReport") -> None:
        """Print final results summary."""
        print("\n" + "=" * 40)
        print("RESULTS")
        print("=" * 40)
        if not report.runs:
            print(f"  no workflow matches '{report.event.value}'")
        for run in report.runs:
            print(f"  {run.workflow}: {run.status.value.upper()}")
            for name, result in run.results.items():
                print(f"    {name}: {result.state.value.upper()}")

    def print_history(self, rows: Sequence[dict]) -> None:
        """Print recorded runs, newest first."""
        if not rows:
            print("No recorded runs.")
            return
        for row in rows:
            print(
                f"{row['id'][:8]}  {row['created_at']:%Y-%m-%d %H:%M:%S}  "
                f"{row['status']:<9}  {row['event']:<12}  {row['workflow']}"
            )

    def print_history_run(self, row: dict) -> None:
        print(f"\nRUN {row['id']}")
        print(f"Workflow: {row['workflow']}")
        print(f"Event: {row['event']}")
        print(f"Status: {row['status']}")
        print(f"Started: {row['created_at']:%Y-%m-%d %H:%M:%S}")
        print(f"Duration: {row['duration']:.1f}s")
        for action in row["actions"]:
            code = "" if action["exit_code"] is None else f" (exit={action['exit_code']})"
            print(f"  {action['name']}: {action['state'].upper()}{code}")

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        print(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            print(f"[DEBUG] {message}", file=sys.stderr)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
