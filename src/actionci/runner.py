# runner.py
from __future__ import annotations

import os
import threading
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Union

from .dag import WorkflowGraph
from .errors import ExecutionError
from .model import Action, ActionState, Event, ExitStatus, Workflow, transition
from .results import ActionResult, WorkflowRun, aggregate
from .ui.console import Console, get_console
from .uses import ActionRunner, RunContext, RunnerRegistry
from .workspace import workspace

# how often the scheduler wakes up to check for cancellation
WAIT_INTERVAL = 0.2


def default_workers() -> int:
    c = os.cpu_count() or 2
    return max(1, c - 1)


# ----------------------------------------------------------------------
# Runner resolution
# ----------------------------------------------------------------------

def resolve_runners(
    graph: WorkflowGraph,
    names: Iterable[str],
    registry: RunnerRegistry,
) -> Dict[str, ActionRunner]:
    """
    Resolve the runner of every named action.
    Raises ConfigError before anything runs if a `uses` reference is unknown.
    """
    return {name: registry.resolve(graph.actions[name].uses) for name in names}


# ----------------------------------------------------------------------
# Execution primitives
# ----------------------------------------------------------------------

def _action_env(
    workflow: Workflow,
    action: Action,
    event: Event,
    base_env: Mapping[str, str],
) -> Dict[str, str]:
    env = dict(base_env)
    env.update(
        {
            "CI": "true",
            "ACTIONCI": "true",
            "ACTIONCI_WORKFLOW": workflow.name,
            "ACTIONCI_ACTION": action.name,
            "ACTIONCI_EVENT_NAME": event.value,
        }
    )
    env.update(action.environment())
    return env


def _execute_action(
    action: Action,
    runner: ActionRunner,
    *,
    env: Dict[str, str],
    repo_root: Path,
    cancel: threading.Event,
    timeout: Optional[float],
    workspace_dir: Optional[Path],
    keep_workspace: bool,
) -> ExitStatus:
    """Run one action in its own workspace. Raises ExecutionError on non-zero exit."""
    with workspace(repo_root, base_dir=workspace_dir, keep=keep_workspace) as ws:
        ctx = RunContext(
            workspace=ws,
            env={**env, "ACTIONCI_WORKSPACE": str(ws)},
            cancel=cancel,
            timeout=timeout,
        )
        status = runner.run(action.args, ctx)

    if not status.ok:
        reason = ""
        if status.cancelled:
            reason = "cancelled"
        elif status.timed_out:
            reason = f"timed out after {timeout}s"
        raise ExecutionError(
            action=action.name,
            command=action.args,
            exit_code=status.code,
            log=status.log,
            reason=reason,
            duration=status.duration,
        )
    return status


# ----------------------------------------------------------------------
# Scheduler
# ----------------------------------------------------------------------

def run_workflow(
    graph: WorkflowGraph,
    workflow: Union[str, Workflow],
    registry: RunnerRegistry,
    *,
    event: Optional[Event] = None,
    repo_root: Union[str, Path] = ".",
    max_workers: Optional[int] = None,
    fail_fast: bool = False,
    timeout: Optional[float] = None,
    cancel: Optional[threading.Event] = None,
    workspace_dir: Optional[Union[str, Path]] = None,
    keep_workspaces: bool = False,
    env: Optional[Mapping[str, str]] = None,
    console: Optional[Console] = None,
) -> WorkflowRun:
    """
    Execute every action of a workflow in dependency order.

    - An action starts only once all of its upstream actions succeeded.
    - Independent actions run in parallel (up to max_workers).
    - A failed action marks everything downstream of it as skipped.
    - fail_fast: after the first failure nothing new is started.
    - cancel: when set, running actions are terminated (-> failed) and
      pending ones are skipped. Ctrl-C while waiting sets it.

    Never raises for action failures; they end up in the returned run.
    """
    wf = graph.workflows[workflow] if isinstance(workflow, str) else workflow
    ev = event or wf.on
    console = console or get_console()
    cancel = cancel or threading.Event()
    repo_root_p = Path(repo_root).resolve()
    workspace_p = Path(workspace_dir).resolve() if workspace_dir else None

    names: List[str] = graph.actions_for(wf)
    subset = set(names)
    runners = resolve_runners(graph, names, registry)

    states: Dict[str, ActionState] = {n: ActionState.PENDING for n in names}
    waiting_on: Dict[str, int] = {n: len(graph.upstream(n) & subset) for n in names}
    results: Dict[str, ActionResult] = {}

    ready = deque(sorted(n for n, count in waiting_on.items() if count == 0))
    in_flight: Dict[Future, str] = {}
    stop = False

    if max_workers is None:
        max_workers = default_workers()

    started_at = datetime.now(timezone.utc)
    console.print_workflow_started(wf.name, ev.value, graph.topo_levels(names))

    def skip(name: str, reason: str) -> None:
        if states[name] != ActionState.PENDING:
            return
        states[name] = transition(states[name], ActionState.SKIPPED)
        results[name] = ActionResult(name=name, state=ActionState.SKIPPED, error=reason)
        console.print_action_skipped(name, reason)

    def fail(name: str, result: ActionResult) -> None:
        nonlocal stop
        states[name] = transition(states[name], ActionState.FAILED)
        results[name] = result
        console.print_action_failed(name, result.exit_code, result.error or "", result.log)
        for d in sorted(graph.descendants(name) & subset):
            skip(d, f"upstream action '{name}' failed")
        if fail_fast:
            stop = True

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        try:
            while ready or in_flight:
                # schedule ready actions while a worker is free
                while ready and len(in_flight) < max_workers and not stop and not cancel.is_set():
                    name = ready.popleft()
                    states[name] = transition(states[name], ActionState.RUNNING)
                    console.print_action_start(name)
                    fut = pool.submit(
                        _execute_action,
                        graph.actions[name],
                        runners[name],
                        env=_action_env(wf, graph.actions[name], ev, env or {}),
                        repo_root=repo_root_p,
                        cancel=cancel,
                        timeout=timeout,
                        workspace_dir=workspace_p,
                        keep_workspace=keep_workspaces,
                    )
                    in_flight[fut] = name

                if not in_flight:
                    break

                try:
                    done, _ = wait(list(in_flight), timeout=WAIT_INTERVAL, return_when=FIRST_COMPLETED)
                except KeyboardInterrupt:
                    console.print_info("\nCancelling workflow run...")
                    cancel.set()
                    continue

                for fut in sorted(done, key=lambda f: in_flight[f]):
                    name = in_flight.pop(fut)
                    try:
                        status = fut.result()
                    except ExecutionError as e:
                        fail(
                            name,
                            ActionResult(
                                name=name,
                                state=ActionState.FAILED,
                                exit_code=e.exit_code,
                                log=e.log,
                                duration=e.duration,
                                error=str(e),
                            ),
                        )
                        continue
                    except Exception as e:
                        fail(
                            name,
                            ActionResult(
                                name=name,
                                state=ActionState.FAILED,
                                error=f"{type(e).__name__}: {e}",
                            ),
                        )
                        continue

                    states[name] = transition(states[name], ActionState.SUCCEEDED)
                    results[name] = ActionResult(
                        name=name,
                        state=ActionState.SUCCEEDED,
                        exit_code=status.code,
                        log=status.log,
                        duration=status.duration,
                    )
                    console.print_action_succeeded(name, status.duration)

                    # unlock dependents
                    for nxt in sorted(graph.downstream(name) & subset):
                        waiting_on[nxt] -= 1
                        if waiting_on[nxt] == 0 and states[nxt] == ActionState.PENDING:
                            ready.append(nxt)
        except KeyboardInterrupt:
            # pool shutdown waits for running actions; they stop once cancel is set
            cancel.set()
            raise

    # anything never started
    leftover = "cancelled" if cancel.is_set() else "not started (fail-fast)"
    for name in names:
        skip(name, leftover)

    run = aggregate(
        wf.name,
        ev,
        results,
        started_at=started_at,
        finished_at=datetime.now(timezone.utc),
        cancelled=cancel.is_set(),
    )
    console.print_workflow_finished(run)
    return run


def cancelled_run(
    graph: WorkflowGraph,
    workflow: Union[str, Workflow],
    *,
    event: Optional[Event] = None,
    console: Optional[Console] = None,
) -> WorkflowRun:
    """A run for a matched workflow that never started: every action skipped."""
    wf = graph.workflows[workflow] if isinstance(workflow, str) else workflow
    console = console or get_console()
    now = datetime.now(timezone.utc)
    results = {
        name: ActionResult(name=name, state=ActionState.SKIPPED, error="cancelled")
        for name in graph.actions_for(wf)
    }
    run = aggregate(wf.name, event or wf.on, results, started_at=now, finished_at=now, cancelled=True)
    console.print_workflow_finished(run)
    return run
