# engine.py
from __future__ import annotations

import subprocess
import threading
from pathlib import Path
from typing import Dict, Optional, Union

from .config import EngineConfig
from .dag import WorkflowGraph
from .git_facts import git
from .history import RunStore
from .model import Event
from .results import DispatchReport
from .runner import cancelled_run, resolve_runners, run_workflow
from .triggers import match_workflows, parse_event
from .ui.console import Console, get_console
from .uses import RunnerRegistry, default_registry


def repository_env(repo_root: Union[str, Path]) -> Dict[str, str]:
    """ACTIONCI_SHA / ACTIONCI_REF for actions, when repo_root is a git checkout."""
    try:
        return {
            "ACTIONCI_SHA": git.head_sha(cwd=repo_root),
            "ACTIONCI_REF": git.current_ref(cwd=repo_root),
        }
    except (subprocess.CalledProcessError, FileNotFoundError):
        return {}


class Engine:
    """
    Runs the workflows an event triggers.

        graph = load_graph("actionci_workflow.py")
        report = Engine(graph).dispatch("push")
        raise SystemExit(report.exit_code)
    """

    def __init__(
        self,
        graph: WorkflowGraph,
        registry: Optional[RunnerRegistry] = None,
        *,
        repo_root: Union[str, Path] = ".",
        config: Optional[EngineConfig] = None,
        console: Optional[Console] = None,
        store: Optional[RunStore] = None,
    ):
        self.graph = graph
        self.config = config or EngineConfig()
        self.registry = registry or default_registry(self.config.aliases)
        self.repo_root = Path(repo_root).resolve()
        self.console = console or get_console()
        self.store = store
        self.cancel = threading.Event()

    def dispatch(self, event: Union[str, Event], *, fail_fast: bool = False) -> DispatchReport:
        """
        Match `event`, check every involved action has a runner, then run the
        matched workflows one after another.

        Raises ConfigError (before anything runs) for unresolvable `uses`.
        """
        ev = parse_event(event)
        workflows = match_workflows(self.graph, ev)

        for wf in workflows:
            resolve_runners(self.graph, self.graph.actions_for(wf), self.registry)

        report = DispatchReport(event=ev)
        base_env = repository_env(self.repo_root)

        for wf in workflows:
            if self.cancel.is_set():
                # matched but never started
                run = cancelled_run(self.graph, wf, event=ev, console=self.console)
            else:
                run = run_workflow(
                    self.graph,
                    wf,
                    self.registry,
                    event=ev,
                    repo_root=self.repo_root,
                    max_workers=self.config.max_workers,
                    fail_fast=fail_fast,
                    timeout=self.config.action_timeout,
                    cancel=self.cancel,
                    workspace_dir=self.config.workspace_dir,
                    keep_workspaces=self.config.keep_workspaces,
                    env=base_env,
                    console=self.console,
                )
            report.runs.append(run)
            if self.store is not None:
                run_id = self.store.record(run)
                self.console.print_debug(f"recorded run {run_id} for workflow {wf.name}")

        return report
