# cli.py
from __future__ import annotations

import subprocess
import sys
from pathlib import Path

import click

from actionci.config import load_config
from actionci.engine import Engine
from actionci.errors import ConfigError
from actionci.git_facts.git import get_remote_url
from actionci.history import RunStore
from actionci.loader import load_graph
from actionci.model import Event
from actionci.ui.console import Console, get_console, set_console

DEFAULT_WORKFLOW = "actionci_workflow.py"

EXIT_FAILED = 1
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130


def find_workflow_files(directory: Path = Path(".")) -> list[Path]:
    """
    Find all workflow files in a directory.

    Returns:
        List of Path objects for workflow files
    """
    found = set()
    default_workflow = directory / DEFAULT_WORKFLOW
    if default_workflow.exists():
        found.add(default_workflow)
    found.update(directory.glob("*_workflow.py"))
    found.update(directory.glob("*.workflow.json"))
    return sorted(found)


def discover_workflow(workflow_arg: str | None) -> Path:
    """
    Discover workflow file from argument or default.

    Raises:
        SystemExit: If workflow cannot be found or multiple workflows exist
    """
    console = get_console()

    if workflow_arg:
        workflow_path = Path(workflow_arg)
        if not workflow_path.exists() and workflow_path.suffix not in (".py", ".json"):
            workflow_path = Path(str(workflow_path) + ".py")
        if not workflow_path.exists():
            console.print_error(
                "Workflow file not found",
                f"Could not find workflow file: {workflow_arg}",
                suggestion="Create a workflow file or specify a different path:\n  actionci run --file my_workflow.py",
            )
            sys.exit(EXIT_CONFIG)
        return workflow_path

    workflow_files = find_workflow_files()

    if len(workflow_files) == 0:
        console.print_error(
            "No workflow file found",
            "Could not find any workflow files.",
            details=[
                "Looked for:",
                f"  {DEFAULT_WORKFLOW}",
                "  *_workflow.py",
                "  *.workflow.json",
            ],
            suggestion=f"Create a workflow file:\n  {DEFAULT_WORKFLOW}\n\nOr specify one explicitly:\n  actionci run --file my_workflow.py",
        )
        sys.exit(EXIT_CONFIG)

    if len(workflow_files) > 1:
        file_list = "\n".join(f"  {f}" for f in workflow_files)
        console.print_error(
            "Multiple workflow files found",
            "Found multiple workflow files. Please specify which one to use:",
            details=[file_list],
            suggestion=f"Specify a workflow explicitly:\n  actionci run --file {workflow_files[0]}",
        )
        sys.exit(EXIT_CONFIG)

    return workflow_files[0]


def _repository_name() -> str:
    try:
        repo_url = get_remote_url("origin")
        return repo_url.rstrip("/").split("/")[-1].replace(".git", "")
    except (subprocess.CalledProcessError, FileNotFoundError):
        return Path(".").resolve().name


def _config_failure(title: str, err: ConfigError) -> None:
    get_console().print_error(title, err.message, details=err.details or None)
    sys.exit(EXIT_CONFIG)


def _load_failure(workflow_path: Path, err: Exception) -> None:
    console = get_console()
    console.print_error(
        "Failed to load workflow",
        f"Could not load workflow from {workflow_path}",
        details=[f"{type(err).__name__}: {err}"],
    )
    if console.debug:
        import traceback
        traceback.print_exc()
    sys.exit(EXIT_CONFIG)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and full action logs)",
)
@click.option("--quiet", is_flag=True, default=False, help="Only print failures and the final results")
@click.pass_context
def cli(ctx, debug, quiet):
    """actionci: run push-triggered CI workflows locally."""
    set_console(Console(debug=debug, quiet=quiet))
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@click.option("--file", "workflow", default=None, help=f"Workflow file (defaults to {DEFAULT_WORKFLOW} if present)")
@click.option(
    "--event",
    default=Event.PUSH.value,
    show_default=True,
    type=click.Choice(Event.names()),
    help="Repository event to dispatch",
)
@click.option("--workers", default=None, type=click.IntRange(min=1), help="Number of parallel actions")
@click.option("--fail-fast/--no-fail-fast", default=False, show_default=True, help="Stop starting actions after the first failure")
@click.option("--timeout", default=None, type=click.FloatRange(min=0, min_open=True), help="Per-action timeout in seconds")
@click.option("--keep-workspaces", is_flag=True, default=False, help="Do not delete action workspaces")
@click.option("--history/--no-history", default=True, show_default=True, help="Record the run in the history database")
@click.pass_context
def run(ctx, workflow, event, workers, fail_fast, timeout, keep_workspaces, history):
    """Dispatch an event and run every workflow it triggers."""
    console = get_console()
    workflow_path = discover_workflow(workflow)

    try:
        config = load_config(".").override(
            max_workers=workers,
            action_timeout=timeout,
            keep_workspaces=keep_workspaces or None,
        )
        graph = load_graph(workflow_path)
    except ConfigError as e:
        _config_failure("Invalid workflow configuration", e)
    except Exception as e:
        _load_failure(workflow_path, e)

    store = RunStore(config.database_url) if history else None
    engine = Engine(graph, repo_root=".", config=config, console=console, store=store)

    matched = sorted(wf.name for wf in graph.workflows.values() if wf.on.value == event)
    console.print_run_started(repository=_repository_name(), event=event, workflows=matched)

    try:
        report = engine.dispatch(event, fail_fast=fail_fast)
    except ConfigError as e:
        _config_failure("Cannot run workflow", e)
    except KeyboardInterrupt:
        engine.cancel.set()
        console.print_info("\nInterrupted by user")
        sys.exit(EXIT_INTERRUPTED)
    except Exception as e:
        console.print_exception(e)
        sys.exit(EXIT_FAILED)
    finally:
        if store is not None:
            store.close()

    console.print_results(report)

    if report.cancelled:
        sys.exit(EXIT_INTERRUPTED)
    if report.exit_code != 0:
        sys.exit(report.exit_code)


@cli.command()
@click.option("--file", "workflow", default=None, help=f"Workflow file (defaults to {DEFAULT_WORKFLOW} if present)")
def validate(workflow):
    """Load and validate a workflow file, then print each workflow's plan."""
    console = get_console()
    workflow_path = discover_workflow(workflow)

    try:
        graph = load_graph(workflow_path)
    except ConfigError as e:
        _config_failure("Invalid workflow configuration", e)
    except Exception as e:
        _load_failure(workflow_path, e)

    console.print_info(
        f"{workflow_path}: {len(graph.workflows)} workflow(s), {len(graph.actions)} action(s)"
    )
    for name in sorted(graph.workflows):
        wf = graph.workflows[name]
        console.print_plan(name, wf.on.value, graph.plan(wf))


@cli.command()
@click.argument("run_id", required=False)
@click.option("--limit", default=20, show_default=True, type=click.IntRange(min=1), help="Number of runs to list")
def history(run_id, limit):
    """List recorded runs, or show one run in detail."""
    console = get_console()
    try:
        config = load_config(".")
    except ConfigError as e:
        _config_failure("Invalid configuration", e)

    store = RunStore(config.database_url)
    try:
        if run_id is None:
            console.print_history(store.recent(limit))
            return
        row = store.get(run_id)
        if row is None:
            console.print_error("Run not found", f"No single recorded run matches '{run_id}'")
            sys.exit(EXIT_FAILED)
        console.print_history_run(row)
    finally:
        store.close()


if __name__ == "__main__":
    cli()
