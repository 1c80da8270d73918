"""Tests for the scheduler: ordering, skip propagation, parallelism, cancellation."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from actionci.dag import build_graph
from actionci.dsl import action, wf
from actionci.errors import ConfigError
from actionci.model import ActionState
from actionci.runner import run_workflow
from actionci.results import RunStatus
from actionci.ui.console import Console
from actionci.uses import RunnerRegistry


def _run(graph, registry, repo: Path, **kwargs):
    return run_workflow(graph, "w", registry, repo_root=repo, **kwargs)


def test_single_action_on_push_succeeds(registry, fake_runner, repo):
    graph = build_graph([
        wf("w", on="push", resolves=["check"]),
        action("check", uses="fake", args="cargo test"),
    ])
    run = _run(graph, registry, repo)

    assert fake_runner.calls == ["cargo test"]
    assert run.status == RunStatus.SUCCEEDED
    assert run.results["check"].state == ActionState.SUCCEEDED
    assert run.results["check"].exit_code == 0


def test_failed_action_skips_downstream(registry, fake_runner, repo):
    fake_runner.codes["A"] = 1
    graph = build_graph([
        wf("w", on="push", resolves=["a"]),
        action("a", uses="fake", args="A", resolves=["b"]),
        action("b", uses="fake", args="B", resolves=["c"]),
        action("c", uses="fake", args="C"),
    ])
    run = _run(graph, registry, repo)

    assert fake_runner.calls == ["A"]
    assert run.states() == {
        "a": ActionState.FAILED,
        "b": ActionState.SKIPPED,
        "c": ActionState.SKIPPED,
    }
    assert run.results["a"].exit_code == 1
    assert run.results["a"].duration == pytest.approx(0.01)
    assert "upstream action 'a' failed" in run.results["b"].error
    assert run.status == RunStatus.FAILED


def test_independent_branch_keeps_running_after_failure(registry, fake_runner, repo):
    fake_runner.codes["FMT"] = 1
    graph = build_graph([
        wf("w", on="push", resolves=["test"]),
        action("fmt", uses="fake", args="FMT"),
        action("clippy", uses="fake", args="CLIPPY"),
        action("test", uses="fake", args="TEST", needs=["fmt", "clippy"]),
    ])
    run = _run(graph, registry, repo, max_workers=1)

    assert sorted(fake_runner.calls) == ["CLIPPY", "FMT"]
    assert run.states() == {
        "clippy": ActionState.SUCCEEDED,
        "fmt": ActionState.FAILED,
        "test": ActionState.SKIPPED,
    }


def test_dependencies_run_in_order(registry, fake_runner, repo):
    graph = build_graph([
        wf("w", on="push", resolves=["c"]),
        action("a", uses="fake", args="A"),
        action("b", uses="fake", args="B", needs=["a"]),
        action("c", uses="fake", args="C", needs=["b"]),
    ])
    run = _run(graph, registry, repo, max_workers=4)
    assert fake_runner.calls == ["A", "B", "C"]
    assert run.succeeded


def test_independent_actions_run_in_parallel(registry, fake_runner, repo):
    # both actions wait on the barrier; it only opens if they run concurrently
    barrier = threading.Barrier(2, timeout=5)
    fake_runner.hooks = {"L": lambda ctx: barrier.wait(), "R": lambda ctx: barrier.wait()}
    graph = build_graph([
        wf("w", on="push", resolves=["left", "right"]),
        action("left", uses="fake", args="L"),
        action("right", uses="fake", args="R"),
    ])
    run = _run(graph, registry, repo, max_workers=2)
    assert run.succeeded


def test_fail_fast_stops_scheduling(registry, fake_runner, repo):
    fake_runner.codes["A"] = 2
    graph = build_graph([
        wf("w", on="push", resolves=["a", "b"]),
        action("a", uses="fake", args="A"),
        action("b", uses="fake", args="B"),
    ])
    run = _run(graph, registry, repo, max_workers=1, fail_fast=True)

    assert fake_runner.calls == ["A"]
    assert run.results["b"].state == ActionState.SKIPPED
    assert "fail-fast" in run.results["b"].error


def test_cancel_fails_running_and_skips_pending(registry, fake_runner, repo):
    cancel = threading.Event()
    fake_runner.codes["A"] = -15
    fake_runner.hooks["A"] = lambda ctx: cancel.set()
    graph = build_graph([
        wf("w", on="push", resolves=["a", "b"]),
        action("a", uses="fake", args="A", resolves=["c"]),
        action("b", uses="fake", args="B"),
        action("c", uses="fake", args="C"),
    ])
    run = _run(graph, registry, repo, max_workers=1, cancel=cancel)

    assert fake_runner.calls == ["A"]
    assert run.cancelled
    assert run.results["a"].state == ActionState.FAILED
    assert "cancelled" in run.results["a"].error
    assert run.results["b"].state == ActionState.SKIPPED
    assert run.results["c"].state == ActionState.SKIPPED


def test_runner_exception_marks_action_failed(registry, fake_runner, repo):
    def boom(ctx):
        raise RuntimeError("runner exploded")

    fake_runner.hooks["A"] = boom
    graph = build_graph([
        wf("w", on="push", resolves=["a"]),
        action("a", uses="fake", args="A", resolves=["b"]),
        action("b", uses="fake", args="B"),
    ])
    run = _run(graph, registry, repo)

    assert run.results["a"].state == ActionState.FAILED
    assert "runner exploded" in run.results["a"].error
    assert run.results["b"].state == ActionState.SKIPPED


def test_rerun_is_idempotent(registry, fake_runner, repo):
    fake_runner.codes["B"] = 1
    graph = build_graph([
        wf("w", on="push", resolves=["a", "b"]),
        action("a", uses="fake", args="A", resolves=["c"]),
        action("b", uses="fake", args="B", resolves=["d"]),
        action("c", uses="fake", args="C"),
        action("d", uses="fake", args="D"),
    ])
    first = _run(graph, registry, repo, max_workers=3)
    second = _run(graph, registry, repo, max_workers=3)
    assert first.states() == second.states()


def test_action_environment(registry, fake_runner, repo):
    graph = build_graph([
        wf("w", on="push", resolves=["a"]),
        action("a", uses="fake", args="A", env={"RUSTFLAGS": "-Dwarnings", "CI": "custom"}),
    ])
    _run(graph, registry, repo, env={"ACTIONCI_SHA": "abc123"})
    env = fake_runner.contexts["A"].env

    assert env["ACTIONCI_WORKFLOW"] == "w"
    assert env["ACTIONCI_ACTION"] == "a"
    assert env["ACTIONCI_EVENT_NAME"] == "push"
    assert env["ACTIONCI_SHA"] == "abc123"
    assert env["RUSTFLAGS"] == "-Dwarnings"
    # action env wins over engine defaults
    assert env["CI"] == "custom"


def test_each_action_gets_its_own_disposable_workspace(registry, fake_runner, repo):
    seen = {}

    def record(name):
        def hook(ctx):
            seen[name] = ctx.workspace
            assert (ctx.workspace / "README.md").read_text() == "hello\n"
            (ctx.workspace / "README.md").write_text(f"changed by {name}\n")
        return hook

    fake_runner.hooks = {"A": record("a"), "B": record("b")}
    graph = build_graph([
        wf("w", on="push", resolves=["a"]),
        action("a", uses="fake", args="A", resolves=["b"]),
        action("b", uses="fake", args="B"),
    ])
    run = _run(graph, registry, repo)

    assert run.succeeded
    assert seen["a"] != seen["b"]
    assert not seen["a"].exists()
    assert (repo / "README.md").read_text() == "hello\n"


def test_unknown_uses_fails_before_running(registry, fake_runner, repo):
    graph = build_graph([
        wf("w", on="push", resolves=["a"]),
        action("a", uses="fake", args="A"),
        action("b", uses="owner/repo@v1", args="B", needs=["a"]),
    ])
    with pytest.raises(ConfigError):
        _run(graph, registry, repo)
    assert fake_runner.calls == []


def test_workflow_without_actions_succeeds(repo):
    graph = build_graph([wf("w", on="push")])
    run = run_workflow(graph, "w", RunnerRegistry(), repo_root=repo)
    assert run.results == {}
    assert run.succeeded


def test_interrupt_while_scheduling_cancels_running_actions(registry, fake_runner, repo):
    class InterruptingConsole(Console):
        def print_action_start(self, name):
            if name == "b":
                raise KeyboardInterrupt
            super().print_action_start(name)

    observed = []
    fake_runner.hooks["A"] = lambda ctx: observed.append(ctx.cancel.wait(5))
    cancel = threading.Event()
    graph = build_graph([
        wf("w", on="push", resolves=["a", "b"]),
        action("a", uses="fake", args="A"),
        action("b", uses="fake", args="B"),
    ])
    with pytest.raises(KeyboardInterrupt):
        _run(graph, registry, repo, max_workers=2, cancel=cancel, console=InterruptingConsole(quiet=True))

    assert cancel.is_set()
    assert observed == [True]
    assert fake_runner.calls == ["A"]
