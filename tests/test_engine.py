"""Tests for event dispatch."""

from __future__ import annotations

from pathlib import Path

import pytest

from actionci.config import EngineConfig
from actionci.dag import build_graph
from actionci.dsl import action, wf
from actionci.engine import Engine
from actionci.errors import ConfigError
from actionci.history import RunStore
from actionci.model import ActionState, Event


@pytest.fixture
def graph():
    return build_graph([
        wf("Quality", on="push", resolves=["check"]),
        wf("Release", on="release", resolves=["publish"]),
        action("check", uses="fake", args="CHECK"),
        action("publish", uses="fake", args="PUBLISH"),
    ])


def test_push_runs_only_push_workflows(graph, registry, fake_runner, repo: Path):
    report = Engine(graph, registry, repo_root=repo).dispatch("push")

    assert [run.workflow for run in report.runs] == ["Quality"]
    assert fake_runner.calls == ["CHECK"]
    assert report.exit_code == 0


def test_failed_run_sets_exit_code(graph, registry, fake_runner, repo: Path):
    fake_runner.codes["CHECK"] = 101
    report = Engine(graph, registry, repo_root=repo).dispatch(Event.PUSH)
    assert report.runs[0].results["check"].state == ActionState.FAILED
    assert report.exit_code == 1


def test_no_matching_workflow(graph, registry, fake_runner, repo: Path):
    report = Engine(graph, registry, repo_root=repo).dispatch("pull_request")
    assert report.runs == []
    assert report.exit_code == 0
    assert fake_runner.calls == []


def test_unresolvable_uses_fails_before_anything_runs(registry, fake_runner, repo: Path):
    graph = build_graph([
        wf("A", on="push", resolves=["ok"]),
        wf("B", on="push", resolves=["bad"]),
        action("ok", uses="fake", args="OK"),
        action("bad", uses="owner/action@v1", args="BAD"),
    ])
    with pytest.raises(ConfigError):
        Engine(graph, registry, repo_root=repo).dispatch("push")
    assert fake_runner.calls == []


def test_aliases_from_config(repo: Path, fake_runner):
    graph = build_graph([
        wf("Quality", on="push", resolves=["check"]),
        action("check", uses="icepuma/rust-action@master", args="CHECK"),
    ])
    engine = Engine(graph, repo_root=repo, config=EngineConfig(aliases={"icepuma/rust-action@master": "fake"}))
    engine.registry.register("fake", lambda _uses: fake_runner)

    assert engine.dispatch("push").exit_code == 0
    assert fake_runner.calls == ["CHECK"]


def test_runs_are_recorded(graph, registry, repo: Path, tmp_path: Path):
    store = RunStore(f"sqlite:///{tmp_path / 'history.db'}")
    try:
        Engine(graph, registry, repo_root=repo, store=store).dispatch("push")
        rows = store.recent()
    finally:
        store.close()
    assert [(r["workflow"], r["status"]) for r in rows] == [("Quality", "succeeded")]


def test_cancelled_engine_starts_nothing(graph, registry, fake_runner, repo: Path):
    engine = Engine(graph, registry, repo_root=repo)
    engine.cancel.set()
    report = engine.dispatch("push")

    assert fake_runner.calls == []
    assert [run.workflow for run in report.runs] == ["Quality"]
    assert report.runs[0].states() == {"check": ActionState.SKIPPED}
    assert report.cancelled
    assert report.exit_code == 1


def test_workflows_after_cancel_are_reported_skipped(registry, fake_runner, repo: Path, tmp_path: Path):
    graph = build_graph([
        wf("A", on="push", resolves=["first"]),
        wf("B", on="push", resolves=["second"]),
        action("first", uses="fake", args="FIRST"),
        action("second", uses="fake", args="SECOND"),
    ])
    store = RunStore(f"sqlite:///{tmp_path / 'history.db'}")
    engine = Engine(graph, registry, repo_root=repo, store=store)
    fake_runner.hooks["FIRST"] = lambda ctx: engine.cancel.set()
    try:
        report = engine.dispatch("push")
        recorded = sorted(r["workflow"] for r in store.recent())
    finally:
        store.close()

    assert fake_runner.calls == ["FIRST"]
    assert [run.workflow for run in report.runs] == ["A", "B"]
    second = report.runs[1]
    assert second.cancelled
    assert second.results["second"].state == ActionState.SKIPPED
    assert second.results["second"].error == "cancelled"
    assert recorded == ["A", "B"]
