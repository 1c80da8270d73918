"""Test configuration and fixtures."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from actionci.model import ExitStatus
from actionci.ui.console import Console, set_console
from actionci.uses import RunContext, RunnerRegistry


class FakeRunner:
    """
    Scripted action runner.

    `codes` maps an action's args to the exit code to report (default 0);
    `hooks` maps args to a callable run inside the action before it returns.
    """

    def __init__(
        self,
        codes: Optional[Dict[str, int]] = None,
        hooks: Optional[Dict[str, Callable[[RunContext], None]]] = None,
    ):
        self.codes = dict(codes or {})
        self.hooks = dict(hooks or {})
        self.calls: List[str] = []
        self.contexts: Dict[str, RunContext] = {}
        self._lock = threading.Lock()

    def run(self, args: str, ctx: RunContext) -> ExitStatus:
        with self._lock:
            self.calls.append(args)
            self.contexts[args] = ctx
        hook = self.hooks.get(args)
        if hook is not None:
            hook(ctx)
        cancelled = ctx.cancel is not None and ctx.cancel.is_set()
        code = self.codes.get(args, 0)
        return ExitStatus(code=code, log=f"ran {args}\n", duration=0.01, cancelled=cancelled and code != 0)


@pytest.fixture(autouse=True)
def quiet_console() -> Console:
    """Keep scheduler progress out of the test output."""
    console = Console(quiet=True)
    set_console(console)
    return console


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def registry(fake_runner: FakeRunner) -> RunnerRegistry:
    """Registry where uses = "fake" resolves to the shared fake_runner."""
    reg = RunnerRegistry()
    reg.register("fake", lambda _uses: fake_runner)
    return reg


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    """A small non-git checkout to copy into workspaces."""
    root = tmp_path / "repo"
    (root / "src").mkdir(parents=True)
    (root / "README.md").write_text("hello\n")
    (root / "src" / "main.rs").write_text("fn main() {}\n")
    return root
