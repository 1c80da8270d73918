# actionci_workflow.py
# Workflow for checking actionci itself: lint and format run in parallel, tests after both.
from __future__ import annotations

from actionci.dsl import action, declare, wf


def declarations():
    return declare(
        wf("Checks", on="push", resolves=["test"]),

        # Lint + format check have no dependency on each other
        action("lint", uses="shell", args="ruff check src tests"),
        action("format-check", uses="shell", args="ruff format --check src tests"),

        # Tests only run once both checks succeeded
        action(
            "test",
            uses="shell",
            args="python -m pytest -q",
            needs=["lint", "format-check"],
            env={"PYTHONDONTWRITEBYTECODE": "1"},
        ),
    )
