# uses/shell.py
from __future__ import annotations

import os

from ..model import ExitStatus
from .base import RunContext, run_process


class ShellRunner:
    """uses = "shell": run args through the system shell inside the workspace."""

    def run(self, args: str, ctx: RunContext) -> ExitStatus:
        env = os.environ.copy()
        env.update(ctx.env)
        return run_process(args, ctx, shell=True, env=env)
