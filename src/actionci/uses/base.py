# uses/base.py
from __future__ import annotations

import os
import signal
import subprocess
import tempfile
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Union

from ..model import ExitStatus

# Keep the tail of the output so the console can show it on failure
LOG_TAIL = 4000
POLL_INTERVAL = 0.1
TIMEOUT_EXIT_CODE = 124


@dataclass
class RunContext:
    """Everything a runner gets besides the action's args."""
    workspace: Path
    env: Dict[str, str] = field(default_factory=dict)
    cancel: Optional[threading.Event] = None
    timeout: Optional[float] = None


class ActionRunner(Protocol):
    """Capability interface: one implementation per supported `uses` source."""

    def run(self, args: str, ctx: RunContext) -> ExitStatus:
        ...


def _terminate(proc: subprocess.Popen) -> None:
    # the child runs in its own session so the whole process group goes down
    try:
        os.killpg(proc.pid, signal.SIGTERM)
    except ProcessLookupError:
        return
    try:
        proc.wait(timeout=5)
    except subprocess.TimeoutExpired:
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass


def run_process(
    cmd: Union[str, List[str]],
    ctx: RunContext,
    *,
    shell: bool = False,
    env: Optional[Dict[str, str]] = None,
) -> ExitStatus:
    """
    Run a command to completion in ctx.workspace.

    Output (stdout + stderr) goes to a temp file rather than a pipe, so long
    running commands can't block on a full buffer while we poll for
    cancellation and timeout.
    """
    start = time.monotonic()
    timed_out = False
    cancelled = False

    with tempfile.TemporaryFile() as out:
        proc = subprocess.Popen(
            cmd,
            shell=shell,
            cwd=str(ctx.workspace),
            env=env,
            stdout=out,
            stderr=subprocess.STDOUT,
            start_new_session=True,
        )

        while True:
            try:
                code = proc.wait(timeout=POLL_INTERVAL)
                break
            except subprocess.TimeoutExpired:
                pass

            if cancelled or timed_out:
                continue
            if ctx.cancel is not None and ctx.cancel.is_set():
                cancelled = True
                _terminate(proc)
            elif ctx.timeout is not None and time.monotonic() - start > ctx.timeout:
                timed_out = True
                _terminate(proc)

        out.seek(0)
        log = out.read().decode("utf-8", errors="replace")[-LOG_TAIL:]

    if timed_out:
        code = TIMEOUT_EXIT_CODE
        log += f"\n[actionci] timed out after {ctx.timeout}s"

    return ExitStatus(
        code=code,
        log=log,
        duration=time.monotonic() - start,
        timed_out=timed_out,
        cancelled=cancelled,
    )
