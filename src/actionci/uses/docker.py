# uses/docker.py
from __future__ import annotations

import shutil
from typing import List

from ..errors import ConfigError, ExecutionError
from ..model import ExitStatus
from .base import RunContext, run_process

PREFIX = "docker://"
CONTAINER_WORKDIR = "/github/workspace"
DOCKER_HINT = "Install Docker and ensure the daemon is running."


class DockerRunner:
    """uses = "docker://<image>": run args with `sh -c` in a throwaway container."""

    def __init__(self, image: str):
        if not image:
            raise ConfigError("docker:// reference is missing an image name")
        self.image = image

    @classmethod
    def from_reference(cls, uses: str) -> "DockerRunner":
        return cls(uses[len(PREFIX):] if uses.startswith(PREFIX) else uses)

    def command(self, args: str, ctx: RunContext) -> List[str]:
        # Volume mount: workspace -> /github/workspace
        cmd = [
            "docker", "run", "--rm",
            "-v", f"{ctx.workspace.resolve()}:{CONTAINER_WORKDIR}",
            "-w", CONTAINER_WORKDIR,
        ]
        for key, value in sorted(ctx.env.items()):
            cmd.extend(["-e", f"{key}={value}"])
        cmd.append(self.image)
        if args:
            cmd.extend(["sh", "-c", args])
        return cmd

    def run(self, args: str, ctx: RunContext) -> ExitStatus:
        if shutil.which("docker") is None:
            raise ExecutionError(
                action=ctx.env.get("ACTIONCI_ACTION", ""),
                command=args,
                exit_code=127,
                reason=DOCKER_HINT,
            )
        return run_process(self.command(args, ctx), ctx)
