"""Resolution of an action's `uses` reference to a runner implementation."""

from __future__ import annotations

from typing import Callable, Dict, List, Mapping, Optional, Tuple

from ..errors import ConfigError
from .base import ActionRunner, RunContext, run_process
from .docker import PREFIX as DOCKER_PREFIX, DockerRunner
from .shell import ShellRunner

RunnerFactory = Callable[[str], ActionRunner]


class RunnerRegistry:
    """
    Maps `uses` references to runners.

    Lookup order:
      1. aliases (exact reference -> another reference, one hop)
      2. exact registrations ("shell")
      3. prefix registrations ("docker://")
    """

    def __init__(self, aliases: Optional[Mapping[str, str]] = None):
        self.aliases: Dict[str, str] = dict(aliases or {})
        self._exact: Dict[str, RunnerFactory] = {}
        self._prefixes: List[Tuple[str, RunnerFactory]] = []

    def register(self, uses: str, factory: RunnerFactory) -> None:
        self._exact[uses] = factory

    def register_prefix(self, prefix: str, factory: RunnerFactory) -> None:
        self._prefixes.append((prefix, factory))

    def resolve(self, uses: str) -> ActionRunner:
        target = self.aliases.get(uses, uses)
        if target in self._exact:
            return self._exact[target](target)
        for prefix, factory in self._prefixes:
            if target.startswith(prefix):
                return factory(target)

        supported = sorted(self._exact) + [f"{p}<...>" for p, _ in self._prefixes]
        raise ConfigError(
            f"No runner for uses = {uses!r}",
            details=[
                f"Supported: {', '.join(supported)}",
                f'Map it in .actionci.json: {{"aliases": {{"{uses}": "shell"}}}}',
            ],
        )


def default_registry(aliases: Optional[Mapping[str, str]] = None) -> RunnerRegistry:
    registry = RunnerRegistry(aliases)
    registry.register("shell", lambda _uses: ShellRunner())
    registry.register_prefix(DOCKER_PREFIX, DockerRunner.from_reference)
    return registry


__all__ = [
    "ActionRunner",
    "DockerRunner",
    "RunContext",
    "RunnerRegistry",
    "ShellRunner",
    "default_registry",
    "run_process",
]
