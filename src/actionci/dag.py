# dag.py
from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Iterator, List, Mapping, Set, Tuple, Union

from .errors import ActionReferenceError, ConfigError, CycleError
from .model import Action, Workflow

Declaration = Union[Workflow, Action]


@dataclass(frozen=True)
class WorkflowGraph:
    """
    Validated, immutable view of all loaded workflows and actions.

    Built once by build_graph() and handed by reference to the matcher and the
    scheduler. Edges point from an action to the actions that run after it.
    """
    workflows: Mapping[str, Workflow]
    actions: Mapping[str, Action]
    edges: Mapping[str, FrozenSet[str]]       # action -> dependents
    reverse: Mapping[str, FrozenSet[str]]     # action -> prerequisites

    def downstream(self, name: str) -> FrozenSet[str]:
        return self.edges[name]

    def upstream(self, name: str) -> FrozenSet[str]:
        return self.reverse[name]

    def descendants(self, name: str) -> Set[str]:
        """Every action transitively downstream of `name` (not including it)."""
        seen: Set[str] = set()
        stack = list(self.edges[name])
        while stack:
            node = stack.pop()
            if node in seen:
                continue
            seen.add(node)
            stack.extend(self.edges[node])
        return seen

    def actions_for(self, workflow: str | Workflow) -> List[str]:
        """
        Action set of a workflow: its `resolves` entries, everything they
        trigger, and every prerequisite those actions need.
        """
        wf = self.workflows[workflow] if isinstance(workflow, str) else workflow
        triggered: Set[str] = set()
        stack = list(wf.resolves)
        while stack:
            node = stack.pop()
            if node in triggered:
                continue
            triggered.add(node)
            stack.extend(self.edges[node])

        # prerequisites only; their other dependents stay out
        seen = set(triggered)
        stack = [up for node in triggered for up in self.reverse[node]]
        while stack:
            node = stack.pop()
            if node in seen:
                continue
            seen.add(node)
            stack.extend(self.reverse[node])
        return sorted(seen)

    def topo_levels(self, names: Iterable[str]) -> List[List[str]]:
        """
        Topological "levels" of the subgraph induced by `names`.
        Each level can run in parallel.
        """
        subset = set(names)
        indeg = {n: len(self.reverse[n] & subset) for n in subset}
        q = deque(sorted(n for n, d in indeg.items() if d == 0))

        levels: List[List[str]] = []
        processed = 0
        while q:
            level: List[str] = []
            for _ in range(len(q)):
                node = q.popleft()
                level.append(node)
                processed += 1
                for child in sorted(self.edges[node] & subset):
                    indeg[child] -= 1
                    if indeg[child] == 0:
                        q.append(child)
            levels.append(level)

        if processed != len(subset):
            # build_graph already rejects cycles; reaching this is a bug
            stuck = sorted(n for n, d in indeg.items() if d > 0)
            raise CycleError(stuck)
        return levels

    def plan(self, workflow: str | Workflow) -> List[List[str]]:
        return self.topo_levels(self.actions_for(workflow))


def _find_cycle(nodes: Iterable[str], edges: Mapping[str, Iterable[str]]) -> List[str] | None:
    """
    Depth-first search with recursion-stack marking.
    Returns the first cycle found as a path (first node repeated at the end).

    Iterative: path length is not bounded by the recursion limit.
    """
    WHITE, GRAY, BLACK = 0, 1, 2
    color: Dict[str, int] = {n: WHITE for n in nodes}

    for start in sorted(color):
        if color[start] != WHITE:
            continue
        color[start] = GRAY
        # stack of (node, iterator over its remaining children); the nodes on
        # it are exactly the current DFS path
        stack: List[Tuple[str, Iterator[str]]] = [(start, iter(sorted(edges[start])))]
        while stack:
            node, children = stack[-1]
            nxt = next(children, None)
            if nxt is None:
                color[node] = BLACK
                stack.pop()
                continue
            if color[nxt] == GRAY:
                path = [n for n, _ in stack]
                return path[path.index(nxt):] + [nxt]
            if color[nxt] == WHITE:
                color[nxt] = GRAY
                stack.append((nxt, iter(sorted(edges[nxt]))))
    return None


def build_graph(declarations: Iterable[Declaration]) -> WorkflowGraph:
    """
    Build the workflow graph from Workflow/Action declarations.

    Raises:
      ConfigError:          duplicate names, unknown declaration objects
      ActionReferenceError: resolves/needs naming an undeclared action
      CycleError:           circular dependencies between actions
    """
    workflows: Dict[str, Workflow] = {}
    actions: Dict[str, Action] = {}

    for decl in declarations:
        if isinstance(decl, Workflow):
            if decl.name in workflows:
                raise ConfigError(f"Duplicate workflow name: {decl.name}")
            workflows[decl.name] = decl
        elif isinstance(decl, Action):
            if decl.name in actions:
                raise ConfigError(f"Duplicate action name: {decl.name}")
            actions[decl.name] = decl
        else:
            raise ConfigError(
                f"Unsupported declaration {decl!r}",
                details=["Expected Workflow or Action objects."],
            )

    known = list(actions)
    for wf in workflows.values():
        for target in wf.resolves:
            if target not in actions:
                raise ActionReferenceError(f"workflow {wf.name}", target, known)

    edges: Dict[str, Set[str]] = {n: set() for n in actions}
    reverse: Dict[str, Set[str]] = {n: set() for n in actions}

    for a in actions.values():
        for target in a.resolves:
            if target not in actions:
                raise ActionReferenceError(f"action {a.name}", target, known)
            edges[a.name].add(target)
            reverse[target].add(a.name)
        for dep in a.needs:
            if dep not in actions:
                raise ActionReferenceError(f"action {a.name}", dep, known)
            edges[dep].add(a.name)
            reverse[a.name].add(dep)

    cycle = _find_cycle(actions, edges)
    if cycle:
        raise CycleError(cycle)

    return WorkflowGraph(
        workflows=MappingProxyType(dict(workflows)),
        actions=MappingProxyType(dict(actions)),
        edges=MappingProxyType({k: frozenset(v) for k, v in edges.items()}),
        reverse=MappingProxyType({k: frozenset(v) for k, v in reverse.items()}),
    )
