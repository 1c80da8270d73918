from .dag import WorkflowGraph, build_graph
from .dsl import action, declare, wf
from .engine import Engine
from .errors import ActionReferenceError, ConfigError, CycleError, ExecutionError
from .loader import load_declarations, load_graph
from .model import Action, ActionState, Event, Workflow
from .runner import run_workflow
from .triggers import match_workflows

__all__ = [
    "Action",
    "ActionReferenceError",
    "ActionState",
    "ConfigError",
    "CycleError",
    "Engine",
    "Event",
    "ExecutionError",
    "Workflow",
    "WorkflowGraph",
    "action",
    "build_graph",
    "declare",
    "load_declarations",
    "load_graph",
    "match_workflows",
    "run_workflow",
    "wf",
]
