# triggers.py
from __future__ import annotations

from typing import List, Union

from .dag import WorkflowGraph
from .errors import ConfigError
from .model import Event, Workflow


def parse_event(event: Union[str, Event]) -> Event:
    """Normalise an event name ("push", "Push ") into an Event."""
    if isinstance(event, Event):
        return event
    try:
        return Event(event.strip().lower())
    except ValueError:
        raise ConfigError(
            f"Unsupported event: {event!r}",
            details=[f"Supported events: {', '.join(Event.names())}"],
        ) from None


def match_workflows(graph: WorkflowGraph, event: Union[str, Event]) -> List[Workflow]:
    """Workflows whose `on` filter matches `event`, ordered by name. No side effects."""
    ev = parse_event(event)
    return sorted(
        (wf for wf in graph.workflows.values() if wf.on == ev),
        key=lambda wf: wf.name,
    )
