# dsl.py
from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Union

from .dag import Declaration
from .errors import ConfigError
from .model import Action, Event, Workflow


def _event(on: Union[str, Event], owner: str) -> Event:
    if isinstance(on, Event):
        return on
    try:
        return Event(on)
    except ValueError:
        raise ConfigError(
            f"workflow {owner!r}: unsupported event {on!r}",
            details=[f"Supported events: {', '.join(Event.names())}"],
        ) from None


def _names(value: Union[str, Sequence[str], None]) -> tuple[str, ...]:
    # resolves = "x" is shorthand for resolves = ["x"]
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(value)


def wf(
    name: str,
    *,
    on: Union[str, Event] = Event.PUSH,
    resolves: Union[str, Sequence[str], None] = None,
) -> Workflow:
    """Declare a workflow: wf("Quality", on="push", resolves=["check"])."""
    return Workflow(name=name, on=_event(on, name), resolves=_names(resolves))


def action(
    name: str,
    *,
    uses: str,
    args: str = "",
    needs: Union[str, Sequence[str], None] = None,
    resolves: Union[str, Sequence[str], None] = None,
    env: Optional[Dict[str, str]] = None,
) -> Action:
    """Declare an action: action("test", uses="shell", args="cargo test")."""
    if not uses:
        raise ConfigError(f"action {name!r} must set `uses`")
    return Action(
        name=name,
        uses=uses,
        args=args,
        needs=_names(needs),
        resolves=_names(resolves),
        env=env or {},
    )


def declare(*decls: Declaration) -> List[Declaration]:
    """
    Collect declarations in a workflow file:

        from actionci import action, declare, wf

        def declarations():
            return declare(
                wf("Quality", on="push", resolves=["test"]),
                action("test", uses="shell", args="cargo test"),
            )
    """
    return list(decls)
