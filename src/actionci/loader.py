# loader.py
from __future__ import annotations

import json
import runpy
import shlex
from pathlib import Path
from typing import Any, Dict, List, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .dag import Declaration, WorkflowGraph, build_graph
from .errors import ConfigError
from .model import Action, Event, Workflow


# ----------------------------------------------------------------------
# Raw declaration schema
# ----------------------------------------------------------------------
# Mirrors the block structure of a workflow file:
#
#   {
#     "workflow": {"Quality": {"on": "push", "resolves": ["test"]}},
#     "action":   {"test": {"uses": "shell", "args": "cargo test"}}
#   }


class WorkflowBlock(BaseModel):
    model_config = ConfigDict(extra="forbid")

    on: Event
    resolves: List[str] = Field(default_factory=list)

    @field_validator("resolves", mode="before")
    @classmethod
    def one_or_many(cls, value: Any) -> Any:
        # resolves = "x" is shorthand for resolves = ["x"]
        if isinstance(value, str):
            return [value]
        return value


class ActionBlock(BaseModel):
    model_config = ConfigDict(extra="forbid")

    uses: str = Field(min_length=1)
    args: str = ""
    needs: List[str] = Field(default_factory=list)
    resolves: List[str] = Field(default_factory=list)
    env: Dict[str, str] = Field(default_factory=dict)

    @field_validator("needs", "resolves", mode="before")
    @classmethod
    def one_or_many(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value]
        return value

    @field_validator("args", mode="before")
    @classmethod
    def join_args(cls, value: Any) -> Any:
        # args = ["cargo", "test"] is accepted and quoted back into one string
        if isinstance(value, list) and all(isinstance(v, str) for v in value):
            return shlex.join(value)
        return value


class DeclarationDocument(BaseModel):
    model_config = ConfigDict(extra="forbid")

    workflow: Dict[str, WorkflowBlock] = Field(default_factory=dict)
    action: Dict[str, ActionBlock] = Field(default_factory=dict)


def _validation_details(err: ValidationError) -> List[str]:
    details = []
    for e in err.errors():
        loc = ".".join(str(p) for p in e.get("loc", ()))
        details.append(f"{loc}: {e.get('msg')}")
    return details


def parse_declarations(raw: Mapping[str, Any]) -> List[Declaration]:
    """Validate a raw declaration mapping and turn it into model objects."""
    if not isinstance(raw, Mapping):
        raise ConfigError("Declarations must be a mapping with 'workflow' and 'action' blocks")
    try:
        doc = DeclarationDocument.model_validate(dict(raw))
    except ValidationError as e:
        raise ConfigError("Malformed declarations", details=_validation_details(e)) from None

    decls: List[Declaration] = []
    for name, block in doc.workflow.items():
        decls.append(Workflow(name=name, on=block.on, resolves=tuple(block.resolves)))
    for name, block in doc.action.items():
        decls.append(
            Action(
                name=name,
                uses=block.uses,
                args=block.args,
                needs=tuple(block.needs),
                resolves=tuple(block.resolves),
                env=block.env,
            )
        )
    return decls


# ----------------------------------------------------------------------
# Workflow file loading
# ----------------------------------------------------------------------

def _load_python(path: Path) -> List[Declaration]:
    module_name = f"actionci_workflow_{path.stem}"
    globals_dict = runpy.run_path(str(path), run_name=module_name)

    decls: Any = None
    if "declarations" in globals_dict and callable(globals_dict["declarations"]):
        decls = globals_dict["declarations"]()
    elif "DECLARATIONS" in globals_dict:
        decls = globals_dict["DECLARATIONS"]

    if not isinstance(decls, list) or not all(isinstance(d, (Workflow, Action)) for d in decls):
        raise ConfigError(
            f"{path.name} does not define any declarations",
            details=[
                "Define declarations() -> list of wf(...)/action(...) objects",
                "or DECLARATIONS = [wf(...), action(...)].",
            ],
        )
    return decls


def _load_json(path: Path) -> List[Declaration]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"{path.name} is not valid JSON", details=[str(e)]) from None
    return parse_declarations(raw)


def load_declarations(path: Union[str, Path]) -> List[Declaration]:
    """
    Load declarations from a workflow file.

    Supported:
      - *.py   defining declarations() or DECLARATIONS
      - *.json in the {"workflow": {...}, "action": {...}} layout
    """
    wf_path = Path(path).expanduser().resolve()
    if not wf_path.exists():
        raise FileNotFoundError(f"Workflow file not found: {wf_path}")

    if wf_path.suffix == ".py":
        return _load_python(wf_path)
    if wf_path.suffix == ".json":
        return _load_json(wf_path)
    raise ConfigError(f"Workflow must be a .py or .json file, got: {wf_path.name}")


def load_graph(path: Union[str, Path]) -> WorkflowGraph:
    return build_graph(load_declarations(path))
