"""Workflow file model.

A workflow file is YAML::

    environment:
      url: https://moodle.example.edu
    workflow:
      - use: course
        id: course
        with:
          name: STAT 101
      - use: log
        context: course
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .errors import LoadError


class EnvironmentSpec(BaseModel):
    """Where the workflow runs."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    url: str


class StepSpec(BaseModel):
    """One declared step of a workflow."""
    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    type: str = Field(validation_alias=AliasChoices("use", "type"))
    id: str | None = None
    name: str | None = None
    params: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("with", "params"),
    )
    # alias -> external step id
    context: dict[str, str] = Field(default_factory=dict)

    @field_validator("params", mode="before")
    @classmethod
    def _params_default(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("context", mode="before")
    @classmethod
    def _normalise_context(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, str):
            return {value: value}
        if isinstance(value, (list, tuple)):
            return {str(ctx): str(ctx) for ctx in value}
        return value

    @property
    def display_name(self) -> str:
        return self.name or self.type


class WorkflowSpec(BaseModel):
    """An ordered, immutable list of step declarations."""
    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    name: str | None = None
    description: str = ""
    environment: EnvironmentSpec | None = None
    steps: list[StepSpec] = Field(validation_alias=AliasChoices("workflow", "steps"))

    @model_validator(mode="after")
    def _unique_ids(self) -> "WorkflowSpec":
        seen: set[str] = set()
        for step in self.steps:
            if step.id is None:
                continue
            if step.id in seen:
                raise ValueError(f"Duplicate step id: {step.id}")
            seen.add(step.id)
        return self


def parse_workflow(data: Any) -> WorkflowSpec:
    """Validate an already-parsed workflow document."""
    if isinstance(data, WorkflowSpec):
        return data
    if not isinstance(data, dict):
        raise LoadError("Workflow must be a mapping with a 'workflow' list")
    try:
        return WorkflowSpec.model_validate(data)
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        ]
        raise LoadError("Invalid workflow", errors=errors) from e


def parse_workflow_text(text: str) -> WorkflowSpec:
    """Parse a YAML workflow document; never touches the filesystem."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise LoadError(f"Workflow is not valid YAML: {e}") from e
    return parse_workflow(data)


def load_workflow(source: WorkflowSpec | dict | str | Path) -> WorkflowSpec:
    """
    Load a workflow from a spec, a dict, YAML text or a file path.

    A string is read as a file when it is a single line naming an existing
    file; otherwise it is parsed as YAML. A single line that does not parse
    to a mapping is reported as a missing file.
    """
    if isinstance(source, (WorkflowSpec, dict)):
        return parse_workflow(source)

    single_line = isinstance(source, str) and "\n" not in source
    if isinstance(source, Path) or (single_line and _is_file(source)):
        path = Path(source)
        if not path.exists():
            raise LoadError(f"Workflow file not found: {path}")
        return parse_workflow_text(path.read_text(encoding="utf-8"))

    if not single_line:
        return parse_workflow_text(source)

    try:
        data = yaml.safe_load(source)
    except yaml.YAMLError as e:
        raise LoadError(f"Workflow file not found: {source}") from e
    if not isinstance(data, dict):
        raise LoadError(f"Workflow file not found: {source}")
    return parse_workflow(data)


def _is_file(source: str) -> bool:
    try:
        return Path(source).is_file()
    except (OSError, ValueError):
        return False
