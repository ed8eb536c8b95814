"""Base step class and specification types."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, TYPE_CHECKING

from .context import OutputMode
from .errors import CapabilityError, ContextError, ParameterError
from .spec import StepSpec

if TYPE_CHECKING:
    from ..api.session import ApiNamespace, MoodleSession


@dataclass
class ParamSpec:
    """Specification for a step parameter (the `with:` block)."""
    type: str  # "string", "integer", "boolean", "list", "dict", "any"
    required: bool = False
    default: Any = None
    description: str = ""
    choices: list[Any] | None = None  # Allowed values


@dataclass
class StepManifest:
    """Self-description of a step's interface."""
    type: str  # e.g., "course", "assignment/submissions"
    description: str
    params: dict[str, ParamSpec] = field(default_factory=dict)
    endpoints: list[str] = field(default_factory=list)
    exposes: dict[str, str] = field(default_factory=dict)
    context: dict[str, str] = field(default_factory=dict)  # alias -> what it must hold


class Step(ABC):
    """
    Base class for all workflow steps.

    Steps are the building blocks of workflows. Each step:
    - Declares its parameters, remote operations and outputs via describe()
    - Validates its parameters when constructed
    - Checks its remote operations against the session in bind_session()
    - Reads earlier outputs through resolve_context()
    - Does its work in run() and publishes results with expose()

    The engine drives the lifecycle; a step never sees the shared context
    or other steps directly.
    """

    def __init__(self, spec: StepSpec):
        self.spec = spec
        self.type = spec.type
        self.id = spec.id
        self.name = spec.display_name
        self.params: dict[str, Any] = dict(spec.params)
        self.context_wanted: dict[str, str] = dict(spec.context)
        self.context: Mapping[str, Any] = MappingProxyType({})
        self.session: "MoodleSession | None" = None
        self.output_mode = OutputMode.NORMAL
        self._output: dict[str, Any] = {}
        self._validate_params()

    @classmethod
    @abstractmethod
    def describe(cls) -> StepManifest:
        """Return the step's manifest describing its interface."""

    def get_required_params(self) -> list[str]:
        """Names of parameters that must appear in the `with:` block."""
        return [
            name for name, spec in self.describe().params.items()
            if spec.required
        ]

    def get_endpoints(self) -> list[str]:
        """Remote operations this step intends to call."""
        return list(self.describe().endpoints)

    def _validate_params(self) -> None:
        """Validate parameters against the manifest."""
        wanted = self.get_required_params()
        supplied = [name for name in wanted if name in self.params]

        if len(supplied) != len(wanted):
            raise ParameterError(
                "Required parameter missing\n"
                f"Wanted: {', '.join(wanted)}\n"
                f"Got: {', '.join(supplied) or 'nothing'}",
                wanted=wanted,
                supplied=list(self.params),
            ).annotate(self.type, self.name, self.id)

        for name, spec in self.describe().params.items():
            if name in self.params and spec.choices:
                if self.params[name] not in spec.choices:
                    raise ParameterError(
                        f"Parameter '{name}' must be one of {spec.choices}",
                    ).annotate(self.type, self.name, self.id)

    def get_param(self, key: str, default: Any = None) -> Any:
        """Get parameter value with fallback to spec default."""
        if key in self.params:
            return self.params[key]
        manifest = self.describe()
        if key in manifest.params and manifest.params[key].default is not None:
            return manifest.params[key].default
        return default

    # === Lifecycle ===

    def bind_session(self, session: "MoodleSession") -> None:
        """Attach the session, failing fast on missing remote operations."""
        for endpoint in self.get_endpoints():
            if not session.has_operation(endpoint):
                raise CapabilityError(
                    f"Remote operation '{endpoint}' is not enabled for this token",
                    operation=endpoint,
                )
        self.session = session

    def resolve_context(self, shared: Any) -> None:
        """Build this step's read-only view of earlier outputs."""
        self.context = shared.view(self.context_wanted)
        for alias, external_id in self.context_wanted.items():
            if alias != external_id:
                self.debug(f"Use context from {external_id} as {alias}")

    def require_context(self, alias: str) -> Any:
        """Return the output bound under `alias` or fail."""
        if alias not in self.context:
            raise ContextError(
                f"Step needs a context bound as '{alias}'",
                context_id=alias,
            )
        return self.context[alias]

    async def setup(self) -> None:
        """Hook called before run()."""

    @abstractmethod
    async def run(self) -> None:
        """Do the step's work."""

    async def cleanup(self) -> None:
        """Hook called after run(), also when run() failed."""

    def expose(self, name: str, value: Any) -> None:
        """Add or update one key of the step's pending output."""
        self._output[name] = value

    @property
    def output(self) -> dict[str, Any]:
        return self._output

    @property
    def api(self) -> "ApiNamespace":
        """Dynamic namespace of the bound session."""
        if self.session is None:
            raise CapabilityError("Step has no session bound")
        return self.session.api

    @property
    def label(self) -> str:
        label = self.type
        if self.name and self.name != self.type:
            label += f": {self.name}"
        if self.id:
            label += f" ({self.id})"
        return label

    # === Console output ===

    def report(self, message: str) -> None:
        """
        Print a message in NORMAL and DEBUG modes.

        Use for user-facing status messages like:
        - "Saved 24 grades for Essay 1"
        """
        if self.output_mode in (OutputMode.NORMAL, OutputMode.DEBUG):
            print(f"   {message}", flush=True)

    def debug(self, message: str) -> None:
        """Print a message only in DEBUG mode."""
        if self.output_mode == OutputMode.DEBUG:
            print(f"   [DEBUG] {message}", flush=True)

    def dump(self, data: Any) -> str:
        return json.dumps(data, indent=4, ensure_ascii=False, default=_jsonable)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(type={self.type!r}, id={self.id!r})"


def _jsonable(value: Any) -> Any:
    if isinstance(value, Mapping):
        return dict(value)
    return str(value)
