"""Error types raised by the engine, the steps and the API session."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class AutopilotError(Exception):
    """Base exception for all workflow errors.

    The engine annotates errors with the step that raised them, so an
    operator can see which declaration in the workflow file failed.
    """

    kind = "AutopilotError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.step_type: str | None = None
        self.step_name: str | None = None
        self.step_id: str | None = None
        self.step_index: int | None = None

    def annotate(
        self,
        step_type: str | None,
        step_name: str | None = None,
        step_id: str | None = None,
        step_index: int | None = None,
    ) -> "AutopilotError":
        """Attach step information unless a more specific step already did."""
        if self.step_type is None:
            self.step_type = step_type
            self.step_name = step_name
            self.step_id = step_id
        if self.step_index is None:
            self.step_index = step_index
        return self

    @property
    def step(self) -> str | None:
        if self.step_type is None:
            return None
        label = self.step_type
        if self.step_name and self.step_name != self.step_type:
            label += f": {self.step_name}"
        if self.step_id:
            label += f" ({self.step_id})"
        return label

    def details(self) -> dict[str, Any]:
        """Error-specific fields for reports."""
        return {}

    def describe(self) -> str:
        lines = [f"{self.kind}: {self.message}"]
        if self.step:
            lines.append(f"  Step: {self.step}")
        for key, value in self.details().items():
            if value is not None:
                lines.append(f"  {key.capitalize()}: {value}")
        return "\n".join(lines)


class ParameterError(AutopilotError):
    """A step is misconfigured (missing or invalid parameter)."""

    kind = "ParameterError"

    def __init__(
        self,
        message: str,
        wanted: list[str] | None = None,
        supplied: list[str] | None = None,
    ):
        super().__init__(message)
        self.wanted = wanted or []
        self.supplied = supplied or []


class ContextError(AutopilotError):
    """A context binding references a step id that is not available."""

    kind = "ContextError"

    def __init__(self, message: str, context_id: str | None = None):
        super().__init__(message)
        self.context_id = context_id


class CapabilityError(AutopilotError):
    """A step needs a remote operation the token does not grant."""

    kind = "CapabilityError"

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(message)
        self.operation = operation

    def details(self) -> dict[str, Any]:
        return {"operation": self.operation}


class LoadError(AutopilotError):
    """The workflow file or a step type could not be loaded."""

    kind = "LoadError"

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = errors or []


class TransportError(AutopilotError):
    """Network failure, or a request rejected locally before sending."""

    kind = "TransportError"

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        url: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.url = url
        self.status_code = status_code

    def details(self) -> dict[str, Any]:
        return {
            "operation": self.operation,
            "url": self.url,
            "status": self.status_code,
        }


class DomainError(AutopilotError):
    """The remote service reported a fault for an operation."""

    kind = "DomainError"

    def __init__(
        self,
        message: str,
        operation: str,
        path: str | None = None,
        code: str | None = None,
        info: str | None = None,
        data: str | None = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.path = path
        self.code = code
        self.info = info
        self.data = data

    def details(self) -> dict[str, Any]:
        return {
            "operation": self.operation,
            "path": self.path,
            "code": self.code,
            "info": self.info,
        }


class StepError(AutopilotError):
    """Unexpected exception raised by step code."""

    kind = "StepError"

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


@dataclass
class ErrorRecord:
    """Serialisable record of an error that terminated a run."""
    error_type: str
    message: str
    step: str | None = None
    step_index: int | None = None
    context: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_exception(cls, error: Exception) -> "ErrorRecord":
        if isinstance(error, AutopilotError):
            return cls(
                error_type=error.kind,
                message=error.message,
                step=error.step,
                step_index=error.step_index,
                context={k: v for k, v in error.details().items() if v is not None},
            )
        return cls(error_type=type(error).__name__, message=str(error))

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.error_type,
            "message": self.message,
            "step": self.step,
            "step_index": self.step_index,
            **self.context,
        }
