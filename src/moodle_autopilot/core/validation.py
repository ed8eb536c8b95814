"""Pre-runtime validation for workflows."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .errors import AutopilotError, LoadError
from .registry import StepRegistry
from .spec import WorkflowSpec, load_workflow


@dataclass
class ValidationMessage:
    """A validation message (error or warning)."""
    level: str  # "error", "warning", "info"
    message: str
    location: str | None = None
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        icon = {"error": "✗", "warning": "⚠", "info": "ℹ"}.get(self.level, "•")
        lines = [f"{icon} {self.message}"]
        if self.location:
            lines.append(f"  Location: {self.location}")
        if self.suggestion:
            lines.append(f"  Suggestion: {self.suggestion}")
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level,
            "message": self.message,
            "location": self.location,
            "suggestion": self.suggestion,
        }


@dataclass
class ValidationReport:
    """Complete validation report for a workflow."""
    valid: bool
    messages: list[ValidationMessage] = field(default_factory=list)

    @property
    def errors(self) -> list[ValidationMessage]:
        return [m for m in self.messages if m.level == "error"]

    @property
    def warnings(self) -> list[ValidationMessage]:
        return [m for m in self.messages if m.level == "warning"]

    def format(self) -> str:
        """Format the report as a string."""
        if not self.messages:
            return "✓ Validation passed with no issues"

        lines = []
        if self.errors:
            lines.append(f"Errors ({len(self.errors)}):")
            for msg in self.errors:
                lines.append(f"  {msg}")
        if self.warnings:
            lines.append(f"\nWarnings ({len(self.warnings)}):")
            for msg in self.warnings:
                lines.append(f"  {msg}")

        status = "FAILED" if not self.valid else "PASSED with warnings"
        lines.insert(0, f"Validation {status}")
        lines.insert(1, "=" * 50)

        return "\n".join(lines)


class WorkflowValidator:
    """
    Validates workflows without touching the network.

    Checks:
    1. Schema validity - the file parses and step ids are unique
    2. Step existence - every `use:` names a registered step type
    3. Parameters - required parameters present, choices respected
    4. Context - every binding names a step declared earlier
    """

    def __init__(self, registry: StepRegistry | None = None):
        self.registry = registry or StepRegistry.get_instance()
        self.messages: list[ValidationMessage] = []

    def validate(self, workflow: WorkflowSpec | dict | str | Path) -> ValidationReport:
        """Run all validations and return a report."""
        self.messages = []

        try:
            spec = load_workflow(workflow)
        except LoadError as e:
            self._add_error(e.message)
            for detail in e.errors:
                self._add_error(detail)
            return self._report()

        if spec.environment is None:
            self._add_warning(
                "Workflow has no 'environment' section",
                suggestion="Add 'environment: {url: ...}' or pass the URL on the command line",
            )

        declared = {step.id: index for index, step in enumerate(spec.steps) if step.id}

        for index, step_spec in enumerate(spec.steps):
            location = f"workflow[{index}]"
            self._validate_context(step_spec, index, location, declared)

            step_class = self.registry.get(step_spec.type)
            if step_class is None:
                available = self.registry.list_types()
                similar = [t for t in available if step_spec.type.split("/")[-1] in t]
                self._add_error(
                    f"Unknown step type: '{step_spec.type}'",
                    location=location,
                    suggestion=f"Similar types: {similar}" if similar else f"Available: {available}",
                )
                continue

            try:
                step_class(step_spec)
            except AutopilotError as e:
                self._add_error(e.message, location=f"{location}.with")
                continue

            manifest = step_class.describe()
            if manifest.exposes and not step_spec.id:
                self._add_warning(
                    f"Step '{step_spec.display_name}' exposes output but has no id",
                    location=location,
                    suggestion=f"Add 'id:' so later steps can read {sorted(manifest.exposes)}",
                )
            for alias in manifest.context:
                if alias not in step_spec.context:
                    self._add_warning(
                        f"Step '{step_spec.display_name}' reads context '{alias}' but binds none",
                        location=f"{location}.context",
                    )

        return self._report()

    def _validate_context(
        self,
        step_spec: Any,
        index: int,
        location: str,
        declared: dict[str, int],
    ) -> None:
        for alias, external_id in step_spec.context.items():
            if external_id not in declared:
                self._add_error(
                    f"Context '{external_id}' is not declared by any step",
                    location=f"{location}.context.{alias}",
                    suggestion=f"Declared ids: {sorted(declared)}",
                )
            elif declared[external_id] >= index:
                self._add_error(
                    f"Context '{external_id}' is declared by a later step",
                    location=f"{location}.context.{alias}",
                    suggestion=f"Move step workflow[{declared[external_id]}] before this one",
                )

    def _report(self) -> ValidationReport:
        return ValidationReport(
            valid=not any(m.level == "error" for m in self.messages),
            messages=self.messages,
        )

    def _add_error(self, message: str, location: str = None, suggestion: str = None, **context):
        self.messages.append(ValidationMessage(
            level="error",
            message=message,
            location=location,
            suggestion=suggestion,
            context=context
        ))

    def _add_warning(self, message: str, location: str = None, suggestion: str = None, **context):
        self.messages.append(ValidationMessage(
            level="warning",
            message=message,
            location=location,
            suggestion=suggestion,
            context=context
        ))


def validate_workflow(
    workflow: WorkflowSpec | dict | str | Path,
    registry: StepRegistry | None = None,
) -> ValidationReport:
    """Convenience function to validate a workflow."""
    return WorkflowValidator(registry).validate(workflow)
