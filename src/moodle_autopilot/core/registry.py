"""Step registry for type-based instantiation."""

from __future__ import annotations

from typing import Type, TYPE_CHECKING

from .errors import LoadError
from .spec import StepSpec

if TYPE_CHECKING:
    from .step import Step


class StepRegistry:
    """
    Registry mapping step type strings to step classes.

    This allows workflows to reference steps by type string (e.g.,
    "assignment/submissions") and have the engine instantiate the correct
    class. Steps are registered explicitly; nothing is discovered from the
    filesystem.
    """

    _instance: "StepRegistry | None" = None

    def __init__(self):
        self._steps: dict[str, Type["Step"]] = {}

    @classmethod
    def get_instance(cls) -> "StepRegistry":
        """Get the singleton registry instance."""
        if cls._instance is None:
            cls._instance = StepRegistry()
        return cls._instance

    def register(self, step_type: str, step_class: Type["Step"]) -> None:
        """
        Register a step class under a type string.

        Args:
            step_type: Type identifier (e.g., "course")
            step_class: The step class to register
        """
        if step_type in self._steps:
            raise ValueError(f"Step type already registered: {step_type}")
        self._steps[step_type] = step_class

    def get(self, step_type: str) -> Type["Step"] | None:
        """Get a step class by type string."""
        return self._steps.get(step_type)

    def resolve(self, step_type: str) -> Type["Step"]:
        """Get a step class or fail with LoadError."""
        step_class = self.get(step_type)
        if step_class is None:
            available = ", ".join(self.list_types()) or "none"
            raise LoadError(
                f"Unknown step type: {step_type}",
                errors=[f"Available: {available}"],
            )
        return step_class

    def create(self, spec: StepSpec) -> "Step":
        """
        Create a step instance.

        Raises:
            LoadError: If the step type is not registered
            ParameterError: If the step's parameters are incomplete
        """
        step_class = self.resolve(spec.type)
        return step_class(spec)

    def list_types(self) -> list[str]:
        """List all registered step types."""
        return sorted(self._steps.keys())

    def get_manifest(self, step_type: str) -> dict | None:
        """Get the manifest for a step type."""
        step_class = self.get(step_type)
        if step_class is None:
            return None
        manifest = step_class.describe()
        return {
            "type": manifest.type,
            "description": manifest.description,
            "params": {k: {"type": v.type, "required": v.required, "default": v.default,
                           "description": v.description, "choices": v.choices}
                       for k, v in manifest.params.items()},
            "endpoints": list(manifest.endpoints),
            "exposes": dict(manifest.exposes),
            "context": dict(manifest.context),
        }

    def generate_docs(self) -> str:
        """Generate markdown documentation for registered steps."""
        lines = []

        for step_type in self.list_types():
            manifest = self.get_manifest(step_type)
            if not manifest:
                continue

            lines.append(f"### `{step_type}`")
            lines.append(f"{manifest['description']}\n")

            if manifest['params']:
                lines.append("**Parameters:**")
                for name, spec in manifest['params'].items():
                    req = " (required)" if spec['required'] else ""
                    default = f" = `{spec['default']}`" if spec['default'] is not None else ""
                    lines.append(f"- `{name}`: {spec['type']}{req}{default} - {spec['description']}")
                lines.append("")

            if manifest['context']:
                lines.append("**Context:**")
                for alias, desc in manifest['context'].items():
                    lines.append(f"- `{alias}`: {desc}")
                lines.append("")

            if manifest['endpoints']:
                lines.append("**Remote operations:**")
                for endpoint in manifest['endpoints']:
                    lines.append(f"- `{endpoint}`")
                lines.append("")

            if manifest['exposes']:
                lines.append("**Exposes:**")
                for name, desc in manifest['exposes'].items():
                    lines.append(f"- `{name}`: {desc}")
                lines.append("")

            lines.append("---\n")

        return "\n".join(lines)


def register_step(step_type: str):
    """
    Decorator to register a step class with the default registry.

    Usage:
        @register_step("course")
        class CourseStep(Step):
            ...
    """
    def decorator(cls: Type["Step"]) -> Type["Step"]:
        StepRegistry.get_instance().register(step_type, cls)
        return cls
    return decorator
