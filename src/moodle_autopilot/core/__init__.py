"""Core workflow execution framework."""

from .step import (
    Step,
    StepManifest,
    ParamSpec,
)
from .registry import StepRegistry, register_step
from .context import OutputMode, WorkflowContext
from .errors import (
    AutopilotError,
    ParameterError,
    ContextError,
    CapabilityError,
    LoadError,
    TransportError,
    DomainError,
    StepError,
    ErrorRecord,
)
from .spec import (
    EnvironmentSpec,
    StepSpec,
    WorkflowSpec,
    load_workflow,
    parse_workflow,
    parse_workflow_text,
)
from .engine import WorkflowEngine, ExecutionResult
from .tracing import ExecutionTracer, TraceLevel, StepTrace
from .validation import (
    WorkflowValidator,
    ValidationReport,
    ValidationMessage,
    validate_workflow,
)

__all__ = [
    # Step
    "Step",
    "StepManifest",
    "ParamSpec",
    # Registry
    "StepRegistry",
    "register_step",
    # Context
    "OutputMode",
    "WorkflowContext",
    # Errors
    "AutopilotError",
    "ParameterError",
    "ContextError",
    "CapabilityError",
    "LoadError",
    "TransportError",
    "DomainError",
    "StepError",
    "ErrorRecord",
    # Workflow files
    "EnvironmentSpec",
    "StepSpec",
    "WorkflowSpec",
    "load_workflow",
    "parse_workflow",
    "parse_workflow_text",
    # Engine
    "WorkflowEngine",
    "ExecutionResult",
    # Tracing
    "ExecutionTracer",
    "TraceLevel",
    "StepTrace",
    # Validation
    "WorkflowValidator",
    "ValidationReport",
    "ValidationMessage",
    "validate_workflow",
]
