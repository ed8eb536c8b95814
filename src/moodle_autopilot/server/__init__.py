"""Moodle Autopilot HTTP Service."""

from .app import create_app
from .models import (
    HealthResponse,
    StepInfo,
    StepListResponse,
    StepSchema,
    WorkflowExecuteRequest,
    WorkflowExecuteResponse,
    WorkflowValidateRequest,
    WorkflowValidationResult,
)

__all__ = [
    "create_app",
    "HealthResponse",
    "StepInfo",
    "StepListResponse",
    "StepSchema",
    "WorkflowExecuteRequest",
    "WorkflowExecuteResponse",
    "WorkflowValidateRequest",
    "WorkflowValidationResult",
]
