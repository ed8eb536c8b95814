"""Pydantic models for the Moodle Autopilot API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


# === Workflow Models ===

class WorkflowValidateRequest(BaseModel):
    """A workflow document, as YAML text or already parsed."""
    workflow: dict[str, Any] | str


class ValidationMessageModel(BaseModel):
    level: str
    message: str
    location: str | None = None
    suggestion: str | None = None


class WorkflowValidationResult(BaseModel):
    """Result of statically validating a workflow."""
    valid: bool
    errors: list[ValidationMessageModel] = Field(default_factory=list)
    warnings: list[ValidationMessageModel] = Field(default_factory=list)
    step_count: int = 0


# === Execution Models ===

class WorkflowExecuteRequest(BaseModel):
    """Request to run a workflow against a Moodle instance."""
    workflow: dict[str, Any] | str
    token: str = Field(min_length=1)
    url: str | None = None


class WorkflowExecuteResponse(BaseModel):
    """Response from workflow execution."""
    success: bool
    context: dict[str, Any] = Field(default_factory=dict)
    steps_executed: int = 0
    duration_seconds: float = 0.0
    errors: list[dict[str, Any]] = Field(default_factory=list)


# === Step Models ===

class StepInfo(BaseModel):
    """Summary info about a step type."""
    type: str
    description: str


class StepSchema(BaseModel):
    """Full step manifest."""
    type: str
    description: str
    params: dict[str, dict[str, Any]] = Field(default_factory=dict)
    endpoints: list[str] = Field(default_factory=list)
    exposes: dict[str, str] = Field(default_factory=dict)
    context: dict[str, str] = Field(default_factory=dict)


class StepListResponse(BaseModel):
    """Response listing the registered step types."""
    steps: list[StepInfo]
    total: int


# === Health Check ===

class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "healthy"
    version: str = "0.1.0"
    steps_available: int = 0
    uptime_seconds: float = 0.0
