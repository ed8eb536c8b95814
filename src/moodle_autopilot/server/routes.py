"""API route handlers for the Moodle Autopilot service."""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request

from .. import __version__
from ..core import (
    AutopilotError,
    ErrorRecord,
    LoadError,
    OutputMode,
    StepRegistry,
    TraceLevel,
    WorkflowEngine,
    WorkflowSpec,
    parse_workflow,
    parse_workflow_text,
    validate_workflow,
)
from .models import (
    HealthResponse,
    StepInfo,
    StepListResponse,
    StepSchema,
    ValidationMessageModel,
    WorkflowExecuteRequest,
    WorkflowExecuteResponse,
    WorkflowValidateRequest,
    WorkflowValidationResult,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _load_document(workflow: dict[str, Any] | str) -> WorkflowSpec:
    # Text from a client is always a document, never a server-side path.
    if isinstance(workflow, str):
        return parse_workflow_text(workflow)
    return parse_workflow(workflow)


# === Health ===

@router.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check() -> HealthResponse:
    """Check service health."""
    from .app import get_uptime

    return HealthResponse(
        status="healthy",
        version=__version__,
        steps_available=len(StepRegistry.get_instance().list_types()),
        uptime_seconds=get_uptime(),
    )


# === Steps ===

@router.get("/steps", response_model=StepListResponse, tags=["Steps"])
async def list_steps() -> StepListResponse:
    """List all registered step types."""
    registry = StepRegistry.get_instance()
    steps = [
        StepInfo(type=step_type, description=registry.get_manifest(step_type)["description"])
        for step_type in registry.list_types()
    ]
    return StepListResponse(steps=steps, total=len(steps))


@router.get("/steps/{step_type:path}/schema", response_model=StepSchema, tags=["Steps"])
async def get_step_schema(step_type: str) -> StepSchema:
    """Get the full manifest of a step type."""
    manifest = StepRegistry.get_instance().get_manifest(step_type)
    if manifest is None:
        raise HTTPException(status_code=404, detail=f"Step type '{step_type}' not found")
    return StepSchema(**manifest)


# === Workflows ===

@router.post("/workflows/validate", response_model=WorkflowValidationResult, tags=["Workflows"])
async def validate(request: WorkflowValidateRequest) -> WorkflowValidationResult:
    """Validate a workflow without connecting to Moodle."""
    try:
        spec = _load_document(request.workflow)
    except LoadError as e:
        return WorkflowValidationResult(
            valid=False,
            errors=[
                ValidationMessageModel(level="error", message=message)
                for message in [e.message, *e.errors]
            ],
            warnings=[],
            step_count=0,
        )

    report = validate_workflow(spec)
    step_count = len(spec.steps) if report.valid else 0

    return WorkflowValidationResult(
        valid=report.valid,
        errors=[ValidationMessageModel(**m.to_dict()) for m in report.errors],
        warnings=[ValidationMessageModel(**m.to_dict()) for m in report.warnings],
        step_count=step_count,
    )


@router.post("/workflows/execute", response_model=WorkflowExecuteResponse, tags=["Workflows"])
async def execute(request: WorkflowExecuteRequest, http_request: Request) -> WorkflowExecuteResponse:
    """
    Run a workflow and wait for the result.

    Load and connection problems are reported as 400; failures during the
    run are reported in the response body with success=false.
    """
    engine = WorkflowEngine(output_mode=OutputMode.QUIET, trace_level=TraceLevel.ERRORS)

    try:
        engine.load_workflow(_load_document(request.workflow))
    except AutopilotError as e:
        raise HTTPException(status_code=400, detail=ErrorRecord.from_exception(e).to_dict())

    config = http_request.app.state.config
    url = request.url
    if url is None and engine.workflow.environment is None:
        url = config["moodle"]["url"]

    try:
        session = await engine.connect(
            request.token,
            url=url,
            timeout=config["moodle"]["timeout"],
            transport=http_request.app.state.transport,
        )
    except AutopilotError as e:
        logger.warning(f"Connect failed: {e.describe()}")
        raise HTTPException(status_code=400, detail=ErrorRecord.from_exception(e).to_dict())

    try:
        result = await engine.execute()
    finally:
        await session.close()

    return WorkflowExecuteResponse(
        success=result.success,
        context=json.loads(json.dumps(result.context, default=str)),
        steps_executed=result.steps_executed,
        duration_seconds=result.duration_seconds,
        errors=[record.to_dict() for record in result.errors],
    )


# === Docs ===

@router.get("/docs/steps", tags=["System"])
async def get_step_docs() -> dict:
    """Get generated step documentation in markdown."""
    registry = StepRegistry.get_instance()
    docs = registry.generate_docs()

    return {"format": "markdown", "content": docs}
