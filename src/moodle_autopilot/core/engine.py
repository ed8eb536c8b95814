"""Workflow execution engine."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TYPE_CHECKING

from .context import OutputMode, WorkflowContext
from .errors import (
    AutopilotError,
    ErrorRecord,
    LoadError,
    StepError,
    TransportError,
)
from .registry import StepRegistry
from .spec import WorkflowSpec, load_workflow
from .step import Step
from .tracing import ExecutionTracer, StepTrace, TraceLevel

if TYPE_CHECKING:
    import httpx

    from ..api.session import MoodleSession

logger = logging.getLogger(__name__)


@dataclass
class ExecutionResult:
    """Result of executing a workflow."""
    success: bool
    context: dict[str, Any] = field(default_factory=dict)
    error: AutopilotError | None = None
    errors: list[ErrorRecord] = field(default_factory=list)
    steps_executed: int = 0
    duration_seconds: float = 0.0
    traces: list[StepTrace] = field(default_factory=list)

    def raise_for_error(self) -> None:
        """Re-raise the error that terminated the run, if any."""
        if self.error is not None:
            raise self.error


class WorkflowEngine:
    """
    Executes workflows.

    The engine owns the ordering and the shared context. It:

    1. Loads a workflow (YAML file, text, dict or WorkflowSpec)
    2. Resolves every step type in the registry, then constructs the steps
    3. Connects the session (one discovery call)
    4. Runs the steps strictly one after another, publishing each step's
       exposed output under its id

    The first failure stops the run. Nothing is retried and nothing that
    completed steps changed on the remote side is undone.
    """

    def __init__(
        self,
        registry: StepRegistry | None = None,
        output_mode: OutputMode = OutputMode.NORMAL,
        trace_level: TraceLevel = TraceLevel.STEPS,
    ):
        self.registry = registry or StepRegistry.get_instance()
        self.output_mode = output_mode
        self.tracer = ExecutionTracer(level=trace_level)
        self.workflow: WorkflowSpec | None = None
        self.steps: list[Step] = []
        self.session: "MoodleSession | None" = None
        self.context = WorkflowContext()
        self._executed = False

    def load_workflow(self, workflow: WorkflowSpec | dict | str | Path) -> None:
        """Load a workflow and construct its steps."""
        self.workflow = load_workflow(workflow)
        self.steps = self._instantiate_steps(self.workflow)
        self._executed = False

    def _instantiate_steps(self, workflow: WorkflowSpec) -> list[Step]:
        """Create step instances from the workflow declarations."""
        # all types must resolve before any step validates its parameters
        classes = []
        for index, spec in enumerate(workflow.steps):
            try:
                classes.append(self.registry.resolve(spec.type))
            except LoadError as e:
                raise e.annotate(spec.type, spec.display_name, spec.id, index)

        steps = []
        for index, (spec, step_class) in enumerate(zip(workflow.steps, classes)):
            try:
                steps.append(step_class(spec))
            except AutopilotError as e:
                raise e.annotate(spec.type, spec.display_name, spec.id, index)
        return steps

    async def connect(
        self,
        token: str,
        url: str | None = None,
        timeout: float | None = None,
        transport: "httpx.AsyncBaseTransport | None" = None,
    ) -> "MoodleSession":
        """Create and authenticate the session for the loaded workflow."""
        from ..api.session import DEFAULT_TIMEOUT, MoodleSession

        if url is None and self.workflow is not None and self.workflow.environment:
            url = self.workflow.environment.url
        if not url:
            raise LoadError("Missing environment declaration (no service URL)")

        session = MoodleSession(url, timeout=timeout or DEFAULT_TIMEOUT, transport=transport)
        try:
            await session.connect(token)
        except BaseException:
            await session.close()
            raise
        self.session = session
        return session

    def use_session(self, session: "MoodleSession") -> None:
        """Run the workflow against an already connected session."""
        self.session = session

    async def execute(self) -> ExecutionResult:
        """
        Execute the loaded workflow.

        Returns ExecutionResult with the published context and, on failure,
        the error that stopped the run.
        """
        if self.workflow is None:
            raise LoadError("No workflow loaded")
        if self.session is None or not self.session.connected:
            raise TransportError("Session is not connected; call connect() first")
        if self._executed:
            raise AutopilotError("Workflow already executed; load it again to re-run")
        self._executed = True

        self.context = WorkflowContext()
        self.tracer = ExecutionTracer(level=self.tracer.level)  # Reset tracer
        start_time = time.time()
        steps_executed = 0
        error: AutopilotError | None = None

        logger.info(f"Run {len(self.steps)} steps")

        for index, step in enumerate(self.steps):
            try:
                await self._execute_step(index, step)
                steps_executed += 1
            except AutopilotError as e:
                error = e.annotate(step.type, step.name, step.id, index)
            except Exception as e:
                # Wrap with step context for better error messages
                error = StepError(
                    f"Error in '{step.label}': {type(e).__name__}: {e}",
                    cause=e,
                ).annotate(step.type, step.name, step.id, index)
                error.__cause__ = e

            if error is not None:
                logger.error(error.describe())
                error_traces = self.tracer.get_error_traces()
                if error_traces and self.output_mode == OutputMode.DEBUG:
                    print(self.tracer.format_error_context(error_traces[-1]))
                break
        else:
            logger.info("All steps completed successfully.")

        return ExecutionResult(
            success=error is None,
            context=self.context.snapshot(),
            error=error,
            errors=[ErrorRecord.from_exception(error)] if error else [],
            steps_executed=steps_executed,
            duration_seconds=time.time() - start_time,
            traces=list(self.tracer.traces),
        )

    async def _execute_step(self, index: int, step: Step) -> None:
        """Drive one step through its lifecycle."""
        logger.info(f"{index + 1}: Run {step.label}")

        trace = self.tracer.start_step(
            index,
            step.type,
            step_id=step.id,
            step_name=step.name,
            context_keys=list(step.context_wanted.values()),
        )

        try:
            step.output_mode = self.output_mode
            step.resolve_context(self.context)
            step.bind_session(self.session)

            await step.setup()
            try:
                await step.run()
            except BaseException:
                await self._cleanup_after_failure(step)
                raise
            await step.cleanup()

            if step.id:
                self.context.publish(step.id, step.output)
            elif step.output:
                logger.debug(f"   {step.label} exposes output but has no id; discarded")
        except Exception as e:
            self.tracer.end_step(trace, step.output, error=e)
            raise

        self.tracer.end_step(trace, step.output)
        logger.info("   Run completed successfully.")

    async def _cleanup_after_failure(self, step: Step) -> None:
        try:
            await step.cleanup()
        except Exception:
            # the run() failure is the one that propagates
            logger.exception(f"   cleanup of {step.label} failed")
