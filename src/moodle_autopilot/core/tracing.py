"""Execution tracing and debugging utilities."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class TraceLevel(Enum):
    """Level of tracing detail."""
    NONE = 0      # No tracing
    ERRORS = 1    # Only trace errors
    STEPS = 2     # Trace each step
    DETAILED = 3  # Trace with exposed outputs


@dataclass
class StepTrace:
    """Record of a single step execution."""
    step_index: int
    step_type: str
    step_id: str | None
    step_name: str | None
    timestamp: float
    duration_ms: float = 0.0

    # What the step read and exposed
    context_keys: list[str] = field(default_factory=list)
    outputs: dict[str, Any] = field(default_factory=dict)

    # Status
    success: bool = True
    error: str | None = None
    error_type: str | None = None

    def __str__(self) -> str:
        status = "✓" if self.success else "✗"
        step_id = f" [{self.step_id}]" if self.step_id else ""
        time_str = f"{self.duration_ms:.1f}ms" if self.duration_ms > 0 else ""
        return f"{status} Step {self.step_index + 1}: {self.step_type}{step_id} {time_str}"

    def format_detailed(self) -> str:
        """Format trace with full details."""
        lines = [str(self)]

        if self.context_keys:
            lines.append(f"  Context: {', '.join(self.context_keys)}")

        if self.outputs:
            lines.append("  Exposed:")
            for k, v in self.outputs.items():
                v_str = str(v)[:80] + "..." if len(str(v)) > 80 else str(v)
                lines.append(f"    {k}: {v_str}")

        if self.error:
            lines.append(f"  Error: {self.error_type}: {self.error}")

        return "\n".join(lines)


@dataclass
class ExecutionTracer:
    """Collects step traces during a workflow run."""
    level: TraceLevel = TraceLevel.ERRORS
    traces: list[StepTrace] = field(default_factory=list)

    def start_step(
        self,
        step_index: int,
        step_type: str,
        step_id: str | None = None,
        step_name: str | None = None,
        context_keys: list[str] | None = None,
    ) -> StepTrace:
        """Start tracing a step."""
        return StepTrace(
            step_index=step_index,
            step_type=step_type,
            step_id=step_id,
            step_name=step_name,
            timestamp=time.time(),
            context_keys=list(context_keys or []),
        )

    def end_step(
        self,
        trace: StepTrace,
        outputs: dict[str, Any] | None = None,
        error: Exception | None = None,
    ) -> None:
        """Complete a step trace."""
        trace.duration_ms = (time.time() - trace.timestamp) * 1000
        if self.level == TraceLevel.DETAILED:
            trace.outputs = dict(outputs or {})

        if error:
            trace.success = False
            trace.error = str(error)
            trace.error_type = getattr(error, "kind", type(error).__name__)

        # Only store based on trace level
        if self.level == TraceLevel.NONE:
            return
        elif self.level == TraceLevel.ERRORS and trace.success:
            return

        self.traces.append(trace)

    def get_error_traces(self) -> list[StepTrace]:
        """Get all traces with errors."""
        return [t for t in self.traces if not t.success]

    def format_error_context(self, error_trace: StepTrace) -> str:
        """Format the failing step with the steps that completed before it."""
        lines = [
            "=" * 70,
            "ERROR CONTEXT",
            "=" * 70,
            "",
            "Failed Step:",
            error_trace.format_detailed(),
            "",
        ]

        recent = [t for t in self.traces if t.step_index < error_trace.step_index][-5:]
        if recent:
            lines.append("Previous Steps:")
            for t in recent:
                lines.append(f"  {t}")
            lines.append("")

        lines.append("=" * 70)
        return "\n".join(lines)

    def format_summary(self) -> str:
        """Format a summary of all traces."""
        if not self.traces:
            return "No traces recorded"

        errors = self.get_error_traces()
        lines = [
            "Execution Trace Summary:",
            f"  Total steps traced: {len(self.traces)}",
            f"  Errors: {len(errors)}",
        ]
        total_ms = sum(t.duration_ms for t in self.traces)
        lines.append(f"  Time in steps: {total_ms:.1f}ms")
        for t in self.traces:
            lines.append(f"  {t}")

        return "\n".join(lines)
