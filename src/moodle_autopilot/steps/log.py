"""Log step - dumps the step's context."""

from __future__ import annotations

from ..core.registry import register_step
from ..core.step import Step, StepManifest


@register_step("log")
class LogStep(Step):
    """
    Print the context bound to this step as JSON.

    Mostly used while developing a workflow, to look at what an earlier
    step exposed before writing the step that consumes it.
    """

    @classmethod
    def describe(cls) -> StepManifest:
        return StepManifest(
            type="log",
            description="Dump the bound context as JSON",
        )

    async def run(self) -> None:
        self.report(self.dump(dict(self.context)))
