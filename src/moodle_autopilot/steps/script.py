"""Script step - runs a user script against the bound context."""

from __future__ import annotations

from typing import Any

from ..core.registry import register_step
from ..core.spec import StepSpec
from ..core.step import ParamSpec, Step, StepManifest
from ._script import compile_script, run_script


class ScriptOutput:
    """The only handle a script gets on its step: publishing values."""

    __slots__ = ("_expose",)

    def __init__(self, expose):
        self._expose = expose

    def expose(self, name: str, value: Any) -> None:
        self._expose(name, value)

    def __call__(self, name: str, value: Any) -> None:
        self._expose(name, value)


@register_step("script")
class ScriptStep(Step):
    """
    Run a short Python script.

    The script sees two names: ``context`` (read-only view of the bound
    outputs) and ``output`` (``output.expose(name, value)`` or
    ``output(name, value)``). Everything it exposes becomes this step's
    output.
    """

    @classmethod
    def describe(cls) -> StepManifest:
        return StepManifest(
            type="script",
            description="Run a Python script over the bound context",
            params={
                "script": ParamSpec(
                    type="string",
                    required=True,
                    description="Python statements; use output.expose(name, value) to publish",
                ),
            },
        )

    def __init__(self, spec: StepSpec):
        super().__init__(spec)
        self.code = compile_script(self.params["script"], f"<{self.label}>")

    async def run(self) -> None:
        # The script only ever holds a plain dict's setter, never the step.
        exposed: dict[str, Any] = {}
        run_script(self.code, {
            "context": self.context,
            "output": ScriptOutput(exposed.__setitem__),
        })
        for name, value in exposed.items():
            self.expose(name, value)
