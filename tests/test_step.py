"""Tests for the Step base class contract."""

import pytest

from moodle_autopilot.core import (
    CapabilityError,
    ContextError,
    ParamSpec,
    ParameterError,
    Step,
    StepManifest,
    StepSpec,
    WorkflowContext,
)


class GreetStep(Step):
    """Test step with one required parameter and one endpoint."""

    @classmethod
    def describe(cls) -> StepManifest:
        return StepManifest(
            type="test/greet",
            description="Greets",
            params={
                "who": ParamSpec(type="string", required=True),
                "mood": ParamSpec(type="string", default="calm", choices=["calm", "loud"]),
            },
            endpoints=["core_course_get_contents"],
            exposes={"greeting": "The greeting"},
        )

    async def run(self) -> None:
        self.expose("greeting", f"hello {self.params['who']}")


class StubSession:
    def __init__(self, operations):
        self.operations = set(operations)

    def has_operation(self, name):
        return name in self.operations


def make(**kwargs) -> GreetStep:
    return GreetStep(StepSpec(type="test/greet", **kwargs))


# =============================================================================
# Parameters
# =============================================================================


class TestParameters:

    def test_required_params_listed(self):
        step = make(params={"who": "world"})
        assert step.get_required_params() == ["who"]

    def test_missing_required_param(self):
        with pytest.raises(ParameterError) as exc_info:
            make(id="g", params={"mood": "calm"})

        error = exc_info.value
        assert "Wanted: who" in error.message
        assert "Got: nothing" in error.message
        assert error.wanted == ["who"]
        assert error.supplied == ["mood"]
        assert error.step_type == "test/greet"
        assert error.step_id == "g"

    def test_missing_params_block(self):
        with pytest.raises(ParameterError):
            make()

    def test_choices_enforced(self):
        with pytest.raises(ParameterError, match="must be one of"):
            make(params={"who": "x", "mood": "angry"})

    def test_get_param_falls_back_to_default(self):
        step = make(params={"who": "x"})
        assert step.get_param("mood") == "calm"
        assert step.get_param("unknown", 5) == 5


# =============================================================================
# Session binding
# =============================================================================


class TestBindSession:

    def test_declared_endpoints_present(self):
        step = make(params={"who": "x"})
        session = StubSession(["core_course_get_contents"])
        step.bind_session(session)
        assert step.session is session

    def test_missing_endpoint_fails_fast(self):
        step = make(params={"who": "x"})
        with pytest.raises(CapabilityError) as exc_info:
            step.bind_session(StubSession([]))
        assert exc_info.value.operation == "core_course_get_contents"
        assert step.session is None

    def test_api_without_session(self):
        step = make(params={"who": "x"})
        with pytest.raises(CapabilityError):
            step.api


# =============================================================================
# Context and output
# =============================================================================


class TestContextAndOutput:

    def test_resolve_context_with_alias(self):
        shared = WorkflowContext()
        shared.publish("first", {"x": 1})
        step = make(params={"who": "x"}, context={"src": "first"})

        step.resolve_context(shared)

        assert step.context == {"src": {"x": 1}}
        assert step.require_context("src") == {"x": 1}

    def test_resolve_missing_context(self):
        step = make(params={"who": "x"}, context="nope")
        with pytest.raises(ContextError):
            step.resolve_context(WorkflowContext())

    def test_require_unbound_alias(self):
        step = make(params={"who": "x"})
        step.resolve_context(WorkflowContext())
        with pytest.raises(ContextError):
            step.require_context("course")

    @pytest.mark.asyncio
    async def test_expose_writes_pending_output(self):
        step = make(params={"who": "world"})
        await step.run()
        step.expose("extra", 1)
        step.expose("extra", 2)
        assert step.output == {"greeting": "hello world", "extra": 2}

    def test_label(self):
        assert make(params={"who": "x"}, id="g", name="Say hi").label == "test/greet: Say hi (g)"
        assert make(params={"who": "x"}).label == "test/greet"
