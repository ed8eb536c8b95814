"""Tests for the shared workflow context."""

import pytest

from moodle_autopilot.core import ContextError, WorkflowContext


class TestWorkflowContext:

    def test_publish_and_view(self):
        context = WorkflowContext()
        context.publish("first", {"x": 1})

        view = context.view({"src": "first"})
        assert view == {"src": {"x": 1}}

    def test_published_output_is_a_read_only_copy(self):
        context = WorkflowContext()
        output = {"x": 1}
        context.publish("first", output)
        output["x"] = 2

        assert context["first"]["x"] == 1
        with pytest.raises(TypeError):
            context["first"]["x"] = 3

    def test_nested_output_is_isolated(self):
        context = WorkflowContext()
        output = {"items": [1], "meta": {"n": 1}}
        context.publish("first", output)
        output["items"].append(2)

        view = context.view({"src": "first"})
        view["src"]["items"].append(99)
        view["src"]["meta"]["n"] = 5

        assert context["first"]["items"] == [1]
        assert context["first"]["meta"] == {"n": 1}
        assert context.view({"src": "first"})["src"]["items"] == [1]

    def test_snapshot_does_not_share_nested_data(self):
        context = WorkflowContext()
        context.publish("a", {"items": [1]})

        context.snapshot()["a"]["items"].append(2)

        assert context["a"]["items"] == [1]

    def test_view_is_read_only(self):
        context = WorkflowContext()
        context.publish("first", {"x": 1})
        view = context.view({"first": "first"})

        with pytest.raises(TypeError):
            view["other"] = {}

    def test_missing_id(self):
        context = WorkflowContext()
        with pytest.raises(ContextError) as exc_info:
            context.view({"course": "course"})
        assert exc_info.value.context_id == "course"

    def test_duplicate_publish_rejected(self):
        context = WorkflowContext()
        context.publish("first", {"x": 1})

        with pytest.raises(ContextError):
            context.publish("first", {"x": 2})
        assert context["first"]["x"] == 1

    def test_snapshot_is_plain(self):
        context = WorkflowContext()
        context.publish("a", {"x": 1})
        context.publish("b", {})

        snapshot = context.snapshot()
        assert snapshot == {"a": {"x": 1}, "b": {}}
        assert type(snapshot["a"]) is dict
        assert list(context) == ["a", "b"]
        assert len(context) == 2
