"""Tests for workflow file loading."""

import pytest

from moodle_autopilot.core import (
    LoadError,
    StepSpec,
    WorkflowSpec,
    load_workflow,
    parse_workflow_text,
)


WORKFLOW_YAML = """
name: grade-essays
environment:
  url: https://moodle.test
workflow:
  - use: course
    id: course
    name: Find course
    with:
      name: STAT101
  - use: log
    context: course
  - use: assignment/feedback
    context:
      grader: assess
"""


class TestLoadWorkflow:

    def test_yaml_text(self):
        spec = load_workflow(WORKFLOW_YAML)

        assert spec.name == "grade-essays"
        assert spec.environment.url == "https://moodle.test"
        assert [s.type for s in spec.steps] == ["course", "log", "assignment/feedback"]
        assert spec.steps[0].params == {"name": "STAT101"}
        assert spec.steps[0].display_name == "Find course"

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "flow.yaml"
        path.write_text(WORKFLOW_YAML)

        assert load_workflow(path).name == "grade-essays"
        assert load_workflow(str(path)).name == "grade-essays"

    def test_dict_with_python_names(self):
        spec = load_workflow({"steps": [{"type": "log", "params": {"a": 1}}]})
        assert spec.steps[0].type == "log"
        assert spec.steps[0].params == {"a": 1}

    def test_spec_passes_through(self):
        spec = WorkflowSpec(steps=[StepSpec(type="log")])
        assert load_workflow(spec) is spec

    def test_missing_file(self, tmp_path):
        with pytest.raises(LoadError, match="not found"):
            load_workflow(tmp_path / "missing.yaml")

    def test_single_line_yaml_text(self):
        spec = load_workflow("{workflow: [{use: log}]}")

        assert [s.type for s in spec.steps] == ["log"]

    def test_single_line_non_document_is_missing_file(self, tmp_path):
        with pytest.raises(LoadError, match="not found"):
            load_workflow(str(tmp_path / "missing.yaml"))

    def test_single_line_file_name_is_read(self, tmp_path, monkeypatch):
        (tmp_path / "flow.yaml").write_text(WORKFLOW_YAML)
        monkeypatch.chdir(tmp_path)

        assert load_workflow("flow.yaml").name == "grade-essays"

    def test_text_parser_ignores_files(self, tmp_path):
        path = tmp_path / "flow.yaml"
        path.write_text(WORKFLOW_YAML)

        with pytest.raises(LoadError, match="mapping"):
            parse_workflow_text(str(path))

    def test_invalid_yaml(self):
        with pytest.raises(LoadError, match="not valid YAML"):
            load_workflow("workflow:\n  - use: [unclosed\n")

    def test_not_a_mapping(self):
        with pytest.raises(LoadError):
            load_workflow("- use: log\n- use: log\n")

    def test_unknown_step_key_rejected(self):
        with pytest.raises(LoadError) as exc_info:
            load_workflow({"workflow": [{"use": "log", "whith": {}}]})
        assert any("whith" in e for e in exc_info.value.errors)

    def test_duplicate_ids_rejected(self):
        with pytest.raises(LoadError) as exc_info:
            load_workflow({"workflow": [{"use": "log", "id": "a"}, {"use": "log", "id": "a"}]})
        assert any("Duplicate step id: a" in e for e in exc_info.value.errors)


class TestContextNormalisation:

    @pytest.mark.parametrize("raw,expected", [
        (None, {}),
        ("course", {"course": "course"}),
        (["course", "grader"], {"course": "course", "grader": "grader"}),
        ({"grader": "assess"}, {"grader": "assess"}),
    ])
    def test_forms(self, raw, expected):
        assert StepSpec(type="log", context=raw).context == expected

    def test_null_with_block(self):
        assert StepSpec.model_validate({"use": "log", "with": None}).params == {}
