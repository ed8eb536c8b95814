"""Assignment steps - fetch, assess, grade and download submissions."""

from __future__ import annotations

import asyncio
import copy
import logging
from pathlib import Path
from typing import Any

from .. import settings
from ..core.errors import ContextError
from ..core.registry import register_step
from ..core.spec import StepSpec
from ..core.step import ParamSpec, Step, StepManifest
from ._assign import (
    assignment_summary,
    fetch_submissions,
    find_assignment,
    submission_files,
    submission_text,
)
from ._script import compile_script, run_script
from .course import context_course

logger = logging.getLogger(__name__)

WORKFLOW_STATES = [
    "notmarked",
    "inmarking",
    "readyforreview",
    "inreview",
    "readyforrelease",
    "released",
]

# Moodle text format of the feedback comment
FORMAT_MARKDOWN = 4

# Keys of a grade record that save_grade does not accept
_NOT_GRADE_FIELDS = ("id", "status", "gradingstatus", "rawtext")


@register_step("assignment/submissions")
class AssignmentSubmissionsStep(Step):
    """
    Fetch the submissions of one assignment of the bound course.

    Each submission's plugin list is flattened into ``data``: file areas
    become ``files``, the online text editor becomes ``text``/``format``
    plus ``rawtext`` (HTML reduced to block text). Comments are dropped.
    """

    @classmethod
    def describe(cls) -> StepManifest:
        return StepManifest(
            type="assignment/submissions",
            description="Fetch and normalise the submissions of an assignment",
            params={
                "activity": ParamSpec(
                    type="string",
                    required=True,
                    description="Assignment name",
                ),
                "status": ParamSpec(
                    type="string",
                    default="submitted",
                    description="Submission status to fetch",
                ),
            },
            endpoints=["mod_assign_get_assignments", "mod_assign_get_submissions"],
            exposes={
                "assignment": "Assignment id, cmid, course and name",
                "submissions": "Normalised submissions",
            },
            context={"course": "Output of a 'course' step"},
        )

    async def run(self) -> None:
        course = context_course(self)
        assignment = await find_assignment(self.api, course["id"], self.params["activity"])
        submissions = await fetch_submissions(self.api, assignment["id"], self.get_param("status"))

        self.report(f"{len(submissions)} submissions for {assignment.get('name')}")
        self.expose("assignment", assignment_summary(assignment))
        self.expose("submissions", submissions)


class Submission:
    """
    What an assessment script sees of the submission it assesses.

    Reading: ``text``, ``raw_text``, ``data``. Writing: ``score``,
    ``feedback``, ``expose(name, value)``.
    """

    __slots__ = ("_record", "_assessment", "_expose")

    def __init__(self, record: dict[str, Any], assessment: dict[str, Any], expose):
        self._record = record
        self._assessment = assessment
        self._expose = expose

    @property
    def text(self) -> str | None:
        plugin = submission_text(self._record)
        return plugin["text"] if plugin else None

    @property
    def raw_text(self) -> str | None:
        plugin = submission_text(self._record)
        return plugin.get("rawtext") if plugin else None

    @property
    def data(self) -> list[dict[str, Any]]:
        return copy.deepcopy(self._record.get("data", []))

    @property
    def score(self) -> Any:
        return self._assessment.get("score")

    @score.setter
    def score(self, value: Any) -> None:
        self._assessment["score"] = value

    @property
    def feedback(self) -> str | None:
        return self._assessment.get("feedback")

    @feedback.setter
    def feedback(self, value: str | None) -> None:
        self._assessment["feedback"] = value

    def expose(self, name: str, value: Any) -> None:
        self._expose(name, value)


@register_step("assignment/assessment_script")
class AssessmentScriptStep(Step):
    """
    Grade an assignment with a short Python script.

    The script runs once per submission with a single name in scope,
    ``submission``, and sets ``submission.score`` (and optionally
    ``submission.feedback``). Submissions the script leaves unscored are
    not graded. Scores are uploaded with save_grade unless
    ``skip_feedback`` is set; either way they are exposed as ``grades`` so
    an ``assignment/feedback`` step can upload them later.
    """

    @classmethod
    def describe(cls) -> StepManifest:
        return StepManifest(
            type="assignment/assessment_script",
            description="Assess submissions with a script and upload the grades",
            params={
                "activity": ParamSpec(
                    type="string",
                    required=True,
                    description="Assignment name",
                ),
                "script": ParamSpec(
                    type="string",
                    required=True,
                    description="Python statements setting submission.score / submission.feedback",
                ),
                "assess_all": ParamSpec(
                    type="boolean",
                    default=False,
                    description="Also assess submissions that are already graded",
                ),
                "skip_feedback": ParamSpec(
                    type="boolean",
                    default=False,
                    description="Do not upload the grades (dry grading)",
                ),
                "workflow_state": ParamSpec(
                    type="string",
                    default="released",
                    choices=WORKFLOW_STATES,
                    description="Marking workflow state to set",
                ),
            },
            endpoints=[
                "mod_assign_get_assignments",
                "mod_assign_get_submissions",
                "mod_assign_save_grade",
            ],
            exposes={
                "assignment": "Assignment id, cmid, course and name",
                "grades": "save_grade payloads of the scored submissions",
            },
            context={"course": "Output of a 'course' step"},
        )

    def __init__(self, spec: StepSpec):
        super().__init__(spec)
        self.code = compile_script(self.params["script"], f"<{self.label}>")
        self.assess_all = bool(self.get_param("assess_all"))
        self.skip_feedback = bool(self.get_param("skip_feedback"))

    async def run(self) -> None:
        course = context_course(self)
        assignment = await find_assignment(self.api, course["id"], self.params["activity"])
        submissions = await fetch_submissions(self.api, assignment["id"])

        pending = [
            s for s in submissions
            if self.assess_all or s.get("gradingstatus") == "notgraded"
        ]
        self.debug(f"Assess {len(pending)} of {len(submissions)} submissions")

        # script exposes are collected apart so they cannot clobber the grades
        script_output: dict[str, Any] = {}
        grades = []
        for record in pending:
            assessment: dict[str, Any] = {}
            run_script(self.code, {
                "submission": Submission(record, assessment, script_output.__setitem__),
            })
            if assessment.get("score") is not None:
                grades.append(self.grade_payload(assignment["id"], record, assessment))

        if not self.skip_feedback and grades:
            await asyncio.gather(*(self.api.mod_assign.save.grade(g) for g in grades))
            self.report(f"Saved {len(grades)} grades for {assignment.get('name')}")
        else:
            self.report(f"Assessed {len(grades)} submissions of {assignment.get('name')}")

        for name, value in script_output.items():
            self.expose(name, value)
        self.expose("assignment", assignment_summary(assignment))
        self.expose("grades", grades)

    def grade_payload(
        self,
        assignment_id: int,
        record: dict[str, Any],
        assessment: dict[str, Any],
    ) -> dict[str, Any]:
        return {
            "assignmentid": assignment_id,
            "userid": record.get("userid"),
            "attemptnumber": record.get("attemptnumber", -1),
            "addattempt": 0,
            "applytoall": 1,
            "workflowstate": self.get_param("workflow_state"),
            "grade": assessment["score"],
            "plugindata": {
                "assignfeedbackcomments_editor": {
                    "text": assessment.get("feedback") or "",
                    "format": FORMAT_MARKDOWN,
                },
            },
        }


@register_step("assignment/feedback")
class AssignmentFeedbackStep(Step):
    """Upload grades produced by an earlier assessment step (bound as `grader`)."""

    @classmethod
    def describe(cls) -> StepManifest:
        return StepManifest(
            type="assignment/feedback",
            description="Upload the grades of an assessment step",
            params={
                "workflow_state": ParamSpec(
                    type="string",
                    default="released",
                    choices=WORKFLOW_STATES,
                    description="Marking workflow state to set",
                ),
            },
            endpoints=["mod_assign_save_grade"],
            exposes={"saved": "Number of grades uploaded"},
            context={"grader": "Output of an assessment step (with 'grades')"},
        )

    async def run(self) -> None:
        grader = self.require_context("grader")
        if "grades" not in grader:
            raise ContextError(
                "Context bound as 'grader' holds no grades",
                context_id=self.context_wanted.get("grader"),
            )

        workflow_state = self.get_param("workflow_state")
        payloads = []
        for grade in grader["grades"]:
            payload = {k: copy.deepcopy(v) for k, v in grade.items() if k not in _NOT_GRADE_FIELDS}
            payload["workflowstate"] = workflow_state
            payloads.append(payload)

        for payload in payloads:
            self.debug(f"Save grade for user {payload.get('userid')}")
        results = await asyncio.gather(*(self.api.mod_assign.save.grade(p) for p in payloads))

        unexpected = [r for r in results if r is not None]
        if unexpected:
            logger.warning(f"{len(unexpected)} save_grade requests returned a response body")
            for response in unexpected:
                self.debug(self.dump(response))

        self.report(f"Saved {len(payloads)} grades")
        self.expose("saved", len(payloads))


@register_step("assignment/download")
class AssignmentDownloadStep(Step):
    """
    Download the files of fetched submissions.

    Files land in ``<target>/<userid>/<filename>``. Downloads use the
    user's private file key from the session, never the web service token.
    """

    @classmethod
    def describe(cls) -> StepManifest:
        return StepManifest(
            type="assignment/download",
            description="Download submission files",
            params={
                "target": ParamSpec(
                    type="string",
                    description="Directory to download into (defaults to the downloads dir)",
                ),
            },
            exposes={"files": "Paths of the downloaded files"},
            context={"submissions": "Output of an 'assignment/submissions' step"},
        )

    async def run(self) -> None:
        entry = self.require_context("submissions")
        if "submissions" not in entry:
            raise ContextError(
                "Context bound as 'submissions' holds no submissions",
                context_id=self.context_wanted.get("submissions"),
            )

        target = Path(self.get_param("target") or settings.downloads_dir).expanduser()

        jobs = []
        for submission in entry["submissions"]:
            folder = target / str(submission.get("userid", "unknown"))
            for item in submission_files(submission):
                if not item.get("fileurl"):
                    continue
                filename = Path(item.get("filename") or "file").name
                jobs.append(self.session.download_file(item["fileurl"], folder / filename))

        paths = await asyncio.gather(*jobs)

        self.report(f"Downloaded {len(paths)} files to {target}")
        self.expose("files", [str(p) for p in paths])
