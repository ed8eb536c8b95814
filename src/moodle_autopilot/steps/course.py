"""Course steps - find a course and list its activities."""

from __future__ import annotations

from typing import Any

from ..core.errors import ContextError, ParameterError
from ..core.registry import register_step
from ..core.step import ParamSpec, Step, StepManifest

CLASSIFICATIONS = ["all", "inprogress", "future", "past", "hidden", "allincludinghidden"]


def context_course(step: Step) -> dict[str, Any]:
    """The course record a `course` step published, bound as `course`."""
    entry = step.require_context("course")
    course = entry.get("course")
    if not isinstance(course, dict) or "id" not in course:
        raise ContextError(
            "Context bound as 'course' holds no course record",
            context_id=step.context_wanted.get("course"),
        )
    return course


@register_step("course")
class CourseStep(Step):
    """
    Find one of the user's enrolled courses by short or full name.

    Exactly one course must match; the match is exposed as ``course`` for
    the steps that bind this step's id as their ``course`` context.
    """

    @classmethod
    def describe(cls) -> StepManifest:
        return StepManifest(
            type="course",
            description="Find an enrolled course by short or full name",
            params={
                "name": ParamSpec(
                    type="string",
                    required=True,
                    description="Course short name or full name",
                ),
                "status": ParamSpec(
                    type="string",
                    default="inprogress",
                    choices=CLASSIFICATIONS,
                    description="Timeline classification to search",
                ),
            },
            endpoints=["core_course_get_enrolled_courses_by_timeline_classification"],
            exposes={"course": "The matching course record"},
        )

    async def run(self) -> None:
        name = self.params["name"]
        classification = self.get_param("status")

        result = await self.api.core_course.get.enrolled_courses(classification=classification)
        courses = (result or {}).get("courses", [])

        matches = [c for c in courses if name in (c.get("shortname"), c.get("fullname"))]
        if not matches:
            raise ParameterError(f"Course not found: {name}")
        if len(matches) > 1:
            raise ParameterError(f"Too many courses found for: {name}")

        course = dict(matches[0])
        course.pop("courseimage", None)

        self.report(f"Found course {course.get('shortname')} (id {course['id']})")
        self.expose("course", course)


@register_step("course/activities")
class CourseActivitiesStep(Step):
    """List the sections and activity modules of the bound course."""

    @classmethod
    def describe(cls) -> StepManifest:
        return StepManifest(
            type="course/activities",
            description="List the sections and activities of a course",
            params={
                "modname": ParamSpec(
                    type="string",
                    description="Only keep modules of this type (e.g. 'assign', 'quiz')",
                ),
            },
            endpoints=["core_course_get_contents"],
            exposes={
                "sections": "Course sections (id, section, name)",
                "modules": "Activity modules, flattened across sections",
            },
            context={"course": "Output of a 'course' step"},
        )

    async def run(self) -> None:
        course = context_course(self)
        modname = self.get_param("modname")

        contents = await self.api.core_course.get.contents(courseid=course["id"])

        sections = []
        modules = []
        for section in contents or []:
            sections.append({
                "id": section.get("id"),
                "section": section.get("section"),
                "name": section.get("name"),
            })
            for module in section.get("modules", []):
                if modname and module.get("modname") != modname:
                    continue
                modules.append({**module, "sectionid": section.get("id")})

        self.report(f"{len(modules)} activities in {len(sections)} sections")
        self.expose("sections", sections)
        self.expose("modules", modules)
