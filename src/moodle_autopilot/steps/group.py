"""Group step - add course participants to a group."""

from __future__ import annotations

from typing import Any

from ..core.errors import ParameterError
from ..core.registry import register_step
from ..core.step import ParamSpec, Step, StepManifest
from .course import context_course


@register_step("group/members")
class GroupMembersStep(Step):
    """
    Add enrolled users to a course group.

    Members are matched against the enrolled users by email, username or
    id. Users that already belong to the group are left alone, so running
    the step twice adds nobody the second time.
    """

    @classmethod
    def describe(cls) -> StepManifest:
        return StepManifest(
            type="group/members",
            description="Add enrolled users to a course group",
            params={
                "group": ParamSpec(
                    type="string",
                    required=True,
                    description="Group name",
                ),
                "members": ParamSpec(
                    type="list",
                    required=True,
                    description="Emails, usernames or user ids to add",
                ),
            },
            endpoints=[
                "core_enrol_get_enrolled_users",
                "core_group_get_course_groups",
                "core_group_get_group_members",
                "core_group_add_group_members",
            ],
            exposes={
                "group": "The group record",
                "added": "Ids of the users that were added",
            },
            context={"course": "Output of a 'course' step"},
        )

    async def run(self) -> None:
        course = context_course(self)
        wanted = self.params["members"]
        if isinstance(wanted, (str, int)):
            wanted = [wanted]

        users = await self.api.core_enrol.get.enrolled_users(courseid=course["id"]) or []
        groups = await self.api.core_group.get.course_groups(courseid=course["id"]) or []

        group = self.find_group(groups, self.params["group"])
        user_ids = [self.find_user(users, member)["id"] for member in wanted]

        current = await self.api.core_group.get.group_members(groupids=[group["id"]]) or []
        present = {uid for entry in current for uid in entry.get("userids", [])}

        added = [uid for uid in dict.fromkeys(user_ids) if uid not in present]
        if added:
            await self.api.core_group.add.group_members(
                members=[{"groupid": group["id"], "userid": uid} for uid in added],
            )

        self.report(f"Added {len(added)} members to {group.get('name')}")
        self.expose("group", dict(group))
        self.expose("added", added)

    @staticmethod
    def find_group(groups: list[dict[str, Any]], name: str) -> dict[str, Any]:
        matches = [g for g in groups if g.get("name") == name]
        if not matches:
            raise ParameterError(f"Group not found: {name}")
        if len(matches) > 1:
            raise ParameterError(f"Too many groups found for: {name}")
        return matches[0]

    @staticmethod
    def find_user(users: list[dict[str, Any]], member: Any) -> dict[str, Any]:
        if isinstance(member, int):
            matches = [u for u in users if u.get("id") == member]
        else:
            matches = [u for u in users if member in (u.get("email"), u.get("username"))]
        if not matches:
            raise ParameterError(f"User not enrolled in course: {member}")
        if len(matches) > 1:
            raise ParameterError(f"Too many users found for: {member}")
        return matches[0]
