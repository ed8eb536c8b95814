"""Shared test fixtures and configuration."""

from __future__ import annotations

from typing import Any, Callable

import httpx
import pytest

import moodle_autopilot.steps  # noqa: F401  (registers the built-in steps)
from moodle_autopilot.api import SERVICE_PATH, SITE_INFO_FUNCTION, MoodleSession
from moodle_autopilot.api.encoding import decode_parameters
from moodle_autopilot.core import OutputMode, StepRegistry, WorkflowEngine

BASE_URL = "https://moodle.test"
TOKEN = "ws-token-123"
PRIVATE_KEY = "private-key-456"

DEFAULT_FUNCTIONS = [
    SITE_INFO_FUNCTION,
    "core_course_get_enrolled_courses_by_timeline_classification",
    "core_course_get_contents",
    "core_enrol_get_enrolled_users",
    "core_group_get_course_groups",
    "core_group_get_group_members",
    "core_group_add_group_members",
    "mod_assign_get_assignments",
    "mod_assign_get_submissions",
    "mod_assign_save_grade",
]


# =============================================================================
# Fake Moodle service
# =============================================================================


class FakeMoodle:
    """In-memory stand-in for a Moodle web service.

    Answers site info from `functions`, every other wsfunction from
    `responses` (a JSON body, an httpx.Response, or a callable taking the
    request). Every request is recorded.
    """

    def __init__(self, functions: list[str] | None = None):
        self.functions = list(DEFAULT_FUNCTIONS if functions is None else functions)
        self.responses: dict[str, Any] = {}
        self.files: dict[str, bytes] = {}
        self.requests: list[httpx.Request] = []
        self.private_key = PRIVATE_KEY

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.url.path == SERVICE_PATH:
            function = request.url.params.get("wsfunction")
            if function == SITE_INFO_FUNCTION:
                return httpx.Response(200, json=self.site_info())
            if function not in self.responses:
                return httpx.Response(200, json={
                    "exception": "webservice_access_exception",
                    "errorcode": "accessexception",
                    "message": f"No canned response for {function}",
                })
            response = self.responses[function]
            if callable(response):
                response = response(request)
            if isinstance(response, httpx.Response):
                return response
            if response is None:
                return httpx.Response(200, content=b"")
            return httpx.Response(200, json=response)

        if request.url.path in self.files:
            if request.url.params.get("token") != self.private_key:
                return httpx.Response(403, json={"error": "Invalid token", "errorcode": "invalidtoken"})
            return httpx.Response(200, content=self.files[request.url.path])

        return httpx.Response(404, text="Not found")

    def site_info(self) -> dict[str, Any]:
        return {
            "username": "teacher",
            "userid": 2,
            "userprivateaccesskey": self.private_key,
            "functions": [{"name": name, "version": "4.1"} for name in self.functions],
        }

    # === Inspection helpers ===

    def calls(self, function: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.params.get("wsfunction") == function]

    @staticmethod
    def params(request: httpx.Request) -> dict[str, str]:
        """Parameters of a request, from the body for POST, else the query."""
        if request.method == "POST":
            return dict(decode_parameters(request.content.decode("utf-8")))
        return {
            k: v for k, v in request.url.params.multi_items()
            if k not in ("wstoken", "moodlewsrestformat", "wsfunction")
        }


def course_record(course_id: int = 7, shortname: str = "STAT101", fullname: str = "Statistics 101") -> dict:
    return {
        "id": course_id,
        "shortname": shortname,
        "fullname": fullname,
        "courseimage": "data:image/svg+xml;base64,AAAA",
    }


def assignment_record(assignment_id: int = 31, name: str = "Essay 1", enabled: bool = True) -> dict:
    return {
        "id": assignment_id,
        "cmid": 310,
        "course": 7,
        "name": name,
        "configs": [
            {"plugin": "onlinetext", "subtype": "assignsubmission", "name": "enabled",
             "value": "1" if enabled else "0"},
            {"plugin": "comments", "subtype": "assignfeedback", "name": "enabled", "value": "1"},
        ],
    }


def submission_record(
    userid: int,
    html: str | None = None,
    gradingstatus: str = "notgraded",
    files: list[dict] | None = None,
) -> dict:
    plugins = [{"type": "comments", "name": "Submission comments"}]
    if html is not None:
        plugins.append({
            "type": "onlinetext",
            "name": "Online text",
            "editorfields": [{"name": "onlinetext", "text": html, "format": 1}],
        })
    if files is not None:
        plugins.append({
            "type": "file",
            "name": "File submissions",
            "fileareas": [{"area": "submission_files", "files": files}],
        })
    return {
        "id": 1000 + userid,
        "userid": userid,
        "attemptnumber": 0,
        "status": "submitted",
        "gradingstatus": gradingstatus,
        "plugins": plugins,
    }


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def fake_moodle() -> FakeMoodle:
    return FakeMoodle()


@pytest.fixture
def make_session(fake_moodle: FakeMoodle) -> Callable:
    """Factory for a session connected to the fake service."""
    async def factory(token: str = TOKEN) -> MoodleSession:
        session = MoodleSession(BASE_URL, transport=fake_moodle.transport)
        await session.connect(token)
        return session
    return factory


@pytest.fixture
def registry() -> StepRegistry:
    """A fresh registry, for tests that register their own steps."""
    return StepRegistry()


@pytest.fixture
def run_workflow(fake_moodle: FakeMoodle) -> Callable:
    """Load, connect and execute a workflow against the fake service."""
    async def runner(workflow: Any, registry: StepRegistry | None = None):
        engine = WorkflowEngine(registry=registry, output_mode=OutputMode.QUIET)
        engine.load_workflow(workflow)
        session = await engine.connect(TOKEN, url=BASE_URL, transport=fake_moodle.transport)
        try:
            result = await engine.execute()
        finally:
            await session.close()
        return engine, result
    return runner
