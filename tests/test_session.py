"""Tests for MoodleSession: discovery, dispatch and fault handling."""

import logging

import httpx
import pytest

from conftest import BASE_URL, PRIVATE_KEY, TOKEN, FakeMoodle

from moodle_autopilot.api import SITE_INFO_FUNCTION, MoodleSession
from moodle_autopilot.core.errors import CapabilityError, DomainError, TransportError


# =============================================================================
# connect()
# =============================================================================


class TestConnect:

    @pytest.mark.asyncio
    async def test_single_discovery_call(self, fake_moodle, make_session):
        session = await make_session()

        assert len(fake_moodle.requests) == 1
        request = fake_moodle.requests[0]
        assert request.method == "GET"
        assert request.url.params["wsfunction"] == SITE_INFO_FUNCTION
        assert request.url.params["wstoken"] == TOKEN
        assert request.url.params["moodlewsrestformat"] == "json"

        assert session.connected
        assert session.active_user.username == "teacher"
        assert session.active_user.id == 2
        assert session.has_operation("mod_assign_save_grade")
        await session.close()

    @pytest.mark.asyncio
    async def test_reconnect_rebuilds_catalogue(self, fake_moodle, make_session):
        session = await make_session()
        assert session.has_operation("mod_assign_save_grade")

        fake_moodle.functions = ["core_course_get_contents"]
        await session.connect(TOKEN)

        assert session.has_operation("core_course_get_contents")
        assert not session.has_operation("mod_assign_save_grade")
        await session.close()

    @pytest.mark.asyncio
    async def test_empty_token_rejected_without_request(self, fake_moodle):
        session = MoodleSession(BASE_URL, transport=fake_moodle.transport)
        with pytest.raises(TransportError):
            await session.connect("")
        assert fake_moodle.requests == []

    @pytest.mark.asyncio
    async def test_invalid_token_is_domain_error(self):
        def handler(request):
            return httpx.Response(200, json={
                "exception": "moodle_exception",
                "errorcode": "invalidtoken",
                "message": "Invalid token - token not found",
            })

        session = MoodleSession(BASE_URL, transport=httpx.MockTransport(handler))
        with pytest.raises(DomainError) as exc_info:
            await session.connect("bad")

        assert exc_info.value.code == "invalidtoken"
        assert exc_info.value.operation == SITE_INFO_FUNCTION
        assert "bad" not in exc_info.value.path
        assert not session.connected
        await session.close()

    @pytest.mark.asyncio
    async def test_calls_before_connect_fail(self, fake_moodle):
        session = MoodleSession(BASE_URL, transport=fake_moodle.transport)
        with pytest.raises(TransportError):
            await session.get("core_course_get_contents")
        assert fake_moodle.requests == []


# =============================================================================
# Dispatch
# =============================================================================


class TestDispatch:

    @pytest.mark.asyncio
    async def test_read_goes_into_query(self, fake_moodle, make_session):
        fake_moodle.responses["core_course_get_contents"] = [{"id": 1, "modules": []}]
        session = await make_session()

        result = await session.api.core_course.get.contents(courseid=7)

        assert result == [{"id": 1, "modules": []}]
        request = fake_moodle.calls("core_course_get_contents")[0]
        assert request.method == "GET"
        assert request.url.path == "/webservice/rest/server.php"
        assert fake_moodle.params(request) == {"courseid": "7"}
        await session.close()

    @pytest.mark.asyncio
    async def test_abbreviated_name_dispatches_full_operation(self, fake_moodle, make_session, caplog):
        caplog.set_level(logging.DEBUG, logger="moodle_autopilot.api.session")
        fake_moodle.responses["core_course_get_enrolled_courses_by_timeline_classification"] = {"courses": []}
        session = await make_session()

        await session.api.core_course.get.enrolled_courses(classification="inprogress")

        request = fake_moodle.requests[-1]
        assert request.url.params["wsfunction"] == "core_course_get_enrolled_courses_by_timeline_classification"
        assert (
            "core_course.get.enrolled_courses -> core_course_get_enrolled_courses_by_timeline_classification"
            in caplog.text
        )
        await session.close()

    @pytest.mark.asyncio
    async def test_full_resource_name_not_logged_as_abbreviation(self, fake_moodle, make_session, caplog):
        caplog.set_level(logging.DEBUG, logger="moodle_autopilot.api.session")
        fake_moodle.responses["core_course_get_contents"] = []
        session = await make_session()

        await session.api.core_course.get.contents(courseid=7)

        assert " -> " not in caplog.text
        await session.close()

    @pytest.mark.asyncio
    async def test_write_goes_into_form_body(self, fake_moodle, make_session):
        fake_moodle.responses["mod_assign_save_grade"] = None
        session = await make_session()

        result = await session.api.mod_assign.save.grade({"assignmentid": 31, "userid": 5, "grade": 1.5})

        assert result is None
        request = fake_moodle.calls("mod_assign_save_grade")[0]
        assert request.method == "POST"
        assert request.headers["content-type"] == "application/x-www-form-urlencoded"
        assert request.content == b"assignmentid=31&userid=5&grade=1.5"
        assert request.url.params["wstoken"] == TOKEN
        assert "assignmentid" not in request.url.params
        await session.close()

    @pytest.mark.asyncio
    async def test_empty_write_rejected_before_network(self, fake_moodle, make_session):
        session = await make_session()
        before = len(fake_moodle.requests)

        with pytest.raises(TransportError) as exc_info:
            await session.api.mod_assign.save.grade()

        assert "empty" in exc_info.value.message
        assert len(fake_moodle.requests) == before
        await session.close()

    @pytest.mark.asyncio
    async def test_call_by_full_name(self, fake_moodle, make_session):
        fake_moodle.functions.append("tool_mobile_call")
        fake_moodle.responses["tool_mobile_call"] = {"ok": True}
        session = await make_session()

        assert await session.call("tool_mobile_call") == {"ok": True}
        await session.close()

    @pytest.mark.asyncio
    async def test_unknown_operation_is_capability_error(self, fake_moodle, make_session):
        session = await make_session()
        before = len(fake_moodle.requests)

        with pytest.raises(CapabilityError) as exc_info:
            session.api.core_user.get.users
        assert exc_info.value.operation == "core_user"

        with pytest.raises(CapabilityError):
            session.api.core_course.delete.courses

        with pytest.raises(CapabilityError) as exc_info:
            session.api.core_course.get.nothing
        assert exc_info.value.operation == "core_course_get_nothing"

        with pytest.raises(CapabilityError):
            await session.call("core_user_delete_users")

        assert len(fake_moodle.requests) == before
        await session.close()


# =============================================================================
# Responses
# =============================================================================


class TestResponses:

    @pytest.mark.asyncio
    async def test_fault_becomes_domain_error(self, fake_moodle, make_session):
        fake_moodle.responses["mod_assign_save_grade"] = {
            "exception": "invalid_parameter_exception",
            "errorcode": "invalidparameter",
            "message": "Invalid parameter value detected",
        }
        session = await make_session()

        with pytest.raises(DomainError) as exc_info:
            await session.api.mod_assign.save.grade(assignmentid=31, userid=5)

        error = exc_info.value
        assert error.operation == "mod_assign_save_grade"
        assert error.code == "invalidparameter"
        assert error.info == "Invalid parameter value detected"
        assert error.data == "assignmentid=31&userid=5"
        assert error.path.startswith("/webservice/rest/server.php?")
        assert TOKEN not in error.path
        await session.close()

    @pytest.mark.asyncio
    async def test_http_error_status_is_transport_error(self, fake_moodle, make_session):
        fake_moodle.responses["core_course_get_contents"] = httpx.Response(503, text="down")
        session = await make_session()

        with pytest.raises(TransportError) as exc_info:
            await session.api.core_course.get.contents(courseid=7)
        assert exc_info.value.status_code == 503
        await session.close()

    @pytest.mark.asyncio
    async def test_non_json_body_is_transport_error(self, fake_moodle, make_session):
        fake_moodle.responses["core_course_get_contents"] = httpx.Response(200, text="<html>oops</html>")
        session = await make_session()

        with pytest.raises(TransportError):
            await session.api.core_course.get.contents(courseid=7)
        await session.close()

    @pytest.mark.asyncio
    async def test_network_failure_is_transport_error(self, fake_moodle, make_session):
        def fail(request):
            raise httpx.ConnectError("connection refused", request=request)

        fake_moodle.responses["core_course_get_contents"] = fail
        session = await make_session()

        with pytest.raises(TransportError) as exc_info:
            await session.api.core_course.get.contents(courseid=7)
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
        await session.close()


# =============================================================================
# Downloads
# =============================================================================


class TestDownload:

    @pytest.mark.asyncio
    async def test_download_uses_private_key_only(self, fake_moodle, make_session, tmp_path):
        path = "/webservice/pluginfile.php/12/assignsubmission_file/submission_files/5/essay.pdf"
        fake_moodle.files[path] = b"%PDF-1.4"
        session = await make_session()

        target = await session.download_file(f"{BASE_URL}{path}", tmp_path / "5" / "essay.pdf")

        assert target.read_bytes() == b"%PDF-1.4"
        request = fake_moodle.requests[-1]
        assert request.url.params["token"] == PRIVATE_KEY
        assert "wstoken" not in request.url.params
        assert TOKEN not in str(request.url)
        await session.close()

    @pytest.mark.asyncio
    async def test_download_without_private_key(self, tmp_path):
        fake = FakeMoodle()
        fake.private_key = None
        session = MoodleSession(BASE_URL, transport=fake.transport)
        await session.connect(TOKEN)

        with pytest.raises(CapabilityError):
            await session.download_file(f"{BASE_URL}/webservice/pluginfile.php/1/x.txt", tmp_path / "x.txt")
        await session.close()

    @pytest.mark.asyncio
    async def test_download_refused(self, fake_moodle, make_session, tmp_path):
        session = await make_session()

        with pytest.raises(TransportError) as exc_info:
            await session.download_file(f"{BASE_URL}/webservice/pluginfile.php/9/missing.txt", tmp_path / "m.txt")
        assert exc_info.value.status_code == 404
        assert not (tmp_path / "m.txt").exists()
        await session.close()

    @pytest.mark.asyncio
    async def test_malformed_json_download_is_transport_error(self, tmp_path):
        fake = FakeMoodle()
        path = "/webservice/pluginfile.php/3/broken.json"

        def handler(request):
            if request.url.path == path:
                fake.requests.append(request)
                return httpx.Response(200, headers={"content-type": "application/json"}, content=b"{not json")
            return fake.handler(request)

        session = MoodleSession(BASE_URL, transport=httpx.MockTransport(handler))
        await session.connect(TOKEN)

        with pytest.raises(TransportError) as exc_info:
            await session.download_file(f"{BASE_URL}{path}", tmp_path / "broken.json")
        assert exc_info.value.status_code == 200
        assert isinstance(exc_info.value.__cause__, ValueError)
        assert not (tmp_path / "broken.json").exists()
        await session.close()
