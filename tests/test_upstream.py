"""Upstream client and route registry tests."""

from __future__ import annotations

import httpx
import pytest

from taskdesk.common.constants import UserRole
from taskdesk.common.exceptions import (
    ForbiddenException,
    NotFoundException,
    UnauthorizedException,
    UpstreamError,
    ValidationException,
)
from taskdesk.upstream.client import NO_RESPONSE_MESSAGE, UpstreamClient
from taskdesk.upstream.endpoints import (
    STRICT_METADATA_ROLES,
    inbox_routes,
    login_path,
    manage_routes,
    metadata_sources,
)


def _client(handler) -> UpstreamClient:
    return UpstreamClient("http://portal.test/api", transport=httpx.MockTransport(handler))


class TestUpstreamClient:
    async def test_sends_bearer_and_decodes_json(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("authorization")
            seen["path"] = request.url.path
            return httpx.Response(200, json=[{"_id": "t1"}])

        upstream = _client(handler)
        data = await upstream.get("/hr/tasks", token="abc")
        await upstream.aclose()

        assert data == [{"_id": "t1"}]
        assert seen == {"auth": "Bearer abc", "path": "/api/hr/tasks"}

    async def test_empty_body_is_none(self):
        upstream = _client(lambda request: httpx.Response(204))
        assert await upstream.delete("/hr/tasks/1") is None
        await upstream.aclose()

    @pytest.mark.parametrize(
        ("status", "exc_type"),
        [
            (400, ValidationException),
            (401, UnauthorizedException),
            (403, ForbiddenException),
            (404, NotFoundException),
            (422, ValidationException),
            (500, UpstreamError),
        ],
    )
    async def test_status_mapping_keeps_upstream_message(self, status, exc_type):
        upstream = _client(lambda request: httpx.Response(status, json={"msg": "Portal says no"}))
        with pytest.raises(exc_type) as info:
            await upstream.get("/hr/tasks")
        await upstream.aclose()
        assert info.value.detail == "Portal says no"

    async def test_default_message_when_body_has_none(self):
        upstream = _client(lambda request: httpx.Response(500, text="boom"))
        with pytest.raises(UpstreamError) as info:
            await upstream.get("/hr/tasks", error_message="Failed to fetch tasks")
        await upstream.aclose()
        assert info.value.detail == "Failed to fetch tasks"
        assert info.value.upstream_status == 500

    async def test_transport_error_becomes_no_response(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        upstream = _client(handler)
        with pytest.raises(UpstreamError) as info:
            await upstream.get("/hr/tasks")
        await upstream.aclose()
        assert info.value.detail == NO_RESPONSE_MESSAGE


class TestRouteRegistry:
    def test_manage_routes_per_role(self):
        assert manage_routes(UserRole.hr).item("t1") == "/hr/tasks/t1"
        assert manage_routes(UserRole.principal).list_path == "/principal/tasks/manage"
        assert manage_routes(UserRole.principal).create_path == "/principal/tasks"
        assert manage_routes(UserRole.superadmin).item("t1") == "/super-admin/tasks/t1"
        assert manage_routes(UserRole.hod).item("t1") == "/hod/tasks/manage/t1"

    def test_employee_cannot_manage(self):
        with pytest.raises(ForbiddenException):
            manage_routes(UserRole.employee)

    def test_inbox_routes(self):
        assert inbox_routes(UserRole.employee).acknowledgement("t1") == "/employee/tasks/t1/acknowledgements"
        assert inbox_routes(UserRole.hod).list_path == "/hod/tasks"
        with pytest.raises(ForbiddenException):
            inbox_routes(UserRole.principal)

    def test_metadata_sources(self):
        assert [s.key for s in metadata_sources(UserRole.hr)] == ["employees", "hods", "branches"]
        assert [s.key for s in metadata_sources(UserRole.superadmin)] == ["employees", "hods", "campuses"]
        assert [s.path for s in metadata_sources(UserRole.hod)] == ["/hod/department/employees"]
        assert STRICT_METADATA_ROLES == {UserRole.principal, UserRole.hod}

    def test_login_path(self):
        assert login_path(UserRole.superadmin) == "/super-admin/login"
        assert login_path(UserRole.employee) == "/employee/login"
