"""
Tests for the upstream HTTP clients, using httpx.MockTransport.
"""

import json

import httpx
import pytest

from project_service.clients import PermissionServiceClient, WorkflowServiceClient
from project_service.errors import ServiceUnavailableError


def _transport(routes, seen):
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        key = (request.method, request.url.path)
        if key not in routes:
            return httpx.Response(404, json={"message": "not found"})
        status, body = routes[key]
        return httpx.Response(status, json=body)

    return httpx.MockTransport(handler)


def _permission_client(routes, seen):
    return PermissionServiceClient(
        "http://permission.local/api/",
        5.0,
        root_key="s3cret",
        service_name_header="project-service",
        transport=_transport(routes, seen),
    )


class TestPermissionServiceClient:
    @pytest.mark.asyncio
    async def test_user_projects_grouped_by_project(self):
        seen = []
        routes = {
            ("GET", "/api/directory/userProject"): (
                200,
                [
                    {"productName": "shop", "roleId": 1},
                    {"productName": "shop", "roleId": 4},
                    {"productName": "blog", "roleId": 2},
                ],
            )
        }
        async with _permission_client(routes, seen) as client:
            out = await client.get_user_projects(42)

        assert out == {"shop": [1, 4], "blog": [2]}
        assert seen[0].url.params["userId"] == "42"
        assert seen[0].headers["Authorization"] == "X-ROOT-API-KEY s3cret"
        assert seen[0].headers["X-Service-Name"] == "project-service"

    @pytest.mark.asyncio
    async def test_permission_uuids_accepts_objects_and_strings(self):
        seen = []
        routes = {("GET", "/api/directory/rolePermission"): (200, [{"permissionUUID": "a"}, "b"])}
        async with _permission_client(routes, seen) as client:
            assert await client.get_permission_uuids(2, "shop") == ["a", "b"]

        assert seen[0].url.params["roleId"] == "2"
        assert seen[0].url.params["productName"] == "shop"

    @pytest.mark.asyncio
    async def test_all_users_role(self):
        seen = []
        routes = {("GET", "/api/directory/roles"): (200, [{"id": 9, "name": "viewer"}])}
        async with _permission_client(routes, seen) as client:
            role = await client.get_all_users_role("shop")

        assert (role.id, role.name, role.project_name) == (9, "viewer", "shop")
        assert seen[0].url.params["userType"] == "all-users"

    @pytest.mark.asyncio
    async def test_no_all_users_role(self):
        routes = {("GET", "/api/directory/roles"): (200, [])}
        async with _permission_client(routes, []) as client:
            assert await client.get_all_users_role("shop") is None

    @pytest.mark.asyncio
    async def test_http_error_becomes_service_unavailable(self):
        routes = {("GET", "/api/directory/rolePermission"): (502, {"message": "bad gateway"})}
        async with _permission_client(routes, []) as client:
            with pytest.raises(ServiceUnavailableError) as exc:
                await client.get_permission_uuids(2, "shop")

        assert exc.value.status == 502
        assert exc.value.service == "permission-service"
        assert exc.value.status_code == 503

    @pytest.mark.asyncio
    async def test_transport_error_becomes_service_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = PermissionServiceClient("http://permission.local", transport=httpx.MockTransport(handler))
        try:
            with pytest.raises(ServiceUnavailableError):
                await client.get_user_projects(1)
        finally:
            await client.aclose()

    @pytest.mark.asyncio
    async def test_add_project_team_body(self):
        seen = []
        routes = {("POST", "/api/directory/productTeam"): (200, {"message": "success"})}
        async with _permission_client(routes, seen) as client:
            await client.add_project_team("shop", None, [3, 4])

        assert json.loads(seen[0].content) == {"productName": "shop", "teamId": 0, "userIds": [3, 4]}

    def test_base_url_required(self):
        with pytest.raises(ValueError):
            PermissionServiceClient("")


class TestWorkflowServiceClient:
    @pytest.mark.asyncio
    async def test_project_deletes_carry_request_id(self):
        seen = []
        routes = {
            ("DELETE", "/testing/test"): (200, {}),
            ("DELETE", "/workflow/workflow"): (200, {}),
            ("DELETE", "/workflow/v2/pipelines"): (200, {}),
        }
        client = WorkflowServiceClient("http://workflow.local", transport=_transport(routes, seen))
        async with client:
            await client.delete_test_modules("shop", request_id="req-1")
            await client.delete_workflows("shop", request_id="req-1")
            await client.delete_pipelines("shop", request_id="req-1")

        assert [r.url.path for r in seen] == ["/testing/test", "/workflow/workflow", "/workflow/v2/pipelines"]
        assert all(r.headers["X-Correlation-ID"] == "req-1" for r in seen)
        assert all(r.url.params["productName"] == "shop" for r in seen)
        assert "Authorization" not in seen[0].headers
