"""Unit tests for AuthorizationStoreClient and TokenClient."""

import json

import httpx
import pytest
from pydantic import SecretStr, ValidationError

from authz_provision.clients.auth import TokenClient
from authz_provision.clients.authz import AuthorizationStoreClient
from authz_provision.clients.exceptions import (
    APIError,
    AuthenticationError,
    AuthenticationFailure,
    ClientError,
    ConflictError,
    NetworkError,
    RateLimitError,
    ServerError,
)
from authz_provision.clients.models import (
    GroupCreate,
    PermissionCreate,
    Role,
    RoleCreate,
    RoleUpdate,
)

API_URL = "https://authz.example.com/api"


class RecordingHandler:
    """httpx mock handler returning canned responses and recording requests."""

    def __init__(self, responses):
        self.responses = responses
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        response = self.responses[key]
        if isinstance(response, Exception):
            raise response
        return response


def make_store(handler, token="token-123"):
    return AuthorizationStoreClient(
        api_url=API_URL,
        access_token=SecretStr(token) if token else None,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
class TestStoreReads:
    """Test listing calls."""

    async def test_list_permissions(self):
        handler = RecordingHandler({
            ("GET", "/api/permissions"): httpx.Response(200, json={"permissions": [
                {"_id": "p1", "name": "read:users", "description": "Read Users",
                 "applicationType": "client", "applicationId": "app1"},
            ]}),
        })
        async with make_store(handler) as store:
            permissions = await store.list_permissions()

        assert len(permissions) == 1
        assert permissions[0].id == "p1"
        assert permissions[0].application_id == "app1"
        assert handler.requests[0].headers["Authorization"] == "Bearer token-123"

    async def test_list_roles_keeps_unknown_fields(self):
        handler = RecordingHandler({
            ("GET", "/api/roles"): httpx.Response(200, json={"roles": [
                {"_id": "r1", "name": "admin", "applicationType": "client",
                 "applicationId": "app1", "permissions": ["p1"], "users": ["u1"]},
            ]}),
        })
        async with make_store(handler) as store:
            roles = await store.list_roles()

        assert roles[0].permissions == ["p1"]
        assert roles[0].to_payload()["users"] == ["u1"]

    async def test_list_groups(self):
        handler = RecordingHandler({
            ("GET", "/api/groups"): httpx.Response(200, json={"groups": [
                {"_id": "g1", "name": "admins", "description": "Admins", "members": []},
            ]}),
        })
        async with make_store(handler) as store:
            groups = await store.list_groups()

        assert [(group.id, group.name) for group in groups] == [("g1", "admins")]

    async def test_missing_envelope_is_api_error(self):
        handler = RecordingHandler({
            ("GET", "/api/groups"): httpx.Response(200, json={"items": []}),
        })
        async with make_store(handler) as store:
            with pytest.raises(APIError, match="missing 'groups'"):
                await store.list_groups()

    async def test_no_token_is_authentication_error(self):
        handler = RecordingHandler({})
        async with make_store(handler, token=None) as store:
            with pytest.raises(AuthenticationError):
                await store.list_roles()

        assert handler.requests == []

    async def test_set_access_token(self):
        handler = RecordingHandler({
            ("GET", "/api/roles"): httpx.Response(200, json={"roles": []}),
        })
        async with make_store(handler, token=None) as store:
            store.set_access_token(SecretStr("later"))
            await store.list_roles()

        assert handler.requests[0].headers["Authorization"] == "Bearer later"


@pytest.mark.asyncio
class TestStoreWrites:
    """Test create and attach calls."""

    async def test_create_permission(self):
        handler = RecordingHandler({
            ("POST", "/api/permissions"): httpx.Response(200, json={
                "_id": "p9", "name": "read:users", "description": "Read Users",
                "applicationType": "client", "applicationId": "app1",
            }),
        })
        payload = PermissionCreate(
            name="read:users", description="Read Users", application_id="app1",
        )
        async with make_store(handler) as store:
            created = await store.create_permission(payload)

        assert created.id == "p9"
        assert json.loads(handler.requests[0].content) == {
            "name": "read:users",
            "description": "Read Users",
            "applicationType": "client",
            "applicationId": "app1",
        }

    async def test_create_role(self):
        handler = RecordingHandler({
            ("POST", "/api/roles"): httpx.Response(200, json={
                "_id": "r9", "name": "admin", "description": "Admins",
                "applicationType": "client", "applicationId": "app1",
            }),
        })
        async with make_store(handler) as store:
            created = await store.create_role(
                RoleCreate(name="admin", description="Admins", application_id="app1")
            )

        assert created.id == "r9"
        assert created.permissions == []

    async def test_create_group_without_description(self):
        handler = RecordingHandler({
            ("POST", "/api/groups"): httpx.Response(200, json={"_id": "g9", "name": "ops"}),
        })
        async with make_store(handler) as store:
            await store.create_group(GroupCreate(name="ops"))

        assert json.loads(handler.requests[0].content) == {"name": "ops"}

    async def test_set_role_permissions_puts_body_without_id(self):
        handler = RecordingHandler({
            ("PUT", "/api/roles/r1"): httpx.Response(200, json={}),
        })
        role = Role.model_validate({
            "_id": "r1", "name": "admin", "description": "Admins",
            "applicationType": "client", "applicationId": "app1",
            "permissions": ["old"], "users": ["u1"],
        })
        async with make_store(handler) as store:
            await store.set_role_permissions("r1", RoleUpdate.from_role(role, ["p1", "p2"]))

        body = json.loads(handler.requests[0].content)
        assert "_id" not in body
        assert body["permissions"] == ["p1", "p2"]
        assert body["users"] == ["u1"]
        assert body["applicationId"] == "app1"

    async def test_set_group_nesting_patches_id_list(self):
        handler = RecordingHandler({
            ("PATCH", "/api/groups/g1/nested"): httpx.Response(204),
        })
        async with make_store(handler) as store:
            await store.set_group_nesting("g1", ["g2", "g3"])

        assert json.loads(handler.requests[0].content) == ["g2", "g3"]


@pytest.mark.asyncio
class TestErrorMapping:
    """Test status code to exception mapping."""

    @pytest.mark.parametrize(
        "status,error_type",
        [
            (401, AuthenticationError),
            (409, ConflictError),
            (422, ClientError),
            (429, RateLimitError),
            (503, ServerError),
        ],
    )
    async def test_status_mapping(self, status, error_type):
        handler = RecordingHandler({
            ("POST", "/api/groups"): httpx.Response(status, text="nope"),
        })
        async with make_store(handler) as store:
            with pytest.raises(error_type) as exc_info:
                await store.create_group(GroupCreate(name="ops"))

        assert exc_info.value.status_code == status
        assert len(handler.requests) == 1

    async def test_rate_limit_retry_after(self):
        handler = RecordingHandler({
            ("GET", "/api/roles"): httpx.Response(429, headers={"Retry-After": "7"}),
        })
        async with make_store(handler) as store:
            with pytest.raises(RateLimitError) as exc_info:
                await store.list_roles()

        assert exc_info.value.retry_after == 7

    async def test_transport_error_is_network_error(self):
        handler = RecordingHandler({
            ("GET", "/api/roles"): httpx.ConnectError("connection refused"),
        })
        async with make_store(handler) as store:
            with pytest.raises(NetworkError):
                await store.list_roles()

        assert store.get_stats()["error_count"] == 1


@pytest.mark.asyncio
class TestTokenClient:
    """Test client-credentials exchange."""

    def make_client(self, handler):
        return TokenClient(
            domain="https://tenant.example.com/",
            client_id="client-1",
            client_secret=SecretStr("secret-1"),
            audience="urn:auth0-authz-api",
            transport=httpx.MockTransport(handler),
        )

    async def test_authenticate(self):
        handler = RecordingHandler({
            ("POST", "/oauth/token"): httpx.Response(200, json={
                "access_token": "abc", "token_type": "Bearer", "expires_in": 86400,
            }),
        })
        async with self.make_client(handler) as client:
            token = await client.authenticate()

        assert token.access_token.get_secret_value() == "abc"
        assert token.expires_in == 86400

        request = handler.requests[0]
        assert request.url.host == "tenant.example.com"
        assert "Authorization" not in request.headers
        form = dict(httpx.QueryParams(request.content.decode()))
        assert form == {
            "audience": "urn:auth0-authz-api",
            "client_id": "client-1",
            "client_secret": "secret-1",
            "grant_type": "client_credentials",
        }

    async def test_rejected_credentials(self):
        handler = RecordingHandler({
            ("POST", "/oauth/token"): httpx.Response(401, json={"error": "access_denied"}),
        })
        async with self.make_client(handler) as client:
            with pytest.raises(AuthenticationFailure) as exc_info:
                await client.authenticate()

        assert isinstance(exc_info.value.__cause__, AuthenticationError)

    async def test_response_without_token(self):
        handler = RecordingHandler({
            ("POST", "/oauth/token"): httpx.Response(200, json={"token_type": "Bearer"}),
        })
        async with self.make_client(handler) as client:
            with pytest.raises(AuthenticationFailure):
                await client.authenticate()

    async def test_network_failure(self):
        handler = RecordingHandler({
            ("POST", "/oauth/token"): httpx.ConnectTimeout("timed out"),
        })
        async with self.make_client(handler) as client:
            with pytest.raises(AuthenticationFailure) as exc_info:
                await client.authenticate()

        assert isinstance(exc_info.value.__cause__, NetworkError)

    async def test_malformed_token_response(self):
        handler = RecordingHandler({
            ("POST", "/oauth/token"): httpx.Response(200, json={
                "access_token": "t", "expires_in": "soon",
            }),
        })
        async with self.make_client(handler) as client:
            with pytest.raises(AuthenticationFailure) as exc_info:
                await client.authenticate()

        assert isinstance(exc_info.value.__cause__, ValidationError)
