"""Shared pytest fixtures for the provisioning tests."""

import itertools
from typing import Dict, List, Optional, Tuple

import pytest

from authz_provision.clients.exceptions import APIError
from authz_provision.clients.models import (
    Group,
    GroupCreate,
    Permission,
    PermissionCreate,
    Role,
    RoleCreate,
    RoleUpdate,
)
from authz_provision.config.loader import load_model_from_dict


class FakeAuthorizationStore:
    """In-memory stand-in for AuthorizationStoreClient.

    Records every call in order and keeps state across runs, so the same
    instance can be provisioned twice.
    """

    def __init__(
        self,
        permissions: Optional[List[Permission]] = None,
        roles: Optional[List[Role]] = None,
        groups: Optional[List[Group]] = None,
    ) -> None:
        self.permissions = list(permissions or [])
        self.roles = list(roles or [])
        self.groups = list(groups or [])
        self.nesting: Dict[str, List[str]] = {}
        self.role_updates: Dict[str, RoleUpdate] = {}
        self.calls: List[Tuple] = []
        self.failures: Dict[str, Exception] = {}
        self._ids = itertools.count(1)

    def fail_on(self, operation: str, error: Optional[Exception] = None) -> None:
        self.failures[operation] = error or APIError("Store unavailable", status_code=500)

    def _check(self, operation: str) -> None:
        if operation in self.failures:
            raise self.failures[operation]

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    @property
    def write_calls(self) -> List[Tuple]:
        return [call for call in self.calls if not call[0].startswith("list_")]

    @property
    def create_calls(self) -> List[Tuple]:
        return [call for call in self.calls if call[0].startswith("create_")]

    async def list_permissions(self) -> List[Permission]:
        self.calls.append(("list_permissions",))
        self._check("list_permissions")
        return [record.model_copy(deep=True) for record in self.permissions]

    async def list_roles(self) -> List[Role]:
        self.calls.append(("list_roles",))
        self._check("list_roles")
        return [record.model_copy(deep=True) for record in self.roles]

    async def list_groups(self) -> List[Group]:
        self.calls.append(("list_groups",))
        self._check("list_groups")
        return [record.model_copy(deep=True) for record in self.groups]

    async def create_permission(self, payload: PermissionCreate) -> Permission:
        self.calls.append(("create_permission", payload.application_id, payload.name))
        self._check("create_permission")
        record = Permission(id=self._next_id("perm"), **payload.model_dump())
        self.permissions.append(record)
        return record.model_copy(deep=True)

    async def create_role(self, payload: RoleCreate) -> Role:
        self.calls.append(("create_role", payload.application_id, payload.name))
        self._check("create_role")
        record = Role(id=self._next_id("role"), **payload.model_dump())
        self.roles.append(record)
        return record.model_copy(deep=True)

    async def create_group(self, payload: GroupCreate) -> Group:
        self.calls.append(("create_group", payload.name))
        self._check("create_group")
        record = Group(id=self._next_id("group"), **payload.model_dump())
        self.groups.append(record)
        return record.model_copy(deep=True)

    async def set_role_permissions(self, role_id: str, role: RoleUpdate) -> None:
        self.calls.append(("set_role_permissions", role_id, list(role.permissions)))
        self._check("set_role_permissions")
        self.role_updates[role_id] = role
        for record in self.roles:
            if record.id == role_id:
                record.permissions = list(role.permissions)

    async def set_group_nesting(self, group_id: str, nested_group_ids: List[str]) -> None:
        self.calls.append(("set_group_nesting", group_id, list(nested_group_ids)))
        self._check("set_group_nesting")
        self.nesting[group_id] = list(nested_group_ids)


@pytest.fixture
def fake_store():
    """Create an empty in-memory store."""
    return FakeAuthorizationStore()


@pytest.fixture
def simple_model():
    """One application with two permissions and a role, plus one group."""
    return load_model_from_dict({
        "applications": [
            {
                "id": "app1",
                "permissions": ["read:users", "write:users"],
                "roles": [
                    {"name": "admin", "description": "Administrators", "permissions": ["read:users"]},
                ],
            }
        ],
        "groups": [
            {"name": "admins", "description": "Admin group"},
        ],
    })


@pytest.fixture
def nested_model():
    """Two applications and a group hierarchy."""
    return load_model_from_dict({
        "applications": [
            {
                "id": "app1",
                "name": "Portal",
                "permissions": ["read:users", "delete:users"],
                "roles": [
                    {"name": "viewer", "description": "Read only", "permissions": ["read:users"]},
                    {"name": "owner", "description": "Everything", "permissions": ["read:users", "delete:users"]},
                    {"name": "guest", "description": "No permissions"},
                ],
            },
            {
                "id": "app2",
                "permissions": ["create-order"],
                "roles": [
                    {"name": "buyer", "description": "Buyers", "permissions": ["create-order"]},
                ],
            },
        ],
        "groups": [
            {"name": "engineering", "description": "Engineering"},
            {"name": "support", "description": "Support"},
            {"name": "staff", "description": "All staff", "nested": ["engineering", {"name": "support"}]},
        ],
    })
