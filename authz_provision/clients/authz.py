"""Authorization extension API client for permissions, roles and groups."""

from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
import structlog
from pydantic import SecretStr, ValidationError

from authz_provision.clients.base import BaseAPIClient
from authz_provision.clients.exceptions import APIError, AuthenticationError
from authz_provision.clients.models import (
    Group,
    GroupCreate,
    Permission,
    PermissionCreate,
    Role,
    RoleCreate,
    RoleUpdate,
    StoreRecord,
)

logger = structlog.get_logger(__name__)

RecordType = TypeVar("RecordType", bound=StoreRecord)


class AuthorizationStoreClient(BaseAPIClient):
    """Reads and writes entities of the authorization extension store.

    Every call is a single point-in-time request; none are transactional
    with each other.
    """

    def __init__(
        self,
        api_url: str,
        access_token: Optional[SecretStr] = None,
        timeout_seconds: float = 30,
        rate_limit_per_minute: int = 600,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize store client.

        Args:
            api_url: Base URL of the extension API
            access_token: Bearer token, may be set later with set_access_token
            timeout_seconds: Request timeout in seconds
            rate_limit_per_minute: Maximum requests per minute
            transport: Optional httpx transport (used by tests)
        """
        super().__init__(
            base_url=api_url,
            timeout_seconds=timeout_seconds,
            rate_limit_per_minute=rate_limit_per_minute,
            transport=transport,
        )
        self._access_token = access_token

    def set_access_token(self, access_token: SecretStr) -> None:
        self._access_token = access_token

    def _get_auth_headers(self) -> Dict[str, str]:
        if self._access_token is None:
            raise AuthenticationError("No access token set for the authorization store")
        return {"Authorization": f"Bearer {self._access_token.get_secret_value()}"}

    async def _list(self, path: str, envelope: str, model: Type[RecordType]) -> List[RecordType]:
        data = await self.get_json(path)
        if not isinstance(data, dict) or not isinstance(data.get(envelope), list):
            raise APIError(f"Unexpected response for {path}: missing '{envelope}' list")

        records = [self._parse(model, item, path) for item in data[envelope]]
        self._logger.info("Loaded store records", resource_type=envelope, count=len(records))
        return records

    @staticmethod
    def _parse(model: Type[RecordType], data: Any, path: str) -> RecordType:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise APIError(f"Unexpected record returned by {path}: {e}") from e

    # Read operations

    async def list_permissions(self) -> List[Permission]:
        """Get all permissions in the extension."""
        return await self._list("/permissions", "permissions", Permission)

    async def list_roles(self) -> List[Role]:
        """Get all roles in the extension."""
        return await self._list("/roles", "roles", Role)

    async def list_groups(self) -> List[Group]:
        """Get all groups in the extension."""
        return await self._list("/groups", "groups", Group)

    # Write operations

    async def create_permission(self, payload: PermissionCreate) -> Permission:
        data = await self.post_json("/permissions", json_data=payload.to_payload())
        return self._parse(Permission, data, "/permissions")

    async def create_role(self, payload: RoleCreate) -> Role:
        data = await self.post_json("/roles", json_data=payload.to_payload())
        return self._parse(Role, data, "/roles")

    async def create_group(self, payload: GroupCreate) -> Group:
        data = await self.post_json("/groups", json_data=payload.to_payload())
        return self._parse(Group, data, "/groups")

    async def set_role_permissions(self, role_id: str, role: RoleUpdate) -> None:
        """Replace a role, including its full permission id list.

        Args:
            role_id: Store id of the role, sent in the path only
            role: Complete role body without the store id
        """
        await self.put(f"/roles/{role_id}", json_data=role.to_payload())

    async def set_group_nesting(self, group_id: str, nested_group_ids: List[str]) -> None:
        """Replace the nested group list of a group.

        Args:
            group_id: Store id of the owning group
            nested_group_ids: Complete list of nested group ids
        """
        await self.patch(f"/groups/{group_id}/nested", json_data=list(nested_group_ids))
