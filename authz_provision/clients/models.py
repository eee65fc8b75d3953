"""Store records and request payloads for the authorization extension API."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class StoreRecord(BaseModel):
    """Base for entities returned by the store.

    Unknown fields are kept so a full-replace update sends them back unchanged.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(..., alias="_id")
    name: str
    description: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        """Serialize with store field names."""
        return self.model_dump(by_alias=True, exclude_none=True)


class Permission(StoreRecord):
    """Permission scoped to an application."""

    application_type: str = Field("client", alias="applicationType")
    application_id: str = Field(..., alias="applicationId")


class Role(StoreRecord):
    """Role scoped to an application, holding permission ids."""

    application_type: str = Field("client", alias="applicationType")
    application_id: str = Field(..., alias="applicationId")
    permissions: List[str] = Field(default_factory=list)


class Group(StoreRecord):
    """Group; the store does not scope groups by application."""


class CreatePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class PermissionCreate(CreatePayload):
    name: str
    description: str
    application_type: str = Field("client", alias="applicationType")
    application_id: str = Field(..., alias="applicationId")


class RoleCreate(CreatePayload):
    name: str
    description: Optional[str] = None
    application_type: str = Field("client", alias="applicationType")
    application_id: str = Field(..., alias="applicationId")


class GroupCreate(CreatePayload):
    name: str
    description: Optional[str] = None


class RoleUpdate(BaseModel):
    """Full replacement body for ``PUT /roles/{id}``.

    Built from the stored role with ``_id`` removed; the id travels in the path.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str
    description: Optional[str] = None
    application_type: str = Field("client", alias="applicationType")
    application_id: str = Field(..., alias="applicationId")
    permissions: List[str] = Field(default_factory=list)

    @classmethod
    def from_role(cls, role: Role, permission_ids: List[str]) -> "RoleUpdate":
        body = role.model_dump(by_alias=True, exclude={"id"})
        body["permissions"] = list(permission_ids)
        return cls.model_validate(body)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
