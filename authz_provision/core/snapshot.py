"""Per-run in-memory view of the store."""

from typing import List, Tuple, Union

from authz_provision.clients.models import Group, Permission, Role
from authz_provision.core.resolver import EntityIndex


def application_key(entity: Union[Permission, Role]) -> Tuple[str, str]:
    return (entity.application_id, entity.name)


def group_key(entity: Group) -> str:
    return entity.name


class Snapshot:
    """Permissions, roles and groups loaded at the start of a run.

    Owned by a single provisioning run. Created entities are appended through
    the ``add_*`` methods so the collections and their indexes stay in step.
    """

    def __init__(
        self,
        permissions: List[Permission],
        roles: List[Role],
        groups: List[Group],
    ) -> None:
        self.permissions = list(permissions)
        self.roles = list(roles)
        self.groups = list(groups)

        self.permission_index: EntityIndex[Permission] = EntityIndex(application_key, self.permissions)
        self.role_index: EntityIndex[Role] = EntityIndex(application_key, self.roles)
        self.group_index: EntityIndex[Group] = EntityIndex(group_key, self.groups)

    def add_permission(self, permission: Permission) -> None:
        self.permissions.append(permission)
        self.permission_index.add(permission)

    def add_role(self, role: Role) -> None:
        self.roles.append(role)
        self.role_index.add(role)

    def add_group(self, group: Group) -> None:
        self.groups.append(group)
        self.group_index.add(group)

    def counts(self) -> dict:
        return {
            "permissions": len(self.permissions),
            "roles": len(self.roles),
            "groups": len(self.groups),
        }
