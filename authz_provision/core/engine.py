"""Reconciliation of the declarative model against the authorization store."""

import asyncio
import re
import uuid
from enum import Enum
from typing import Any, Awaitable, Dict, List, Optional, TypeVar

import structlog
from pydantic import BaseModel, Field

from authz_provision.clients.authz import AuthorizationStoreClient
from authz_provision.clients.exceptions import (
    APIError,
    StoreReadFailure,
    StoreWriteFailure,
    UnresolvableReference,
)
from authz_provision.clients.models import (
    Group,
    GroupCreate,
    Permission,
    PermissionCreate,
    Role,
    RoleCreate,
    RoleUpdate,
)
from authz_provision.config.models import (
    ApplicationSpec,
    AuthorizationModel,
    GroupSpec,
    NestedGroupRef,
    RoleSpec,
)
from authz_provision.core.snapshot import Snapshot

logger = structlog.get_logger(__name__)

T = TypeVar("T")

_WORD = re.compile(r"(\w)(\w*)")
_SEPARATORS = re.compile(r"[:\-]")


def describe_permission(name: str) -> str:
    """Derive a readable description from a permission name.

    ``read:users`` becomes ``Read Users``, ``create-order`` becomes ``Create Order``.
    """
    titled = _WORD.sub(lambda m: m.group(1).upper() + m.group(2).lower(), name)
    return _SEPARATORS.sub(" ", titled)


class ProvisionActionType(str, Enum):
    """What the engine did for one declared entity."""
    CREATE = "create"
    SKIP = "skip"
    ATTACH = "attach"


class ProvisionAction(BaseModel):
    """A single step of a provisioning run, in execution order."""

    action: ProvisionActionType
    resource_type: str  # permission, role, group
    key: str
    store_id: Optional[str] = None
    application_id: Optional[str] = None
    attached_ids: List[str] = Field(default_factory=list)


class ProvisionResult(BaseModel):
    """Report of a completed run. Failed runs raise instead of returning one."""

    run_id: str = Field(default_factory=lambda: f"run_{uuid.uuid4().hex[:8]}")
    dry_run: bool = False
    actions: List[ProvisionAction] = Field(default_factory=list)

    def record(self, action: ProvisionAction) -> ProvisionAction:
        self.actions.append(action)
        return action

    def by_action(self, action: ProvisionActionType) -> List[ProvisionAction]:
        return [item for item in self.actions if item.action == action]

    @property
    def created(self) -> List[ProvisionAction]:
        return self.by_action(ProvisionActionType.CREATE)

    @property
    def skipped(self) -> List[ProvisionAction]:
        return self.by_action(ProvisionActionType.SKIP)

    @property
    def attached(self) -> List[ProvisionAction]:
        return self.by_action(ProvisionActionType.ATTACH)

    def get_summary(self) -> Dict[str, Any]:
        summary: Dict[str, Any] = {"run_id": self.run_id, "dry_run": self.dry_run}
        for resource_type in ("permission", "role", "group"):
            summary[resource_type] = {
                action.value: sum(
                    1 for item in self.actions
                    if item.resource_type == resource_type and item.action == action
                )
                for action in ProvisionActionType
            }
        return summary


class ProvisioningEngine:
    """Creates the permissions, roles and groups of a model that are missing.

    Passes run in a fixed order: permissions for every application, then
    roles (each followed by its permission attach), then groups (each followed
    by its nesting attach). Within a pass every call is awaited before the
    next one is issued, since later lookups depend on earlier appends to the
    snapshot. Nothing is retried and nothing is rolled back.
    """

    def __init__(self, store: AuthorizationStoreClient, dry_run: bool = False) -> None:
        """Initialize provisioning engine.

        Args:
            store: Authenticated authorization store client
            dry_run: Report what would change without issuing writes
        """
        self.store = store
        self.dry_run = dry_run
        self._logger = logger.bind(engine="ProvisioningEngine", dry_run=dry_run)

    async def provision(self, model: AuthorizationModel) -> ProvisionResult:
        """Reconcile the model against the store.

        Raises:
            StoreReadFailure: If the current state cannot be loaded
            StoreWriteFailure: If a create or attach call fails
            UnresolvableReference: If a role permission or nested group cannot be found
        """
        result = ProvisionResult(dry_run=self.dry_run)
        log = self._logger.bind(run_id=result.run_id)
        log.info(
            "Starting provisioning run",
            applications=len(model.applications),
            groups=len(model.groups),
        )

        snapshot = await self.load_snapshot()

        for application in model.applications:
            for permission_name in application.permissions:
                await self.ensure_permission(snapshot, application, permission_name, result)

        for application in model.applications:
            for role_spec in application.roles:
                await self.ensure_role(snapshot, application, role_spec, result)
                await self.attach_role_permissions(snapshot, application, role_spec, result)

        for group_spec in model.groups:
            await self.ensure_group(snapshot, group_spec, result)
            await self.attach_nested_groups(snapshot, group_spec, result)

        log.info("Provisioning run completed", **self._summary_counts(result))
        return result

    async def load_snapshot(self) -> Snapshot:
        """Fetch existing permissions, roles and groups.

        The three reads are independent and issued together; all of them are
        awaited before any failure is raised.
        """
        outcomes = await asyncio.gather(
            self.store.list_permissions(),
            self.store.list_roles(),
            self.store.list_groups(),
            return_exceptions=True,
        )

        for resource_type, outcome in zip(("permission", "role", "group"), outcomes):
            if isinstance(outcome, BaseException):
                self._logger.error(
                    "Failed to load existing entities",
                    resource_type=resource_type,
                    error=str(outcome),
                )
                if isinstance(outcome, APIError):
                    raise StoreReadFailure(
                        f"Failed to load existing {resource_type}s",
                        resource_type=resource_type,
                    ) from outcome
                raise outcome

        permissions, roles, groups = outcomes
        snapshot = Snapshot(permissions, roles, groups)
        self._logger.info("Loaded store snapshot", **snapshot.counts())
        return snapshot

    # Permission pass

    async def ensure_permission(
        self,
        snapshot: Snapshot,
        application: ApplicationSpec,
        permission_name: str,
        result: ProvisionResult,
    ) -> ProvisionAction:
        """Create a permission if it doesn't exist yet."""
        existing = snapshot.permission_index.first((application.id, permission_name))
        if existing is not None:
            self._logger.debug(
                "Permission exists, skipping",
                application_id=application.id,
                permission=permission_name,
            )
            return result.record(ProvisionAction(
                action=ProvisionActionType.SKIP,
                resource_type="permission",
                key=permission_name,
                store_id=existing.id,
                application_id=application.id,
            ))

        payload = PermissionCreate(
            name=permission_name,
            description=describe_permission(permission_name),
            application_type=application.application_type,
            application_id=application.id,
        )

        if self.dry_run:
            created = Permission(
                id=self._pending_id("permission", f"{application.id}/{permission_name}"),
                **payload.model_dump(),
            )
        else:
            created = await self._write(
                "permission",
                permission_name,
                self.store.create_permission(payload),
            )

        snapshot.add_permission(created)
        self._logger.info(
            "Created permission",
            application_id=application.id,
            permission=permission_name,
            permission_id=created.id,
        )
        return result.record(ProvisionAction(
            action=ProvisionActionType.CREATE,
            resource_type="permission",
            key=permission_name,
            store_id=created.id,
            application_id=application.id,
        ))

    # Role pass

    async def ensure_role(
        self,
        snapshot: Snapshot,
        application: ApplicationSpec,
        role_spec: RoleSpec,
        result: ProvisionResult,
    ) -> ProvisionAction:
        """Create a role if it doesn't exist yet."""
        existing = snapshot.role_index.first((application.id, role_spec.name))
        if existing is not None:
            self._logger.debug(
                "Role exists, skipping",
                application_id=application.id,
                role=role_spec.name,
            )
            return result.record(ProvisionAction(
                action=ProvisionActionType.SKIP,
                resource_type="role",
                key=role_spec.name,
                store_id=existing.id,
                application_id=application.id,
            ))

        payload = RoleCreate(
            name=role_spec.name,
            description=role_spec.description,
            application_type=application.application_type,
            application_id=application.id,
        )

        if self.dry_run:
            created = Role(
                id=self._pending_id("role", f"{application.id}/{role_spec.name}"),
                **payload.model_dump(),
            )
        else:
            created = await self._write("role", role_spec.name, self.store.create_role(payload))

        snapshot.add_role(created)
        self._logger.info(
            "Created role",
            application_id=application.id,
            role=role_spec.name,
            role_id=created.id,
        )
        return result.record(ProvisionAction(
            action=ProvisionActionType.CREATE,
            resource_type="role",
            key=role_spec.name,
            store_id=created.id,
            application_id=application.id,
        ))

    async def attach_role_permissions(
        self,
        snapshot: Snapshot,
        application: ApplicationSpec,
        role_spec: RoleSpec,
        result: ProvisionResult,
    ) -> Optional[ProvisionAction]:
        """Replace the permission set of a role with the declared permissions.

        Returns None when the role declares no permissions; no call is made.
        """
        if not role_spec.permissions:
            return None

        role = snapshot.role_index.first((application.id, role_spec.name))
        if role is None:
            raise UnresolvableReference(
                f"Role '{role_spec.name}' of application '{application.display_name}' "
                "is not in the store",
                resource_type="role",
                resource_key=role_spec.name,
            )

        permission_ids = []
        for permission_name in role_spec.permissions:
            permission = snapshot.permission_index.first((application.id, permission_name))
            if permission is None:
                self._logger.error(
                    "Role references unknown permission",
                    application_id=application.id,
                    role=role_spec.name,
                    permission=permission_name,
                )
                raise UnresolvableReference(
                    f"Role '{role_spec.name}' of application '{application.display_name}' "
                    f"references unknown permission '{permission_name}'",
                    resource_type="permission",
                    resource_key=permission_name,
                )
            permission_ids.append(permission.id)

        self._logger.info(
            "Adding permissions to role",
            role=role_spec.name,
            role_id=role.id,
            count=len(permission_ids),
        )

        if not self.dry_run:
            update = RoleUpdate.from_role(role, permission_ids)
            await self._write(
                "role",
                role_spec.name,
                self.store.set_role_permissions(role.id, update),
            )
        role.permissions = list(permission_ids)

        return result.record(ProvisionAction(
            action=ProvisionActionType.ATTACH,
            resource_type="role",
            key=role_spec.name,
            store_id=role.id,
            application_id=application.id,
            attached_ids=permission_ids,
        ))

    # Group pass

    async def ensure_group(
        self,
        snapshot: Snapshot,
        group_spec: GroupSpec,
        result: ProvisionResult,
    ) -> ProvisionAction:
        """Create a group if no group with the same name exists."""
        existing = snapshot.group_index.first(group_spec.name)
        if existing is not None:
            self._logger.debug("Group exists, skipping", group=group_spec.name)
            return result.record(ProvisionAction(
                action=ProvisionActionType.SKIP,
                resource_type="group",
                key=group_spec.name,
                store_id=existing.id,
            ))

        payload = GroupCreate(name=group_spec.name, description=group_spec.description)

        if self.dry_run:
            created = Group(id=self._pending_id("group", group_spec.name), **payload.model_dump())
        else:
            created = await self._write("group", group_spec.name, self.store.create_group(payload))

        snapshot.add_group(created)
        self._logger.info("Created group", group=group_spec.name, group_id=created.id)
        return result.record(ProvisionAction(
            action=ProvisionActionType.CREATE,
            resource_type="group",
            key=group_spec.name,
            store_id=created.id,
        ))

    async def attach_nested_groups(
        self,
        snapshot: Snapshot,
        group_spec: GroupSpec,
        result: ProvisionResult,
    ) -> Optional[ProvisionAction]:
        """Replace the nested group list of a group with the declared references.

        Returns None when the group declares no nested groups; no call is made.
        """
        if not group_spec.nested:
            return None

        group = snapshot.group_index.first(group_spec.name)
        if group is None:
            raise UnresolvableReference(
                f"Group '{group_spec.name}' is not in the store",
                resource_type="group",
                resource_key=group_spec.name,
            )

        nested_ids = [
            self.resolve_group(snapshot, ref, owner=group_spec.name).id
            for ref in group_spec.nested
        ]

        self._logger.info(
            "Adding nested groups",
            group=group_spec.name,
            group_id=group.id,
            nested=[ref.name for ref in group_spec.nested],
        )

        if not self.dry_run:
            await self._write(
                "group",
                group_spec.name,
                self.store.set_group_nesting(group.id, nested_ids),
            )

        return result.record(ProvisionAction(
            action=ProvisionActionType.ATTACH,
            resource_type="group",
            key=group_spec.name,
            store_id=group.id,
            attached_ids=nested_ids,
        ))

    def resolve_group(self, snapshot: Snapshot, ref: NestedGroupRef, owner: str) -> Group:
        """Resolve a group reference by name.

        When several groups share the name, the reference description narrows
        the match. Anything other than exactly one candidate is unresolvable.

        Raises:
            UnresolvableReference: If zero or several groups match
        """
        candidates = list(snapshot.group_index.all(ref.name))

        if len(candidates) > 1 and ref.description is not None:
            candidates = [group for group in candidates if group.description == ref.description]

        if len(candidates) == 1:
            return candidates[0]

        if not candidates:
            message = f"Group '{owner}' references unknown group '{ref.name}'"
        else:
            message = (
                f"Group '{owner}' references group '{ref.name}' which matches "
                f"{len(candidates)} groups in the store"
            )
        self._logger.error(
            "Unresolvable group reference",
            group=owner,
            reference=ref.name,
            candidates=len(candidates),
        )
        raise UnresolvableReference(message, resource_type="group", resource_key=ref.name)

    # Helpers

    async def _write(self, resource_type: str, key: str, call: Awaitable[T]) -> T:
        try:
            return await call
        except APIError as e:
            self._logger.error(
                "Store write failed",
                resource_type=resource_type,
                key=key,
                error=str(e),
            )
            raise StoreWriteFailure(
                f"Failed to write {resource_type} '{key}'",
                resource_type=resource_type,
                resource_key=key,
            ) from e

    @staticmethod
    def _pending_id(resource_type: str, key: str) -> str:
        return f"pending:{resource_type}:{key}"

    @staticmethod
    def _summary_counts(result: ProvisionResult) -> Dict[str, int]:
        return {
            "created": len(result.created),
            "skipped": len(result.skipped),
            "attached": len(result.attached),
        }
