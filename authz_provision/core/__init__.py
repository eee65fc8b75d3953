"""Provisioning core: snapshot, resolver and reconciliation engine."""

from authz_provision.core.engine import (
    ProvisionAction,
    ProvisionActionType,
    ProvisionResult,
    ProvisioningEngine,
    describe_permission,
)
from authz_provision.core.resolver import EntityIndex, find
from authz_provision.core.snapshot import Snapshot

__all__ = [
    "EntityIndex",
    "ProvisionAction",
    "ProvisionActionType",
    "ProvisionResult",
    "ProvisioningEngine",
    "Snapshot",
    "describe_permission",
    "find",
]
