"""Authorization model provisioning.

Reconciles a declarative model of applications, permissions, roles and nested
groups against an authorization extension store, creating only what is missing.
"""

__version__ = "0.1.0"

from authz_provision.config.models import AuthorizationModel, Settings
from authz_provision.core.engine import ProvisioningEngine, ProvisionResult

__all__ = [
    "AuthorizationModel",
    "ProvisioningEngine",
    "ProvisionResult",
    "Settings",
    "__version__",
]
