"""Settings and declarative model loading."""

from authz_provision.config.loader import ModelLoader, find_model_file, validate_model_references
from authz_provision.config.models import (
    ApplicationSpec,
    AuthorizationModel,
    GroupSpec,
    NestedGroupRef,
    RoleSpec,
    Settings,
)

__all__ = [
    "ApplicationSpec",
    "AuthorizationModel",
    "GroupSpec",
    "ModelLoader",
    "NestedGroupRef",
    "RoleSpec",
    "Settings",
    "find_model_file",
    "validate_model_references",
]
