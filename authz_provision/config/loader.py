"""Declarative model loader with YAML parsing and environment variable substitution."""

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from authz_provision.clients.exceptions import ConfigurationError
from authz_provision.config.models import AuthorizationModel

MODEL_FILENAMES = ["authz.yaml", "authz.yml", "authz.json"]


class EnvironmentVariableError(ConfigurationError):
    """Raised when environment variable substitution fails."""
    pass


class ModelLoader:
    """Loads the declarative authorization model from YAML or JSON."""

    # ${VAR_NAME} or ${VAR_NAME:default_value}
    ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*?)(?::([^}]*))?\}')

    def __init__(self, require_env_vars: bool = True) -> None:
        """Initialize the model loader.

        Args:
            require_env_vars: Whether missing variables without defaults are an error
                              (if False they are left as-is)
        """
        self.require_env_vars = require_env_vars

    def load(self, model_path: Path) -> AuthorizationModel:
        """Load and validate the model from a file.

        Args:
            model_path: Path to a YAML or JSON file

        Returns:
            Validated AuthorizationModel

        Raises:
            ConfigurationError: If loading or validation fails
        """
        if not model_path.exists():
            raise ConfigurationError(f"Model file not found: {model_path}")

        try:
            raw_content = model_path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Failed to read model file: {e}") from e

        return self.loads(raw_content)

    def loads(self, content: str) -> AuthorizationModel:
        """Load and validate the model from a YAML or JSON string."""
        substituted = self._substitute_env_vars(content)

        try:
            data = yaml.safe_load(substituted)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError("Model file must contain a mapping with 'applications' and/or 'groups'")

        return load_model_from_dict(data)

    def _substitute_env_vars(self, content: str) -> str:
        """Substitute ${VAR} and ${VAR:default} placeholders.

        Raises:
            EnvironmentVariableError: If a required environment variable is missing
        """
        def replace_env_var(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default_value = match.group(2)

            env_value = os.getenv(var_name)
            if env_value is not None:
                return env_value
            if default_value is not None:
                return default_value
            if self.require_env_vars:
                raise EnvironmentVariableError(
                    f"Required environment variable '{var_name}' is not set"
                )
            return match.group(0)

        return self.ENV_VAR_PATTERN.sub(replace_env_var, content)

    def get_missing_env_vars(self, model_path: Path) -> List[str]:
        """List variables referenced without a default and not set."""
        if not model_path.exists():
            return []

        content = model_path.read_text(encoding="utf-8")
        missing = {
            match.group(1)
            for match in self.ENV_VAR_PATTERN.finditer(content)
            if match.group(2) is None and os.getenv(match.group(1)) is None
        }
        return sorted(missing)


def load_model_from_dict(data: Dict[str, Any]) -> AuthorizationModel:
    """Validate an already-parsed model structure.

    Raises:
        ConfigurationError: If validation fails
    """
    try:
        return AuthorizationModel.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Model validation failed: {e}") from e


def find_model_file(start_path: Optional[Path] = None) -> Optional[Path]:
    """Find a model file by searching up the directory tree.

    Looks for authz.yaml, authz.yml and authz.json, in that order.
    """
    current_path = (start_path or Path.cwd()).resolve()

    while True:
        for filename in MODEL_FILENAMES:
            candidate = current_path / filename
            if candidate.exists():
                return candidate

        parent = current_path.parent
        if parent == current_path:
            break
        current_path = parent

    return None


def validate_model_references(model: AuthorizationModel) -> List[str]:
    """Check cross-references that cannot be satisfied by the model itself.

    The referenced entities may already exist in the store, so these are
    warnings rather than errors.

    Returns:
        List of warning messages
    """
    warnings = []

    for application in model.applications:
        declared = set(application.permissions)
        for role in application.roles:
            for permission in role.permissions:
                if permission not in declared:
                    warnings.append(
                        f"Application '{application.display_name}': role '{role.name}' "
                        f"references undeclared permission '{permission}'"
                    )

    declared_groups = {group.name for group in model.groups}
    for group in model.groups:
        for ref in group.nested:
            if ref.name not in declared_groups:
                warnings.append(
                    f"Group '{group.name}' nests undeclared group '{ref.name}'"
                )
            elif ref.name == group.name:
                warnings.append(f"Group '{group.name}' nests itself")

    return warnings
