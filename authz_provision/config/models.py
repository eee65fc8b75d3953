"""Settings and declarative authorization model definitions using Pydantic."""

from __future__ import annotations

import os
from enum import Enum
from typing import Any, List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator

from authz_provision.clients.exceptions import ConfigurationError

DEFAULT_AUDIENCE = "urn:auth0-authz-api"


class LogLevel(str, Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class LogFormat(str, Enum):
    """Log output formats."""
    JSON = "json"
    TEXT = "text"


# Connection settings

class IdentityConfig(BaseModel):
    """Identity provider configuration for the client-credentials grant."""

    domain: str = Field(..., description="Identity provider domain", min_length=1)
    client_id: str = Field(..., description="Machine-to-machine client id", min_length=1)
    client_secret: SecretStr = Field(..., description="Machine-to-machine client secret")
    audience: str = Field(DEFAULT_AUDIENCE, description="Audience of the extension API")
    grant_type: str = Field("client_credentials", description="OAuth2 grant type")
    timeout_seconds: float = Field(30, description="Token request timeout in seconds", gt=0)

    @field_validator("domain")
    @classmethod
    def normalize_domain(cls, v: str) -> str:
        """Strip protocol and trailing slash."""
        v = v.replace("https://", "").replace("http://", "").rstrip("/")
        if not v:
            raise ValueError("Domain cannot be empty")
        return v


class StoreConfig(BaseModel):
    """Authorization extension API configuration."""

    api_url: str = Field(..., description="Base URL of the extension API", min_length=1)
    timeout_seconds: float = Field(30, description="Request timeout in seconds", gt=0)
    rate_limit_per_minute: int = Field(600, description="Maximum requests per minute", ge=1)

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        if not v.startswith(("https://", "http://")):
            raise ValueError("api_url must start with http:// or https://")
        return v.rstrip("/")


class LoggingConfig(BaseModel):
    """Configuration for structured logging."""

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.TEXT

    @field_validator("level", mode="before")
    @classmethod
    def upper_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    @field_validator("format", mode="before")
    @classmethod
    def lower_format(cls, v: Any) -> Any:
        return v.lower() if isinstance(v, str) else v


class Settings(BaseModel):
    """Runtime settings for a provisioning run."""

    identity: IdentityConfig
    store: StoreConfig
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls, load_env_file: bool = True) -> "Settings":
        """Create settings from environment variables.

        Returns:
            Settings populated from the environment

        Raises:
            ConfigurationError: If a required variable is missing or invalid
        """
        if load_env_file:
            load_dotenv()

        required = {}
        for var_name in ("AUTH0_DOMAIN", "AUTH0_CLIENT_ID", "AUTH0_CLIENT_SECRET", "AUTHZ_API_URL"):
            value = os.getenv(var_name)
            if not value:
                raise ConfigurationError(f"{var_name} environment variable is required")
            required[var_name] = value

        timeout = os.getenv("AUTHZ_TIMEOUT_SECONDS", "30")
        try:
            return cls(
                identity=IdentityConfig(
                    domain=required["AUTH0_DOMAIN"],
                    client_id=required["AUTH0_CLIENT_ID"],
                    client_secret=SecretStr(required["AUTH0_CLIENT_SECRET"]),
                    audience=os.getenv("AUTHZ_AUDIENCE", DEFAULT_AUDIENCE),
                    timeout_seconds=timeout,
                ),
                store=StoreConfig(
                    api_url=required["AUTHZ_API_URL"],
                    timeout_seconds=timeout,
                    rate_limit_per_minute=os.getenv("AUTHZ_RATE_LIMIT_PER_MINUTE", "600"),
                ),
                logging=LoggingConfig(
                    level=os.getenv("LOG_LEVEL", "INFO"),
                    format=os.getenv("LOG_FORMAT", "text"),
                ),
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid settings: {e}") from e


# Declarative authorization model

class RoleSpec(BaseModel):
    """Role declared under an application."""

    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    permissions: List[str] = Field(default_factory=list)

    @field_validator("permissions", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v


class ApplicationSpec(BaseModel):
    """Application scoping a set of permissions and roles.

    Not an entity in the store; ``id`` is the client id used as applicationId.
    """

    id: str = Field(..., min_length=1)
    name: Optional[str] = None
    application_type: str = "client"
    permissions: List[str] = Field(default_factory=list)
    roles: List[RoleSpec] = Field(default_factory=list)

    @field_validator("permissions", "roles", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @property
    def display_name(self) -> str:
        return self.name or self.id


class NestedGroupRef(BaseModel):
    """Reference to a group nested inside another group.

    The description only narrows the match when several groups share a name.
    """

    name: str = Field(..., min_length=1)
    description: Optional[str] = None


class GroupSpec(BaseModel):
    """Group declared at the top level of the model."""

    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    nested: List[NestedGroupRef] = Field(default_factory=list)

    @field_validator("nested", mode="before")
    @classmethod
    def accept_bare_names(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, list):
            return [{"name": item} if isinstance(item, str) else item for item in v]
        return v


class AuthorizationModel(BaseModel):
    """Desired state: applications with permissions and roles, plus groups."""

    applications: List[ApplicationSpec] = Field(default_factory=list)
    groups: List[GroupSpec] = Field(default_factory=list)

    @field_validator("applications", "groups", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v
