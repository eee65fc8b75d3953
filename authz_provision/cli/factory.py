"""Client factory for creating API clients from settings."""

from typing import Optional

import structlog
from pydantic import SecretStr

from authz_provision.clients.auth import TokenClient
from authz_provision.clients.authz import AuthorizationStoreClient
from authz_provision.config.models import IdentityConfig, StoreConfig

logger = structlog.get_logger(__name__)


class ClientFactory:
    """Factory for creating API clients from settings."""

    @staticmethod
    def create_token_client(config: IdentityConfig) -> TokenClient:
        return TokenClient(
            domain=config.domain,
            client_id=config.client_id,
            client_secret=config.client_secret,
            audience=config.audience,
            grant_type=config.grant_type,
            timeout_seconds=config.timeout_seconds,
        )

    @staticmethod
    def create_store_client(
        config: StoreConfig,
        access_token: Optional[SecretStr] = None,
    ) -> AuthorizationStoreClient:
        logger.debug("Creating store client", api_url=config.api_url)
        return AuthorizationStoreClient(
            api_url=config.api_url,
            access_token=access_token,
            timeout_seconds=config.timeout_seconds,
            rate_limit_per_minute=config.rate_limit_per_minute,
        )
