"""Client-credentials token exchange against the identity provider."""

from typing import Dict, Optional

import httpx
import structlog
from pydantic import BaseModel, SecretStr, ValidationError

from authz_provision.clients.base import BaseAPIClient
from authz_provision.clients.exceptions import APIError, AuthenticationFailure

logger = structlog.get_logger(__name__)


class AccessToken(BaseModel):
    """Bearer token returned by the token endpoint."""

    access_token: SecretStr
    token_type: str = "Bearer"
    expires_in: Optional[int] = None


class TokenClient(BaseAPIClient):
    """Exchanges client credentials for a bearer token."""

    TOKEN_PATH = "/oauth/token"

    def __init__(
        self,
        domain: str,
        client_id: str,
        client_secret: SecretStr,
        audience: str,
        grant_type: str = "client_credentials",
        timeout_seconds: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize token client.

        Args:
            domain: Identity provider domain (e.g. 'tenant.eu.auth0.com')
            client_id: Machine-to-machine client id
            client_secret: Machine-to-machine client secret
            audience: API identifier the token is requested for
            grant_type: OAuth2 grant type
            timeout_seconds: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.domain = domain.replace("https://", "").replace("http://", "").rstrip("/")
        self.client_id = client_id
        self._client_secret = client_secret
        self.audience = audience
        self.grant_type = grant_type

        super().__init__(
            base_url=f"https://{self.domain}",
            timeout_seconds=timeout_seconds,
            transport=transport,
        )

        self._logger = logger.bind(domain=self.domain, audience=audience)

    def _get_auth_headers(self) -> Dict[str, str]:
        # Credentials travel in the form body.
        return {}

    def _credentials(self) -> Dict[str, str]:
        return {
            "audience": self.audience,
            "client_id": self.client_id,
            "client_secret": self._client_secret.get_secret_value(),
            "grant_type": self.grant_type,
        }

    async def authenticate(self) -> AccessToken:
        """Get an access token for the authorization extension API.

        Returns:
            The issued access token

        Raises:
            AuthenticationFailure: If the exchange fails or returns no usable token
        """
        self._logger.info("Getting access token")

        try:
            data = await self.post_form(self.TOKEN_PATH, self._credentials())
        except APIError as e:
            self._logger.error("Token exchange failed", error=str(e))
            raise AuthenticationFailure(
                f"Could not obtain access token for {self.audience}"
            ) from e

        if not isinstance(data, dict) or not data.get("access_token"):
            self._logger.error("Token response did not contain an access token")
            raise AuthenticationFailure(
                f"Token response for {self.audience} did not contain an access token"
            )

        try:
            token = AccessToken.model_validate(data)
        except ValidationError as e:
            self._logger.error("Token response could not be parsed", error=str(e))
            raise AuthenticationFailure(
                f"Token response for {self.audience} was malformed"
            ) from e

        self._logger.debug("Obtained access token", expires_in=token.expires_in)
        return token
