"""API clients for the identity provider and the authorization store."""

from authz_provision.clients.auth import AccessToken, TokenClient
from authz_provision.clients.authz import AuthorizationStoreClient

__all__ = ["AccessToken", "AuthorizationStoreClient", "TokenClient"]
