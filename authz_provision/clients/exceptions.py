"""Exception classes for API clients and provisioning runs."""

from typing import Optional


class APIError(Exception):
    """Base exception for API-related errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_text: Optional[str] = None,
    ) -> None:
        """Initialize API error.

        Args:
            message: Error message
            status_code: HTTP status code if available
            response_text: Response body text if available
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_text = response_text

    def __str__(self) -> str:
        """String representation of the error."""
        parts = [self.message]
        if self.status_code:
            parts.append(f"Status: {self.status_code}")
        if self.response_text:
            response_preview = self.response_text[:200]
            if len(self.response_text) > 200:
                response_preview += "..."
            parts.append(f"Response: {response_preview}")
        return " | ".join(parts)


class AuthenticationError(APIError):
    """Raised when authentication fails (401)."""
    pass


class AuthorizationError(APIError):
    """Raised when authorization fails (403)."""
    pass


class RateLimitError(APIError):
    """Raised when rate limit is exceeded (429)."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_text: Optional[str] = None,
        retry_after: Optional[int] = None,
    ) -> None:
        super().__init__(message, status_code, response_text)
        self.retry_after = retry_after


class ClientError(APIError):
    """Raised for 4xx client errors."""
    pass


class ServerError(APIError):
    """Raised for 5xx server errors."""
    pass


class NetworkError(APIError):
    """Raised for network-related errors."""
    pass


class ResourceNotFoundError(ClientError):
    """Raised when a requested resource is not found (404)."""
    pass


class ConflictError(ClientError):
    """Raised when there's a conflict with the current state (409)."""
    pass


class ConfigurationError(Exception):
    """Raised when settings or the declarative model cannot be loaded."""
    pass


class ProvisioningError(Exception):
    """Base exception for errors that terminate a provisioning run."""

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        resource_key: Optional[str] = None,
    ) -> None:
        """Initialize provisioning error.

        Args:
            message: Error message
            resource_type: Kind of entity involved (permission, role, group)
            resource_key: Declared key of the entity involved
        """
        super().__init__(message)
        self.message = message
        self.resource_type = resource_type
        self.resource_key = resource_key

    def __str__(self) -> str:
        if self.__cause__ is not None:
            return f"{self.message}: {self.__cause__}"
        return self.message


class AuthenticationFailure(ProvisioningError):
    """Token exchange failed; nothing was provisioned."""
    pass


class StoreReadFailure(ProvisioningError):
    """Loading the current store state failed; nothing was written."""
    pass


class StoreWriteFailure(ProvisioningError):
    """A create or attach call failed; earlier writes remain in the store."""
    pass


class UnresolvableReference(ProvisioningError):
    """A declared role permission or nested group could not be resolved."""
    pass
