"""Base client with rate limiting, error mapping and request logging."""

import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx
import structlog
from asyncio_throttle import Throttler

from authz_provision.clients.exceptions import (
    APIError,
    AuthenticationError,
    AuthorizationError,
    ClientError,
    ConflictError,
    NetworkError,
    RateLimitError,
    ResourceNotFoundError,
    ServerError,
)

logger = structlog.get_logger(__name__)


class BaseAPIClient(ABC):
    """Abstract base class for API clients with common functionality.

    Requests are issued exactly once. Failures are mapped onto the
    ``APIError`` hierarchy and left to the caller.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 30,
        rate_limit_per_minute: int = 600,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the base API client.

        Args:
            base_url: Base URL for the API
            timeout_seconds: Request timeout in seconds
            rate_limit_per_minute: Maximum requests per minute
            user_agent: Custom user agent string
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.rate_limit_per_minute = rate_limit_per_minute

        headers = {
            "User-Agent": user_agent or self._get_default_user_agent(),
            "Accept": "application/json",
        }

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout_seconds),
            headers=headers,
            follow_redirects=True,
            transport=transport,
        )

        self._throttler = Throttler(rate_limit=rate_limit_per_minute, period=60)

        self._request_count = 0
        self._error_count = 0
        self._last_request_time: Optional[float] = None

        self._logger = logger.bind(
            client_type=self.__class__.__name__,
            base_url=self.base_url,
        )

    async def __aenter__(self) -> "BaseAPIClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    @abstractmethod
    def _get_auth_headers(self) -> Dict[str, str]:
        """Get authentication headers for requests.

        Returns:
            Dictionary of authentication headers
        """
        pass

    def _get_default_user_agent(self) -> str:
        from authz_provision import __version__
        return f"authz-provision/{__version__}"

    async def _make_request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Any = None,
        form_data: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """Make an HTTP request with rate limiting and error handling.

        Args:
            method: HTTP method (GET, POST, PUT, PATCH)
            path: API endpoint path (relative to base URL)
            params: Query parameters
            json_data: JSON request body (object or array)
            form_data: Form-encoded request body
            headers: Additional headers

        Returns:
            HTTP response object

        Raises:
            APIError: If the request fails
        """
        async with self._throttler:
            url = f"{self.base_url}/{path.lstrip('/')}"
            request_headers = self._get_auth_headers()
            if headers:
                request_headers.update(headers)

            self._request_count += 1
            self._last_request_time = time.time()
            request_id = f"req_{self._request_count}"

            self._logger.debug(
                "Making API request",
                request_id=request_id,
                method=method,
                url=url,
                params=params,
                has_json_data=json_data is not None,
            )

            try:
                response = await self._client.request(
                    method=method,
                    url=url,
                    params=params,
                    json=json_data,
                    data=form_data,
                    headers=request_headers,
                )
            except httpx.RequestError as e:
                self._error_count += 1
                self._logger.error(
                    "Network error during API request",
                    request_id=request_id,
                    error=str(e),
                )
                raise NetworkError(f"Network error: {e}") from e

            self._logger.debug(
                "API request completed",
                request_id=request_id,
                status_code=response.status_code,
                response_size=len(response.content),
            )

            if response.is_success:
                return response

            self._error_count += 1
            raise self._error_for_response(response)

    def _error_for_response(self, response: httpx.Response) -> APIError:
        """Map an unsuccessful response onto the APIError hierarchy."""
        status = response.status_code
        text = response.text

        if status == 401:
            return AuthenticationError("Authentication failed", status_code=status, response_text=text)
        if status == 403:
            return AuthorizationError("Authorization failed", status_code=status, response_text=text)
        if status == 404:
            return ResourceNotFoundError("Resource not found", status_code=status, response_text=text)
        if status == 409:
            return ConflictError("Conflict with current state", status_code=status, response_text=text)
        if status == 429:
            return RateLimitError(
                "Rate limit exceeded",
                status_code=status,
                response_text=text,
                retry_after=self._get_retry_after(response),
            )
        if 400 <= status < 500:
            return ClientError(f"Client error: {status}", status_code=status, response_text=text)
        if 500 <= status < 600:
            return ServerError(f"Server error: {status}", status_code=status, response_text=text)
        return APIError(f"Unexpected status code: {status}", status_code=status, response_text=text)

    def _get_retry_after(self, response: httpx.Response) -> Optional[int]:
        retry_after = response.headers.get("Retry-After")
        if retry_after:
            try:
                return int(retry_after)
            except ValueError:
                pass
        return None

    @staticmethod
    def _parse_json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise APIError(
                f"Failed to parse JSON response: {e}",
                status_code=response.status_code,
                response_text=response.text,
            ) from e

    async def get_json(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Make a GET request and return the decoded JSON body."""
        response = await self._make_request("GET", path, params=params)
        return self._parse_json(response)

    async def post_json(self, path: str, json_data: Any = None) -> Any:
        """Make a POST request with a JSON body and return the decoded JSON body."""
        response = await self._make_request("POST", path, json_data=json_data)
        return self._parse_json(response)

    async def post_form(self, path: str, form_data: Dict[str, str]) -> Any:
        """Make a form-encoded POST request and return the decoded JSON body."""
        response = await self._make_request("POST", path, form_data=form_data)
        return self._parse_json(response)

    async def put(self, path: str, json_data: Any = None) -> httpx.Response:
        """Make a PUT request."""
        return await self._make_request("PUT", path, json_data=json_data)

    async def patch(self, path: str, json_data: Any = None) -> httpx.Response:
        """Make a PATCH request."""
        return await self._make_request("PATCH", path, json_data=json_data)

    def get_stats(self) -> Dict[str, Any]:
        """Get client statistics for monitoring.

        Returns:
            Dictionary with client statistics
        """
        return {
            "request_count": self._request_count,
            "error_count": self._error_count,
            "error_rate": self._error_count / max(self._request_count, 1),
            "last_request_time": self._last_request_time,
            "rate_limit_per_minute": self.rate_limit_per_minute,
            "base_url": self.base_url,
        }
