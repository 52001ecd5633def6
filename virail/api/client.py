"""Cookie-credentialed client for general Virail API calls."""

from typing import Any

import httpx

from virail.config.api import ApiSettings
from virail.core.errors import ApiError, RequestTimeoutError
from virail.core.http import HTTPTransport, extract_error_message
from virail.core.logging import get_logger


logger = get_logger(__name__)


class ApiClient:
    """Sends credentialed JSON requests with the configured timeout.

    Unlike the session gateway, this client never refreshes or switches
    auth mode: it relies on the session cookies alone.
    """

    def __init__(self, settings: ApiSettings, transport: HTTPTransport) -> None:
        self.settings = settings
        self.transport = transport

    def url(self, endpoint: str) -> str:
        return f"{self.settings.base_url}/{endpoint.lstrip('/')}"

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Raises:
            RequestTimeoutError: If the call exceeds ``api.timeout``
            ApiError: On a non-2xx response or an undecodable body
        """
        url = self.url(endpoint)
        logger.debug("api_request_started", method=method, url=url, category="api")

        try:
            response = await self.transport.send(
                method,
                url,
                headers={"Content-Type": "application/json"},
                json=json,
                params=params,
                with_credentials=True,
                timeout=self.settings.timeout,
            )
        except httpx.TimeoutException as e:
            logger.warning(
                "api_request_timeout",
                method=method,
                url=url,
                timeout=self.settings.timeout,
                category="api",
            )
            raise RequestTimeoutError(
                url=url, timeout=self.settings.timeout, cause=e
            ) from e

        if not response.is_success:
            message = extract_error_message(
                response, f"API error: {response.status_code}"
            )
            logger.warning(
                "api_request_failed",
                method=method,
                url=url,
                status_code=response.status_code,
                error=message,
                category="api",
            )
            raise ApiError(message, status_code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise ApiError(
                f"Invalid JSON in response from {endpoint}",
                status_code=response.status_code,
                cause=e,
            ) from e

    async def get(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request(endpoint, "GET", params=params)

    async def post(self, endpoint: str, json: Any = None) -> Any:
        return await self.request(endpoint, "POST", json=json)

    async def get_me(self) -> dict[str, Any]:
        """Fetch the current user's profile from the backend."""
        data = await self.request("/auth/me-bearer")
        return data if isinstance(data, dict) else {}
