"""HTTP transport used by the auth gateway and the API client."""

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

import httpx

from virail.core._version import __version__
from virail.core.errors import CredentialsNotSupportedError
from virail.core.logging import get_logger


logger = get_logger(__name__)

# Text browsers and credential-stripping proxies use when a credentialed
# request is rejected. Matching on text is a fallback only; prefer the
# CredentialsNotSupportedError type raised by HTTPXTransport.
CREDENTIALS_NOT_SUPPORTED_MARKER = "Credential is not supported"


def is_credentials_refusal(text: str) -> bool:
    """Return True if an error message reports a refused credentialed request."""
    return CREDENTIALS_NOT_SUPPORTED_MARKER in text


def extract_error_message(response: httpx.Response, default: str) -> str:
    """Pull a human readable error out of a backend error response.

    Looks at ``message``, then ``detail.message``, then a string ``detail``
    (FastAPI's shape) and falls back to ``default``.
    """
    try:
        data = response.json()
    except ValueError:
        return default

    if not isinstance(data, dict):
        return default

    message = data.get("message")
    if isinstance(message, str) and message:
        return message

    detail = data.get("detail")
    if isinstance(detail, dict):
        detail_message = detail.get("message")
        if isinstance(detail_message, str) and detail_message:
            return detail_message
    if isinstance(detail, str) and detail:
        return detail

    return default


class HTTPTransport(ABC):
    """Abstract transport with browser-like credential handling."""

    # Called with the exported jar whenever a credentialed response sets cookies
    on_cookies_changed: Callable[[list[dict[str, Any]]], None] | None = None

    @abstractmethod
    async def send(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        json: Any = None,
        params: dict[str, Any] | None = None,
        content: bytes | None = None,
        with_credentials: bool = False,
        timeout: float | None = None,
    ) -> httpx.Response:
        """Send a request.

        Args:
            method: HTTP method (GET, POST, etc.)
            url: Absolute target URL
            headers: Extra request headers
            json: JSON body (optional)
            params: Query parameters (optional)
            content: Raw body (optional)
            with_credentials: Attach and update the cookie jar
            timeout: Request timeout in seconds, None for no timeout

        Returns:
            The response, whatever its status code

        Raises:
            CredentialsNotSupportedError: If the credentialed request was refused
            httpx.HTTPError: Any other transport failure, unchanged
        """

    @abstractmethod
    def clear_cookies(self) -> None:
        """Forget every cookie set by the server."""

    @abstractmethod
    def export_cookies(self) -> list[dict[str, Any]]:
        """Return the jar as plain records that can be persisted."""

    @abstractmethod
    def restore_cookies(self, records: list[dict[str, Any]]) -> None:
        """Load records produced by ``export_cookies`` into the jar."""

    @abstractmethod
    async def close(self) -> None:
        """Close any resources held by the transport."""


class HTTPXTransport(HTTPTransport):
    """HTTPX-based transport.

    The transport owns a cookie jar that plays the role of the browser's
    cookie store: it is only sent on credentialed requests and only updated
    from their responses.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        verify: bool | str = True,
        user_agent: str | None = None,
    ) -> None:
        """Initialize HTTPX transport.

        Args:
            client: Shared httpx client (created lazily if not provided)
            verify: SSL verification (True/False or path to CA bundle)
            user_agent: User-Agent header sent with every request
        """
        self.verify = verify
        self.user_agent = user_agent or f"virail-client/{__version__}"
        self.cookies = httpx.Cookies()
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTPX client."""
        if self._client is None:
            self._client = httpx.AsyncClient(verify=self.verify, timeout=None)
        return self._client

    async def send(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        json: Any = None,
        params: dict[str, Any] | None = None,
        content: bytes | None = None,
        with_credentials: bool = False,
        timeout: float | None = None,
    ) -> httpx.Response:
        request_headers = {"User-Agent": self.user_agent}
        request_headers.update(headers or {})

        # An explicit None disables the client default timeout
        extensions: dict[str, Any] = {"timeout": httpx.Timeout(timeout).as_dict()}

        # Build the request directly so the client's own jar never leaks in
        request = httpx.Request(
            method,
            url,
            headers=request_headers,
            json=json,
            params=params,
            content=content,
            extensions=extensions,
        )
        if with_credentials:
            self.cookies.set_cookie_header(request)

        client = self._get_client()
        try:
            response = await client.send(request)
        except httpx.TransportError as e:
            if is_credentials_refusal(str(e)):
                logger.debug(
                    "credentialed_request_refused",
                    method=method,
                    url=url,
                    error=str(e),
                    category="http",
                )
                raise CredentialsNotSupportedError(
                    f"Credentialed request refused: {e}", url=url, cause=e
                ) from e
            raise

        if with_credentials:
            self.cookies.extract_cookies(response)
            if "set-cookie" in response.headers and self.on_cookies_changed is not None:
                self.on_cookies_changed(self.export_cookies())

        logger.debug(
            "http_request_completed",
            method=method,
            url=url,
            status_code=response.status_code,
            with_credentials=with_credentials,
            category="http",
        )
        return response

    def clear_cookies(self) -> None:
        self.cookies.clear()
        if self._client is not None:
            self._client.cookies.clear()

    def export_cookies(self) -> list[dict[str, Any]]:
        return [
            {
                "name": cookie.name,
                "value": cookie.value,
                "domain": cookie.domain,
                "path": cookie.path,
            }
            for cookie in self.cookies.jar
            if cookie.value is not None
        ]

    def restore_cookies(self, records: list[dict[str, Any]]) -> None:
        for record in records:
            self.cookies.set(
                record["name"],
                record["value"],
                domain=record.get("domain", ""),
                path=record.get("path", "/"),
            )

    async def close(self) -> None:
        """Close the HTTPX client if this transport created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
