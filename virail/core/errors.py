"""Core error types for the Virail client."""


class VirailError(Exception):
    """Base exception for all virail client errors."""

    def __init__(self, message: str, cause: Exception | None = None):
        """Initialize with a message and optional cause.

        Args:
            message: The error message
            cause: The underlying exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.cause = cause
        if cause:
            self.__cause__ = cause


class TransportError(VirailError):
    """Error raised by the HTTP transport layer."""

    def __init__(
        self, message: str, url: str | None = None, cause: Exception | None = None
    ):
        """Initialize with a message, URL, and cause.

        Args:
            message: The error message
            url: The URL of the failed request
            cause: The underlying exception
        """
        super().__init__(message, cause)
        self.url = url


class CredentialsNotSupportedError(TransportError):
    """The runtime refused a credentialed (cookie carrying) request.

    Browsers report this as a CORS failure when the backend does not allow
    credentials for the caller's origin; gateways and proxies in front of the
    API surface the same condition as a transport failure carrying the text
    ``Credential is not supported``.
    """


class RequestTimeoutError(TransportError):
    """Error raised when a request exceeds its configured timeout."""

    def __init__(
        self,
        message: str = "Request timed out",
        url: str | None = None,
        timeout: float | None = None,
        cause: Exception | None = None,
    ):
        """Initialize with a message, URL, timeout value, and cause.

        Args:
            message: The error message
            url: The URL of the request that timed out
            timeout: The timeout value in seconds
            cause: The underlying exception
        """
        super().__init__(message, url, cause)
        self.timeout = timeout


class ApiError(VirailError):
    """Non-2xx response from the Virail API."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message, cause)
        self.status_code = status_code
