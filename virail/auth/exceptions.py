"""Authentication exceptions."""

from virail.core.errors import VirailError


class AuthenticationError(VirailError):
    """Base authentication error."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message, cause)


class NotAuthenticatedError(AuthenticationError):
    """An authenticated request was attempted without a session."""

    def __init__(self, message: str = "User is not authenticated"):
        super().__init__(message)


class SessionExpiredError(AuthenticationError):
    """The session could not be renewed; the user must log in again."""

    def __init__(self, message: str = "Session expired, please log in again"):
        super().__init__(message)


class BackendAuthError(AuthenticationError):
    """The backend rejected an auth call (wrong password, duplicate user...).

    ``message`` is the backend's own text when it sent one.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class UserDataNotFoundError(AuthenticationError):
    """No cached user record is available."""

    def __init__(self, message: str = "User data not found"):
        super().__init__(message)


class OAuthLoginError(AuthenticationError):
    """The Google OAuth redirect flow failed."""

    pass


class AuthModeError(AuthenticationError):
    """Invalid auth mode transition."""

    pass


class CredentialsStorageError(AuthenticationError):
    """Error reading from or writing to the credential backend."""

    pass


class CredentialsInvalidError(CredentialsStorageError):
    """Stored credential data could not be parsed."""

    pass
