"""Client-side authentication and session lifecycle for the Virail API."""

from virail.auth.credentials import CredentialStore
from virail.auth.exceptions import (
    AuthenticationError,
    AuthModeError,
    BackendAuthError,
    CredentialsInvalidError,
    CredentialsStorageError,
    NotAuthenticatedError,
    OAuthLoginError,
    SessionExpiredError,
    UserDataNotFoundError,
)
from virail.auth.gateway import AuthenticatedRequestGateway
from virail.auth.mode import AuthMode, SessionContext
from virail.auth.models import (
    AuthResponse,
    LoginRequest,
    PasswordResetResult,
    RegisterRequest,
    SessionRecord,
    Token,
    User,
    UserProfile,
)
from virail.auth.negotiator import AuthModeNegotiator
from virail.auth.redirect import BrowserRedirector, LoggingRedirector, Redirector
from virail.auth.service import AuthService


__all__ = [
    # Session API
    "AuthService",
    "AuthenticatedRequestGateway",
    "AuthModeNegotiator",
    "CredentialStore",
    # Mode
    "AuthMode",
    "SessionContext",
    # Navigation
    "Redirector",
    "LoggingRedirector",
    "BrowserRedirector",
    # Models
    "Token",
    "User",
    "LoginRequest",
    "RegisterRequest",
    "AuthResponse",
    "UserProfile",
    "SessionRecord",
    "PasswordResetResult",
    # Exceptions
    "AuthenticationError",
    "NotAuthenticatedError",
    "SessionExpiredError",
    "BackendAuthError",
    "UserDataNotFoundError",
    "OAuthLoginError",
    "AuthModeError",
    "CredentialsStorageError",
    "CredentialsInvalidError",
]
