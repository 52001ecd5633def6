"""Data models for the session layer."""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr


# Wire value older backends and clients use for "the token lives in an
# httpOnly cookie". Only ever converted at the edges via Token.from_wire.
HTTPONLY_COOKIE_SENTINEL = "httponly-cookie"


class Token(BaseModel):
    """A credential that is either held client-side or managed by the server.

    ``Token.server_managed()`` means the backend keeps the credential in an
    httpOnly cookie: it is never persisted nor sent explicitly.
    ``Token.of(value)`` wraps a real token string.
    """

    model_config = ConfigDict(frozen=True)

    secret: SecretStr | None = None

    @classmethod
    def server_managed(cls) -> "Token":
        return cls(secret=None)

    @classmethod
    def of(cls, value: str) -> "Token":
        if not value or value == HTTPONLY_COOKIE_SENTINEL:
            raise ValueError("Token value must be a real, non-empty token")
        return cls(secret=SecretStr(value))

    @classmethod
    def from_wire(cls, raw: Any) -> "Token":
        """Interpret a token field from a response body or a caller."""
        if isinstance(raw, Token):
            return raw
        if isinstance(raw, str) and raw and raw != HTTPONLY_COOKIE_SENTINEL:
            return cls.of(raw)
        return cls.server_managed()

    @property
    def is_server_managed(self) -> bool:
        return self.secret is None

    def get_secret_value(self) -> str | None:
        """Return the token string, or None when server-managed."""
        return self.secret.get_secret_value() if self.secret is not None else None


class User(BaseModel):
    """Cached user record: ``{id, email, username, is_admin?}``."""

    model_config = ConfigDict(extra="allow")

    id: str | int
    email: str
    username: str
    is_admin: bool | None = None


class LoginRequest(BaseModel):
    username: str
    password: str


class RegisterRequest(BaseModel):
    email: str
    username: str
    password: str


class AuthResponse(BaseModel):
    """Outcome of a successful login, registration or OAuth callback."""

    access_token: Token
    refresh_token: Token
    user: User


class UserProfile(BaseModel):
    """Profile view derived from the locally cached user record."""

    email: str
    username: str
    id: int
    is_active: bool = True
    is_verified: bool = True
    is_admin: bool = False
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserProfile":
        extras = user.model_extra or {}
        try:
            user_id = int(user.id)
        except (TypeError, ValueError):
            user_id = 0

        created_at = extras.get("created_at")
        if not isinstance(created_at, str) or not created_at:
            created_at = datetime.now(UTC).isoformat()

        return cls(
            email=user.email or "Not set",
            username=user.username or "Not set",
            id=user_id,
            is_active=True,
            is_verified=True,
            is_admin=bool(user.is_admin),
            created_at=created_at,
        )


class SessionRecord(BaseModel):
    """An active login session as listed by ``/auth/sessions``."""

    id: str | int | None = None
    session_id: str | int | None = None
    device_name: str | None = None
    ip: str | None = None
    user_agent: str | None = None
    created_at: str | None = None
    last_active_at: str | None = None
    revoked_at: str | None = None
    current: bool = False
    location: str | None = None

    @classmethod
    def from_backend(cls, raw: dict[str, Any]) -> "SessionRecord":
        """Normalize the field spellings different backend versions use."""

        def first(*keys: str) -> Any:
            for key in keys:
                value = raw.get(key)
                if value not in (None, ""):
                    return value
            return None

        return cls(
            id=first("id", "session_id", "sid"),
            session_id=first("session_id", "id"),
            device_name=first("device_name", "device"),
            ip=first("ip", "ip_address"),
            user_agent=first("user_agent", "ua"),
            created_at=first("created_at", "createdAt"),
            last_active_at=first("last_active_at", "last_seen_at", "lastSeenAt"),
            revoked_at=first("revoked_at", "revokedAt"),
            current=bool(raw.get("current")),
            location=first("location"),
        )


class PasswordResetResult(BaseModel):
    success: bool
    message: str = Field(default="")


__all__ = [
    "HTTPONLY_COOKIE_SENTINEL",
    "Token",
    "User",
    "LoginRequest",
    "RegisterRequest",
    "AuthResponse",
    "UserProfile",
    "SessionRecord",
    "PasswordResetResult",
]
