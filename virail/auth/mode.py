"""Auth mode and the per-session negotiation state."""

from enum import Enum

from virail.auth.exceptions import AuthModeError
from virail.core.logging import get_logger


logger = get_logger(__name__)


class AuthMode(str, Enum):
    """How credentials travel to the backend."""

    COOKIES = "cookies"
    """Server-set httpOnly cookies; the client never sees the token."""

    BEARER = "bearer"
    """Client-held access token sent in the Authorization header."""

    AUTO = "auto"
    """Undecided; negotiate before the next authenticated request."""


class SessionContext:
    """Auth mode shared by the store, negotiator, gateway and service.

    One instance is created per application session and injected into every
    component. The mode only ever moves from cookies to bearer on its own;
    ``reset()`` is the only way back.
    """

    def __init__(self, initial_mode: AuthMode = AuthMode.COOKIES) -> None:
        self.initial_mode = AuthMode(initial_mode)
        self._mode = self.initial_mode
        self._credentials_supported: bool | None = None

    @property
    def mode(self) -> AuthMode:
        return self._mode

    @property
    def credentials_supported(self) -> bool | None:
        """Memoized negotiation verdict; None until probed."""
        return self._credentials_supported

    @property
    def is_negotiated(self) -> bool:
        return self._credentials_supported is not None

    def downgrade_to_bearer(self) -> None:
        """Record that credentialed requests are refused and switch to bearer."""
        if self._mode is not AuthMode.BEARER:
            logger.info(
                "auth_mode_downgraded",
                previous_mode=self._mode.value,
                mode=AuthMode.BEARER.value,
                category="auth",
            )
        self._mode = AuthMode.BEARER
        self._credentials_supported = False

    def mark_credentials_supported(self) -> None:
        """Record that credentialed requests work.

        Switches to cookies unless the session is already in bearer mode.
        """
        self._credentials_supported = True
        if self._mode is not AuthMode.BEARER:
            self._mode = AuthMode.COOKIES

    def force_mode(self, mode: AuthMode) -> None:
        """Operator override of the negotiated mode.

        Forcing ``auto`` forgets the verdict so the next request probes again.

        Raises:
            AuthModeError: If asked to leave bearer mode after a downgrade
        """
        mode = AuthMode(mode)
        if mode is not AuthMode.BEARER and self._credentials_supported is False:
            raise AuthModeError(
                "Credentialed requests were refused in this session; "
                f"reset the session before forcing {mode.value} mode"
            )
        self._mode = mode
        if mode is AuthMode.AUTO:
            self._credentials_supported = None
        else:
            self._credentials_supported = mode is AuthMode.COOKIES
        logger.info("auth_mode_forced", mode=mode.value, category="auth")

    def reset(self) -> None:
        """Forget the negotiation result and return to the initial mode."""
        self._mode = self.initial_mode
        self._credentials_supported = None

    def describe(self) -> str:
        return f"Mode: {self._mode.value}, CORS: {self._credentials_supported}"

    def __repr__(self) -> str:
        return (
            f"SessionContext(mode={self._mode.value!r}, "
            f"credentials_supported={self._credentials_supported!r})"
        )
