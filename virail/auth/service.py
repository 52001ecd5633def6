"""Session lifecycle: login, registration, OAuth, refresh and logout."""

from typing import Any

import httpx

from virail.auth.credentials import USER_KEY, CredentialStore
from virail.auth.exceptions import (
    BackendAuthError,
    CredentialsStorageError,
    OAuthLoginError,
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
from virail.auth.negotiator import AuthModeNegotiator, is_credentials_unsupported
from virail.auth.redirect import LoggingRedirector, Redirector
from virail.core.errors import CredentialsNotSupportedError, VirailError
from virail.core.http import HTTPTransport, extract_error_message
from virail.core.logging import get_logger


logger = get_logger(__name__)

JSON_HEADERS = {"Content-Type": "application/json"}


class AuthService:
    """Client-side session manager for the Virail API."""

    # ==================== Initialization ====================

    def __init__(
        self,
        base_url: str,
        credentials: CredentialStore,
        transport: HTTPTransport,
        *,
        negotiator: AuthModeNegotiator | None = None,
        redirector: Redirector | None = None,
        probe_path: str = "/docs",
        login_route: str = "/login",
        owns_transport: bool = False,
    ) -> None:
        """Initialize the auth service.

        Args:
            base_url: Base URL of the Virail API
            credentials: Store for tokens and the cached user
            transport: HTTP transport shared by every auth call
            negotiator: Mode negotiator (built from ``probe_path`` if not provided)
            redirector: Navigation hook for login and OAuth redirects
            probe_path: Endpoint probed during mode negotiation
            login_route: Route the user is sent to when the session expires
            owns_transport: Close the transport when the service is closed
        """
        self.base_url = base_url.rstrip("/")
        self.credentials = credentials
        self.transport = transport
        # Server-set cookies live in the same store as the cached user
        transport.restore_cookies(credentials.get_cookies())
        transport.on_cookies_changed = credentials.save_cookies
        self.redirector = redirector or LoggingRedirector()
        self.negotiator = negotiator or AuthModeNegotiator(
            credentials.context, transport, self.url(probe_path)
        )
        self.gateway = AuthenticatedRequestGateway(
            session=self,
            context=credentials.context,
            credentials=credentials,
            negotiator=self.negotiator,
            transport=transport,
            redirector=self.redirector,
            login_route=login_route,
        )
        self._owns_transport = owns_transport

    async def __aenter__(self) -> "AuthService":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_transport:
            await self.transport.close()

    @property
    def context(self) -> SessionContext:
        return self.credentials.context

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def initialize(self) -> None:
        """Validate persisted session data, discarding anything corrupt.

        A corrupt user record is purged by the read itself; an unreadable
        store is cleared entirely.
        """
        try:
            self.credentials.store.get(USER_KEY)
        except CredentialsStorageError as e:
            logger.warning("session_store_unreadable_cleared", error=str(e), category="auth")
            self.credentials.clear_all()
            return

        user = self.credentials.get_user()
        logger.debug(
            "session_restored",
            has_user=user is not None,
            has_access_token=self.credentials.get_access_token() is not None,
            mode=self.context.mode.value,
            category="auth",
        )

    # ==================== Login and registration ====================

    async def login(self, credentials: LoginRequest) -> AuthResponse:
        """Log in with username and password.

        Raises:
            BackendAuthError: If the backend rejects the credentials
        """
        downgraded = False
        while True:
            await self.negotiator.negotiate()
            mode = self.context.mode
            logger.debug("login_attempt", mode=mode.value, category="auth")

            try:
                response = await self.transport.send(
                    "POST",
                    self.url("/auth/login"),
                    headers=JSON_HEADERS,
                    json=credentials.model_dump(),
                    with_credentials=mode is AuthMode.COOKIES,
                )
                if not response.is_success:
                    raise BackendAuthError(
                        extract_error_message(response, "Login failed"),
                        status_code=response.status_code,
                    )
            except (CredentialsNotSupportedError, httpx.TransportError, BackendAuthError) as e:
                if downgraded or mode is not AuthMode.COOKIES or not is_credentials_unsupported(e):
                    raise
                self.negotiator.downgrade(e)
                downgraded = True
                continue

            data = self._json_object(response)
            # The backend's own user object is not trusted; only tokens are read
            user = User(
                id=str(credentials.username),
                email=f"{credentials.username}@example.com",
                username=credentials.username,
            )
            auth_response = AuthResponse(
                access_token=Token.from_wire(data.get("access_token") or data.get("token")),
                refresh_token=Token.from_wire(data.get("refresh_token")),
                user=user,
            )
            self._persist(auth_response)

            logger.info(
                "login_succeeded",
                username=credentials.username,
                mode=self.context.mode.value,
                category="auth",
            )
            return auth_response

    async def register(self, user_data: RegisterRequest) -> AuthResponse:
        """Create an account. Always uses cookie credentials, no negotiation.

        Raises:
            BackendAuthError: If the backend rejects the registration
        """
        response = await self.transport.send(
            "POST",
            self.url("/auth/register"),
            headers=JSON_HEADERS,
            json=user_data.model_dump(),
            with_credentials=True,
        )
        if not response.is_success:
            raise BackendAuthError(
                extract_error_message(response, "Registration failed"),
                status_code=response.status_code,
            )

        data = self._json_object(response)
        auth_response = AuthResponse(
            access_token=Token.from_wire(data.get("access_token")),
            refresh_token=Token.from_wire(data.get("refresh_token")),
            user=User(
                id=str(user_data.username),
                email=user_data.email,
                username=user_data.username,
            ),
        )
        self._persist(auth_response)

        logger.info("register_succeeded", username=user_data.username, category="auth")
        return auth_response

    async def login_with_google(self) -> str:
        """Start the Google OAuth flow and redirect the user to the consent page.

        Returns:
            The Google authorization URL

        Raises:
            BackendAuthError: If the backend refuses to start the flow
            OAuthLoginError: If the backend returned no redirect URL
        """
        response = await self.transport.send(
            "GET", self.url("/auth/google/login"), with_credentials=True
        )
        if not response.is_success:
            raise BackendAuthError(
                extract_error_message(response, "Could not start Google login"),
                status_code=response.status_code,
            )

        data = self._json_object(response)
        redirect_url = data.get("redirect_url") or data.get("auth_url")
        if not redirect_url:
            logger.error("google_redirect_url_missing", keys=sorted(data), category="auth")
            raise OAuthLoginError("Google authentication URL not received")

        self.redirector.redirect(redirect_url)
        return str(redirect_url)

    async def handle_google_callback(self) -> AuthResponse:
        """Finish the Google OAuth flow once the backend has set its cookies.

        Raises:
            BackendAuthError: If the status check fails
            OAuthLoginError: If the backend reports no authenticated user
        """
        response = await self.transport.send(
            "GET", self.url("/auth/google/status"), with_credentials=True
        )
        if not response.is_success:
            raise BackendAuthError(
                extract_error_message(response, "Could not check Google login status"),
                status_code=response.status_code,
            )

        data = self._json_object(response)
        backend_user = data.get("user")
        if not data.get("authenticated") or not isinstance(backend_user, dict):
            raise OAuthLoginError("Google authentication failed")

        email = str(backend_user.get("email") or "")
        username = str(backend_user.get("username") or email.split("@")[0])
        user = User(
            id=str(backend_user.get("id") or username),
            email=email,
            username=username,
        )
        self.credentials.save_user(user)

        logger.info("google_login_succeeded", username=user.username, category="auth")
        return AuthResponse(
            access_token=Token.server_managed(),
            refresh_token=Token.server_managed(),
            user=user,
        )

    # ==================== Session state ====================

    def is_authenticated(self) -> bool:
        """Whether a local session exists.

        In cookies mode the httpOnly cookie cannot be inspected, so a cached
        user is taken as proof of a session. Other modes also need a real
        access token.
        """
        user = self.credentials.get_user()
        if self.context.mode is AuthMode.COOKIES:
            return user is not None
        return user is not None and self.credentials.get_access_token() is not None

    async def refresh_access_token(self) -> str | None:
        """Renew the access token.

        Any failure logs the user out.

        Returns:
            The new access token, or None if the session could not be renewed
        """
        mode = self.context.mode
        body: dict[str, str] | None = None

        if mode is AuthMode.BEARER:
            refresh_token = self.credentials.get_refresh_token()
            if refresh_token is None:
                logger.info("refresh_token_missing", mode=mode.value, category="auth")
                await self.logout()
                return None
            body = {"refresh_token": refresh_token}

        try:
            response = await self.transport.send(
                "POST",
                self.url("/auth/refresh"),
                headers=JSON_HEADERS,
                json=body,
                with_credentials=mode is AuthMode.COOKIES,
            )
        except (CredentialsNotSupportedError, httpx.HTTPError) as e:
            logger.error("token_refresh_error", error=str(e), category="auth")
            await self.logout()
            return None

        if not response.is_success:
            logger.info(
                "token_refresh_rejected",
                status_code=response.status_code,
                detail=response.text[:200],
                category="auth",
            )
            await self.logout()
            return None

        try:
            data = response.json()
        except ValueError as e:
            logger.error("token_refresh_invalid_body", error=str(e), category="auth")
            await self.logout()
            return None

        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not isinstance(access_token, str) or not access_token:
            logger.info("token_refresh_missing_access_token", category="auth")
            await self.logout()
            return None

        self.credentials.save_tokens(access_token, data.get("refresh_token"))
        logger.info("token_refreshed", mode=mode.value, category="auth")
        return access_token

    async def logout(self) -> None:
        """End the session. Local state is cleared even if the server call fails."""
        try:
            response = await self.transport.send(
                "POST",
                self.url("/auth/logout"),
                headers=JSON_HEADERS,
                with_credentials=True,
            )
            if response.is_success:
                logger.info("logout_server_succeeded", category="auth")
            else:
                logger.warning(
                    "logout_server_rejected",
                    status_code=response.status_code,
                    category="auth",
                )
        except Exception as e:
            logger.warning(
                "logout_server_error",
                error=str(e),
                error_type=type(e).__name__,
                category="auth",
            )
        finally:
            self.credentials.clear_all()
            self.transport.clear_cookies()
            logger.debug("local_session_cleared", category="auth")

    def get_user_profile(self) -> UserProfile:
        """Build the profile view from the cached user. No network call.

        Raises:
            UserDataNotFoundError: If no user is cached
        """
        user = self.credentials.get_user()
        if user is None:
            raise UserDataNotFoundError()
        return UserProfile.from_user(user)

    async def get_sessions(self) -> list[SessionRecord]:
        """List the user's active sessions. Returns [] on any failure."""
        try:
            response = await self.gateway.request("GET", self.url("/auth/sessions"))
            if not response.is_success:
                raise BackendAuthError(
                    extract_error_message(response, "Could not list sessions"),
                    status_code=response.status_code,
                )
            data = response.json()
        except (VirailError, httpx.HTTPError, ValueError) as e:
            logger.error("sessions_fetch_failed", error=str(e), category="auth")
            return []

        if isinstance(data, dict):
            data = data.get("sessions") or []
        if not isinstance(data, list):
            return []
        return [SessionRecord.from_backend(item) for item in data if isinstance(item, dict)]

    # ==================== Password reset ====================

    async def forgot_password(self, email: str) -> PasswordResetResult:
        return await self._password_call(
            "/auth/forgot-password",
            {"email": email},
            success_message="Reset email sent",
            failure_message="Could not send the reset email",
        )

    async def reset_password(self, token: str, new_password: str) -> PasswordResetResult:
        return await self._password_call(
            "/auth/reset-password",
            {"token": token, "new_password": new_password},
            success_message="Password reset",
            failure_message="Could not reset the password",
        )

    async def _password_call(
        self,
        path: str,
        body: dict[str, str],
        success_message: str,
        failure_message: str,
    ) -> PasswordResetResult:
        try:
            response = await self.transport.send(
                "POST",
                self.url(path),
                headers=JSON_HEADERS,
                json=body,
                with_credentials=True,
            )
        except (CredentialsNotSupportedError, httpx.HTTPError) as e:
            logger.error("password_call_failed", path=path, error=str(e), category="auth")
            return PasswordResetResult(success=False, message="Connection error")

        if response.is_success:
            return PasswordResetResult(
                success=True, message=extract_error_message(response, success_message)
            )
        return PasswordResetResult(
            success=False, message=extract_error_message(response, failure_message)
        )

    # ==================== Diagnostics ====================

    async def check_backend_auth(self) -> bool:
        """Check that ``/auth/me`` accepts the session's credentials."""
        if self.context.mode is AuthMode.AUTO:
            await self.negotiator.negotiate()

        if self.context.mode is AuthMode.COOKIES:
            try:
                response = await self.transport.send(
                    "GET", self.url("/auth/me"), with_credentials=True
                )
            except (CredentialsNotSupportedError, httpx.HTTPError) as e:
                if not is_credentials_unsupported(e):
                    logger.info(
                        "backend_auth_check_failed",
                        mode="cookies",
                        error=str(e),
                        category="auth",
                    )
                    return False
                self.negotiator.downgrade(e)
            else:
                logger.info(
                    "backend_auth_checked",
                    mode="cookies",
                    status_code=response.status_code,
                    category="auth",
                )
                return response.is_success

        access_token = self.credentials.get_access_token()
        if access_token is None:
            logger.info(
                "backend_auth_check_no_token",
                mode=self.context.mode.value,
                category="auth",
            )
            return False

        try:
            response = await self.transport.send(
                "GET",
                self.url("/auth/me"),
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except (CredentialsNotSupportedError, httpx.HTTPError) as e:
            logger.info(
                "backend_auth_check_failed", mode="bearer", error=str(e), category="auth"
            )
            return False

        logger.info(
            "backend_auth_checked",
            mode="bearer",
            status_code=response.status_code,
            category="auth",
        )
        return response.is_success

    def force_auth_mode(self, mode: AuthMode) -> None:
        self.context.force_mode(mode)

    def describe_auth_mode(self) -> str:
        return self.context.describe()

    async def request(self, method: str, path: str, **options: Any) -> httpx.Response:
        """Send an authenticated request to an API path through the gateway."""
        return await self.gateway.request(method, self.url(path), **options)

    # ==================== Private Helper Methods ====================

    def _persist(self, auth_response: AuthResponse) -> None:
        self.credentials.save_tokens(auth_response.access_token, auth_response.refresh_token)
        try:
            self.credentials.save_user(auth_response.user)
        except CredentialsStorageError as e:
            logger.error("user_save_failed", error=str(e), category="auth")
            raise

    @staticmethod
    def _json_object(response: httpx.Response) -> dict[str, Any]:
        """Parse a response body, treating anything but a JSON object as empty."""
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}
