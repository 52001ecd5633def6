"""Authenticated request gateway.

Attaches credentials according to the session's auth mode and recovers from
the two failures the backend produces in practice:

* HTTP 401: refresh the access token once, then re-issue the request once.
* A refused credentialed request in cookies mode: downgrade the session to
  bearer mode and repeat the whole call once.

Concurrent calls are independent: two requests hitting 401 at the same time
each run their own refresh.
"""

from typing import Any, NoReturn, Protocol

import httpx

from virail.auth.credentials import CredentialStore
from virail.auth.exceptions import NotAuthenticatedError, SessionExpiredError
from virail.auth.mode import AuthMode, SessionContext
from virail.auth.negotiator import AuthModeNegotiator, is_credentials_unsupported
from virail.auth.redirect import Redirector
from virail.core.errors import CredentialsNotSupportedError
from virail.core.http import HTTPTransport
from virail.core.logging import get_logger


logger = get_logger(__name__)

# Retries of the whole call after switching cookies -> bearer
MAX_MODE_RETRIES = 1


class SessionLifecycle(Protocol):
    """The parts of the session API the gateway depends on."""

    def is_authenticated(self) -> bool: ...

    async def refresh_access_token(self) -> str | None: ...

    async def logout(self) -> None: ...


class AuthenticatedRequestGateway:
    """Sends requests on behalf of an authenticated session."""

    def __init__(
        self,
        session: SessionLifecycle,
        context: SessionContext,
        credentials: CredentialStore,
        negotiator: AuthModeNegotiator,
        transport: HTTPTransport,
        redirector: Redirector,
        login_route: str = "/login",
    ) -> None:
        self.session = session
        self.context = context
        self.credentials = credentials
        self.negotiator = negotiator
        self.transport = transport
        self.redirector = redirector
        self.login_route = login_route

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        json: Any = None,
        params: dict[str, Any] | None = None,
        content: bytes | None = None,
    ) -> httpx.Response:
        """Send an authenticated request.

        Returns:
            The backend response (any status other than an unrecovered 401)

        Raises:
            NotAuthenticatedError: If there is no session; nothing is sent
            SessionExpiredError: If a 401 could not be recovered by a refresh
            httpx.HTTPError: Other transport failures, unchanged
        """
        attempt = 0
        while True:
            if not self.session.is_authenticated():
                logger.info("request_rejected_unauthenticated", url=url, category="auth")
                raise NotAuthenticatedError()

            if self.context.mode is AuthMode.AUTO:
                await self.negotiator.negotiate()

            mode = self.context.mode
            try:
                return await self._send_with_refresh(
                    mode,
                    method,
                    url,
                    headers=headers,
                    json=json,
                    params=params,
                    content=content,
                )
            except (CredentialsNotSupportedError, httpx.TransportError) as e:
                if (
                    mode is not AuthMode.COOKIES
                    or attempt >= MAX_MODE_RETRIES
                    or not is_credentials_unsupported(e)
                ):
                    raise
                self.negotiator.downgrade(e)
                attempt += 1
                logger.info(
                    "request_retrying_in_bearer_mode",
                    method=method,
                    url=url,
                    category="auth",
                )

    async def _send_with_refresh(
        self,
        mode: AuthMode,
        method: str,
        url: str,
        **options: Any,
    ) -> httpx.Response:
        headers = dict(options.pop("headers") or {})
        with_credentials = self._apply_credentials(mode, headers)

        response = await self.transport.send(
            method, url, headers=headers, with_credentials=with_credentials, **options
        )
        if response.status_code != 401:
            return response

        logger.info("request_unauthorized_refreshing", url=url, category="auth")
        new_access_token = await self.session.refresh_access_token()
        if new_access_token is None:
            await self._expire_session()

        if mode is AuthMode.BEARER:
            headers["Authorization"] = f"Bearer {new_access_token}"

        # One retry only; its outcome is returned whatever the status
        return await self.transport.send(
            method, url, headers=headers, with_credentials=with_credentials, **options
        )

    def _apply_credentials(self, mode: AuthMode, headers: dict[str, str]) -> bool:
        """Add mode-specific credentials; return whether to send cookies."""
        if mode is AuthMode.COOKIES:
            return True

        if mode is AuthMode.BEARER:
            access_token = self.credentials.get_access_token()
            if access_token:
                headers["Authorization"] = f"Bearer {access_token}"
            else:
                logger.warning("bearer_token_missing", category="auth")
        return False

    async def _expire_session(self) -> NoReturn:
        logger.warning("session_expired", login_route=self.login_route, category="auth")
        await self.session.logout()
        self.redirector.redirect(self.login_route)
        raise SessionExpiredError()
