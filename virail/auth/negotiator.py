"""One-time probe deciding between cookie and bearer auth."""

import httpx

from virail.auth.mode import SessionContext
from virail.core.errors import CredentialsNotSupportedError
from virail.core.http import HTTPTransport, is_credentials_refusal
from virail.core.logging import get_logger


logger = get_logger(__name__)


def is_credentials_unsupported(exc: BaseException) -> bool:
    """Return True if ``exc`` means credentialed requests are refused.

    Checks for ``CredentialsNotSupportedError`` along the cause chain first.
    Matching the error text is a last resort: the wording comes from the
    runtime (browser, proxy) and is not a stable contract.
    """
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        if isinstance(current, CredentialsNotSupportedError):
            return True
        seen.add(id(current))
        current = current.__cause__ or current.__context__

    return is_credentials_refusal(str(exc))


class AuthModeNegotiator:
    """Decides once per session whether credentialed requests work.

    Some deployments reject credentialed cross-origin requests; those
    sessions must fall back to bearer tokens.
    """

    def __init__(
        self,
        context: SessionContext,
        transport: HTTPTransport,
        probe_url: str,
    ) -> None:
        self.context = context
        self.transport = transport
        self.probe_url = probe_url

    async def negotiate(self) -> bool:
        """Return whether credentialed requests are supported, probing once.

        Returns:
            True for cookies mode, False for bearer mode
        """
        cached = self.context.credentials_supported
        if cached is not None:
            return cached

        logger.debug("auth_mode_probe_started", url=self.probe_url, category="auth")
        try:
            response = await self.transport.send(
                "GET", self.probe_url, with_credentials=True
            )
        except CredentialsNotSupportedError as e:
            self.downgrade(e)
            return False
        except httpx.HTTPError as e:
            if is_credentials_unsupported(e):
                self.downgrade(e)
                return False
            # Network trouble says nothing about CORS; keep cookies
            logger.warning(
                "auth_mode_probe_failed",
                error=str(e),
                error_type=type(e).__name__,
                fallback="cookies",
                category="auth",
            )
            self.context.mark_credentials_supported()
            return True

        logger.info(
            "auth_mode_probe_succeeded",
            status_code=response.status_code,
            mode=self.context.mode.value,
            category="auth",
        )
        self.context.mark_credentials_supported()
        return True

    def downgrade(self, reason: BaseException | None = None) -> None:
        """Switch the session to bearer mode after a refused credentialed request."""
        logger.info(
            "credentials_not_supported",
            reason=str(reason) if reason else None,
            category="auth",
        )
        self.context.downgrade_to_bearer()
