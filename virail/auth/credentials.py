"""Tokens and cached user record, persisted per auth mode."""

import json
from typing import Any

from pydantic import ValidationError

from virail.auth.exceptions import CredentialsInvalidError, CredentialsStorageError
from virail.auth.mode import AuthMode, SessionContext
from virail.auth.models import HTTPONLY_COOKIE_SENTINEL, Token, User
from virail.auth.storage.base import KeyValueStore
from virail.core.logging import get_logger


logger = get_logger(__name__)


ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"
USER_KEY = "user"
COOKIES_KEY = "cookies"


class CredentialStore:
    """Reads and writes the session: access token, refresh token, user, cookies.

    In cookies mode the server owns the tokens (httpOnly cookies), so only
    the user record and the cookie jar are written. In bearer mode real token strings are
    persisted as well. Read paths never raise: storage failures are logged
    and reported as "absent".
    """

    def __init__(self, store: KeyValueStore, context: SessionContext) -> None:
        self.store = store
        self.context = context

    # ==================== Tokens ====================

    def save_tokens(self, access: Token | str | None, refresh: Token | str | None) -> None:
        """Persist tokens when the session is in bearer mode.

        Server-managed tokens (and the legacy ``"httponly-cookie"`` string)
        are never written, whatever the mode.
        """
        access_token = Token.from_wire(access)
        refresh_token = Token.from_wire(refresh)

        if self.context.mode is not AuthMode.BEARER:
            logger.debug(
                "tokens_managed_by_server",
                mode=self.context.mode.value,
                category="auth",
            )
            return

        try:
            access_value = access_token.get_secret_value()
            if access_value is not None:
                self.store.set(ACCESS_TOKEN_KEY, access_value)

            refresh_value = refresh_token.get_secret_value()
            if refresh_value is not None:
                self.store.set(REFRESH_TOKEN_KEY, refresh_value)
        except CredentialsStorageError as e:
            logger.error("tokens_save_failed", error=str(e), category="auth")
            return

        logger.debug(
            "tokens_saved",
            has_access_token=not access_token.is_server_managed,
            has_refresh_token=not refresh_token.is_server_managed,
            category="auth",
        )

    def get_access_token(self) -> str | None:
        return self._read_token(ACCESS_TOKEN_KEY)

    def get_refresh_token(self) -> str | None:
        return self._read_token(REFRESH_TOKEN_KEY)

    def _read_token(self, key: str) -> str | None:
        try:
            value = self.store.get(key)
        except CredentialsStorageError as e:
            logger.error("token_read_failed", key=key, error=str(e), category="auth")
            return None

        if not value or value == HTTPONLY_COOKIE_SENTINEL:
            return None
        return value

    def clear_tokens(self) -> None:
        for key in (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY):
            self._delete(key)

    # ==================== User ====================

    def save_user(self, user: User) -> None:
        self.store.set(USER_KEY, user.model_dump_json(exclude_none=True))

    def get_user(self) -> User | None:
        """Return the cached user, purging it if the stored data is malformed."""
        try:
            raw = self.store.get(USER_KEY)
        except CredentialsInvalidError as e:
            logger.warning("user_data_corrupt_purged", error=str(e), category="auth")
            self.clear_user()
            return None
        except CredentialsStorageError as e:
            logger.warning("user_read_failed", error=str(e), category="auth")
            return None

        if raw is None or not raw.strip():
            return None

        try:
            return User.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(
                "user_data_corrupt_purged",
                error=str(e),
                category="auth",
            )
            self.clear_user()
            return None

    def clear_user(self) -> None:
        self._delete(USER_KEY)

    # ==================== Cookies ====================

    def save_cookies(self, records: list[dict[str, Any]]) -> None:
        """Persist the transport's cookie jar so it survives a restart."""
        try:
            if records:
                self.store.set(COOKIES_KEY, json.dumps(records))
            else:
                self.store.delete(COOKIES_KEY)
        except CredentialsStorageError as e:
            logger.error("cookies_save_failed", error=str(e), category="auth")
            return

        logger.debug("cookies_saved", count=len(records), category="auth")

    def get_cookies(self) -> list[dict[str, Any]]:
        """Return persisted cookie records, purging them if malformed."""
        try:
            raw = self.store.get(COOKIES_KEY)
        except CredentialsStorageError as e:
            logger.warning("cookies_read_failed", error=str(e), category="auth")
            return []

        if not raw:
            return []

        try:
            records = json.loads(raw)
        except json.JSONDecodeError:
            records = None

        if not _is_cookie_list(records):
            logger.warning("cookies_corrupt_purged", category="auth")
            self._delete(COOKIES_KEY)
            return []
        return records

    # ==================== Whole session ====================

    def clear_all(self) -> None:
        """Remove every session key regardless of mode. Idempotent."""
        self.clear_tokens()
        self.clear_user()
        self._delete(COOKIES_KEY)

    def _delete(self, key: str) -> None:
        try:
            self.store.delete(key)
        except CredentialsStorageError as e:
            logger.error("key_delete_failed", key=key, error=str(e), category="auth")


def _is_cookie_list(records: Any) -> bool:
    return isinstance(records, list) and all(
        isinstance(record, dict)
        and isinstance(record.get("name"), str)
        and isinstance(record.get("value"), str)
        for record in records
    )
