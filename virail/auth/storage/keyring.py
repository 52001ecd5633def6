"""OS keyring storage backend."""

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from virail.auth.exceptions import CredentialsStorageError
from virail.auth.storage.base import KeyValueStore
from virail.core.logging import get_logger


logger = get_logger(__name__)


class KeyringStore(KeyValueStore):
    """One OS keyring entry per key, grouped under a service name.

    Uses the keyring library which supports macOS Keychain, Windows
    Credential Manager and the Linux Secret Service.
    """

    def __init__(self, service_name: str = "virail-studio"):
        """Initialize keyring storage.

        Args:
            service_name: Name of the service in the keyring
        """
        self.service_name = service_name

    def get(self, key: str) -> str | None:
        try:
            return keyring.get_password(self.service_name, key)
        except KeyringError as e:
            raise CredentialsStorageError(
                f"Error reading '{key}' from keyring: {e}", cause=e
            ) from e

    def set(self, key: str, value: str) -> None:
        try:
            keyring.set_password(self.service_name, key, value)
        except KeyringError as e:
            raise CredentialsStorageError(
                f"Error saving '{key}' to keyring: {e}", cause=e
            ) from e
        logger.debug(
            "keyring_key_saved",
            service=self.service_name,
            key=key,
            category="auth",
        )

    def delete(self, key: str) -> None:
        try:
            keyring.delete_password(self.service_name, key)
        except PasswordDeleteError:
            # Not stored; deleting is idempotent
            return
        except KeyringError as e:
            raise CredentialsStorageError(
                f"Error deleting '{key}' from keyring: {e}", cause=e
            ) from e

    def get_location(self) -> str:
        return f"OS keyring (service: {self.service_name})"
