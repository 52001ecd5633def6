"""Abstract key-value backend for persisted session data."""

from abc import ABC, abstractmethod


class KeyValueStore(ABC):
    """Synchronous string key-value store that survives process restarts.

    Plays the role ``localStorage`` plays in a browser. Implementations raise
    ``CredentialsStorageError`` (or its ``CredentialsInvalidError`` subclass)
    when the backend cannot be read or written.
    """

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the stored value, or None if the key is absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key. Removing an absent key is not an error."""

    @abstractmethod
    def get_location(self) -> str:
        """Describe where the data lives, for status output."""
