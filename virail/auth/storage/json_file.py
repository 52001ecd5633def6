"""JSON file storage backend."""

import contextlib
import json
from pathlib import Path

from virail.auth.exceptions import CredentialsInvalidError, CredentialsStorageError
from virail.auth.storage.base import KeyValueStore
from virail.core.logging import get_logger


logger = get_logger(__name__)


class JsonFileStore(KeyValueStore):
    """Key-value store kept as a single JSON object on disk."""

    def __init__(self, file_path: Path):
        """Initialize JSON file storage.

        Args:
            file_path: Path to the JSON session file
        """
        self.file_path = Path(file_path).expanduser()

    def _read(self) -> dict[str, str]:
        """Read the whole file.

        Raises:
            CredentialsInvalidError: If the file is not a JSON object
            CredentialsStorageError: If the file cannot be read
        """
        if not self.file_path.is_file():
            return {}

        try:
            with self.file_path.open(encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise CredentialsInvalidError(
                f"Failed to parse session file {self.file_path}: {e}", cause=e
            ) from e
        except OSError as e:
            raise CredentialsStorageError(
                f"Error reading session file {self.file_path}: {e}", cause=e
            ) from e

        if not isinstance(data, dict):
            raise CredentialsInvalidError(
                f"Session file {self.file_path} does not contain a JSON object"
            )
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write(self, data: dict[str, str]) -> None:
        """Atomically replace the file with ``data``."""
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)

            # Write to a temp file then rename so readers never see half a file
            temp_path = self.file_path.with_suffix(".tmp")
            try:
                with temp_path.open("w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)

                # Owner read/write only
                temp_path.chmod(0o600)

                Path.replace(temp_path, self.file_path)
            except Exception:
                if temp_path.exists():
                    with contextlib.suppress(OSError):
                        temp_path.unlink()
                raise
        except OSError as e:
            raise CredentialsStorageError(
                f"Error writing session file {self.file_path}: {e}", cause=e
            ) from e

    def get(self, key: str) -> str | None:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)
        logger.debug(
            "session_file_key_saved",
            key=key,
            path=str(self.file_path),
            category="auth",
        )

    def delete(self, key: str) -> None:
        try:
            data = self._read()
        except CredentialsInvalidError:
            # A corrupt file cannot be edited key by key; drop it entirely
            self.file_path.unlink(missing_ok=True)
            logger.warning(
                "session_file_corrupt_removed",
                path=str(self.file_path),
                category="auth",
            )
            return

        if key not in data:
            return
        del data[key]
        if data:
            self._write(data)
        else:
            self.file_path.unlink(missing_ok=True)

    def get_location(self) -> str:
        return str(self.file_path)
