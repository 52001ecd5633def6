"""Persistent key-value backends for session data."""

from .base import KeyValueStore
from .json_file import JsonFileStore
from .keyring import KeyringStore
from .memory import MemoryStore


__all__ = [
    "KeyValueStore",
    "JsonFileStore",
    "KeyringStore",
    "MemoryStore",
]
