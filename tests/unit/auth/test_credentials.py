"""Tests for the credential store: tokens per auth mode and the cached user."""

import json
from unittest.mock import MagicMock

import pytest

from virail.auth.credentials import (
    ACCESS_TOKEN_KEY,
    COOKIES_KEY,
    REFRESH_TOKEN_KEY,
    USER_KEY,
    CredentialStore,
)
from virail.auth.exceptions import CredentialsStorageError
from virail.auth.models import HTTPONLY_COOKIE_SENTINEL, Token, User
from virail.auth.storage import JsonFileStore, KeyValueStore, MemoryStore


class TestTokens:
    """Token persistence depends on the session's auth mode."""

    def test_cookies_mode_never_persists_tokens(self, credentials, memory_store):
        credentials.save_tokens("real-access", "real-refresh")

        assert memory_store.keys() == []
        assert credentials.get_access_token() is None
        assert credentials.get_refresh_token() is None

    def test_bearer_mode_persists_real_tokens(self, memory_store, bearer_context):
        store = CredentialStore(memory_store, bearer_context)

        store.save_tokens(Token.of("access"), "refresh")

        assert store.get_access_token() == "access"
        assert store.get_refresh_token() == "refresh"

    def test_bearer_mode_skips_server_managed_tokens(self, memory_store, bearer_context):
        store = CredentialStore(memory_store, bearer_context)

        store.save_tokens(HTTPONLY_COOKIE_SENTINEL, Token.server_managed())

        assert memory_store.keys() == []

    def test_bearer_mode_keeps_refresh_token_when_none_returned(
        self, memory_store, bearer_context
    ):
        store = CredentialStore(memory_store, bearer_context)
        store.save_tokens("access-1", "refresh-1")

        store.save_tokens("access-2", None)

        assert store.get_access_token() == "access-2"
        assert store.get_refresh_token() == "refresh-1"

    def test_stored_sentinel_reads_as_absent(self, memory_store, context):
        memory_store.set(ACCESS_TOKEN_KEY, HTTPONLY_COOKIE_SENTINEL)
        memory_store.set(REFRESH_TOKEN_KEY, HTTPONLY_COOKIE_SENTINEL)
        store = CredentialStore(memory_store, context)

        assert store.get_access_token() is None
        assert store.get_refresh_token() is None

    def test_storage_error_reads_as_absent(self, context):
        backend = MagicMock(spec=KeyValueStore)
        backend.get.side_effect = CredentialsStorageError("disk on fire")
        store = CredentialStore(backend, context)

        assert store.get_access_token() is None
        assert store.get_user() is None

    def test_clear_tokens(self, memory_store, bearer_context):
        store = CredentialStore(memory_store, bearer_context)
        store.save_tokens("access", "refresh")

        store.clear_tokens()

        assert store.get_access_token() is None
        assert store.get_refresh_token() is None

    def test_token_of_rejects_non_tokens(self):
        with pytest.raises(ValueError):
            Token.of(HTTPONLY_COOKIE_SENTINEL)
        with pytest.raises(ValueError):
            Token.of("")

    def test_from_wire_wraps_real_strings(self):
        token = Token.from_wire("abc")

        assert token == Token.of("abc")
        assert token.get_secret_value() == "abc"


class TestUser:
    """The cached user record."""

    def test_round_trip(self, credentials):
        user = User(id=7, email="bob@example.com", username="bob", is_admin=True)

        credentials.save_user(user)

        assert credentials.get_user() == user

    def test_round_trip_keeps_extra_fields(self, credentials):
        user = User.model_validate(
            {
                "id": "bob",
                "email": "bob@example.com",
                "username": "bob",
                "created_at": "2024-05-01T10:00:00+00:00",
            }
        )

        credentials.save_user(user)
        loaded = credentials.get_user()

        assert loaded is not None
        assert loaded.model_extra == {"created_at": "2024-05-01T10:00:00+00:00"}

    def test_missing_user(self, credentials):
        assert credentials.get_user() is None

    @pytest.mark.parametrize(
        "raw",
        [
            "{not json",
            "[1, 2, 3]",
            json.dumps({"id": 1}),
        ],
    )
    def test_malformed_user_is_purged(self, credentials, memory_store, raw):
        memory_store.set(USER_KEY, raw)

        assert credentials.get_user() is None
        assert memory_store.get(USER_KEY) is None

    def test_corrupt_session_file_is_purged(self, tmp_path, context):
        path = tmp_path / "session.json"
        path.write_text("{not json")
        store = CredentialStore(JsonFileStore(path), context)

        assert store.get_user() is None
        assert not path.exists()


class TestCookies:
    """The persisted cookie jar."""

    RECORDS = [
        {"name": "access_token", "value": "c1", "domain": "api.virail.test", "path": "/"}
    ]

    def test_round_trip_in_cookies_mode(self, credentials, memory_store):
        credentials.save_cookies(self.RECORDS)

        assert memory_store.keys() == [COOKIES_KEY]
        assert credentials.get_cookies() == self.RECORDS

    def test_empty_jar_removes_the_key(self, credentials, memory_store):
        credentials.save_cookies(self.RECORDS)

        credentials.save_cookies([])

        assert memory_store.keys() == []
        assert credentials.get_cookies() == []

    @pytest.mark.parametrize(
        "raw",
        ["{not json", json.dumps({"name": "a"}), json.dumps([{"name": "a", "value": 1}])],
    )
    def test_malformed_cookies_are_purged(self, credentials, memory_store, raw):
        memory_store.set(COOKIES_KEY, raw)

        assert credentials.get_cookies() == []
        assert memory_store.get(COOKIES_KEY) is None

    def test_storage_error_reads_as_empty(self, context):
        backend = MagicMock(spec=KeyValueStore)
        backend.get.side_effect = CredentialsStorageError("locked")

        assert CredentialStore(backend, context).get_cookies() == []


class TestClearAll:
    """Clearing the whole session."""

    def test_removes_every_key_regardless_of_mode(self, context):
        backend = MemoryStore(
            {
                ACCESS_TOKEN_KEY: "a",
                REFRESH_TOKEN_KEY: "r",
                USER_KEY: json.dumps({"id": 1, "email": "e", "username": "u"}),
                COOKIES_KEY: json.dumps([{"name": "access_token", "value": "c"}]),
            }
        )
        store = CredentialStore(backend, context)

        store.clear_all()

        assert backend.keys() == []

    def test_is_idempotent(self, credentials):
        credentials.clear_all()
        credentials.clear_all()

    def test_storage_errors_are_not_raised(self, context):
        backend = MagicMock(spec=KeyValueStore)
        backend.delete.side_effect = CredentialsStorageError("read-only")

        CredentialStore(backend, context).clear_all()

        assert backend.delete.call_count == 4
