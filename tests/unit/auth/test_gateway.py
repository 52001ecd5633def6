"""Tests for authenticated requests: refresh on 401 and bearer fallback."""

import json

import httpx
import pytest
from pytest_httpx import HTTPXMock

from virail.auth.credentials import USER_KEY, CredentialStore
from virail.auth.exceptions import NotAuthenticatedError, SessionExpiredError
from virail.auth.mode import AuthMode, SessionContext
from virail.auth.service import AuthService


BASE_URL = "http://api.virail.test"
DATA_URL = f"{BASE_URL}/api/v1/analyses"
REFRESH_URL = f"{BASE_URL}/auth/refresh"
LOGOUT_URL = f"{BASE_URL}/auth/logout"

ALICE = {"id": "alice", "email": "alice@example.com", "username": "alice"}


class TestGatewayPreconditions:
    @pytest.mark.asyncio
    async def test_not_authenticated_sends_nothing(
        self, auth_service: AuthService, httpx_mock: HTTPXMock
    ):
        with pytest.raises(NotAuthenticatedError):
            await auth_service.gateway.request("GET", DATA_URL)

        assert httpx_mock.get_requests() == []

    @pytest.mark.asyncio
    async def test_cookies_mode_sends_credentials_without_header(
        self, auth_service: AuthService, memory_store, httpx_mock: HTTPXMock
    ):
        memory_store.set(USER_KEY, json.dumps(ALICE))
        auth_service.transport.cookies.set("access_token", "c-1", domain="api.virail.test")
        httpx_mock.add_response(method="GET", url=DATA_URL, json={"items": []})

        response = await auth_service.gateway.request("GET", DATA_URL)

        assert response.json() == {"items": []}
        request = httpx_mock.get_request()
        assert "Authorization" not in request.headers
        assert "access_token=c-1" in request.headers["Cookie"]

    @pytest.mark.asyncio
    async def test_bearer_mode_sends_token(
        self, bearer_service: AuthService, httpx_mock: HTTPXMock
    ):
        httpx_mock.add_response(method="GET", url=DATA_URL)

        await bearer_service.gateway.request("GET", DATA_URL)

        assert httpx_mock.get_request().headers["Authorization"] == "Bearer old-access"

    @pytest.mark.asyncio
    async def test_auto_mode_negotiates_first(
        self, memory_store, transport, redirector, httpx_mock: HTTPXMock
    ):
        memory_store.set(USER_KEY, json.dumps(ALICE))
        memory_store.set("access_token", "tok")
        ctx = SessionContext(AuthMode.AUTO)
        service = AuthService(
            BASE_URL, CredentialStore(memory_store, ctx), transport, redirector=redirector
        )
        httpx_mock.add_response(method="GET", url=f"{BASE_URL}/docs")
        httpx_mock.add_response(method="GET", url=DATA_URL)

        await service.gateway.request("GET", DATA_URL)

        assert ctx.mode is AuthMode.COOKIES
        assert [str(r.url) for r in httpx_mock.get_requests()] == [
            f"{BASE_URL}/docs",
            DATA_URL,
        ]


class TestRefreshOn401:
    @pytest.mark.asyncio
    async def test_refresh_then_retry_with_new_token(
        self, bearer_service: AuthService, httpx_mock: HTTPXMock
    ):
        httpx_mock.add_response(method="GET", url=DATA_URL, status_code=401)
        httpx_mock.add_response(
            method="POST",
            url=REFRESH_URL,
            match_json={"refresh_token": "old-refresh"},
            json={"access_token": "new-access", "refresh_token": "new-refresh"},
        )
        httpx_mock.add_response(method="GET", url=DATA_URL, json={"ok": True})

        response = await bearer_service.gateway.request("GET", DATA_URL)

        assert response.status_code == 200
        requests = httpx_mock.get_requests(url=DATA_URL)
        assert len(requests) == 2
        assert requests[0].headers["Authorization"] == "Bearer old-access"
        assert requests[1].headers["Authorization"] == "Bearer new-access"
        assert bearer_service.credentials.get_refresh_token() == "new-refresh"

    @pytest.mark.asyncio
    async def test_second_401_is_returned_without_another_refresh(
        self, bearer_service: AuthService, httpx_mock: HTTPXMock
    ):
        httpx_mock.add_response(method="GET", url=DATA_URL, status_code=401)
        httpx_mock.add_response(
            method="POST", url=REFRESH_URL, json={"access_token": "new-access"}
        )
        httpx_mock.add_response(method="GET", url=DATA_URL, status_code=401)

        response = await bearer_service.gateway.request("GET", DATA_URL)

        assert response.status_code == 401
        assert len(httpx_mock.get_requests(url=REFRESH_URL)) == 1

    @pytest.mark.asyncio
    async def test_failed_refresh_expires_session(
        self, bearer_service: AuthService, redirector, memory_store, httpx_mock: HTTPXMock
    ):
        httpx_mock.add_response(method="GET", url=DATA_URL, status_code=401)
        httpx_mock.add_response(method="POST", url=REFRESH_URL, status_code=401)
        httpx_mock.add_response(method="POST", url=LOGOUT_URL, is_reusable=True)

        with pytest.raises(SessionExpiredError):
            await bearer_service.gateway.request("GET", DATA_URL)

        assert redirector.last_location == "/login"
        assert memory_store.keys() == []
        assert not bearer_service.is_authenticated()

    @pytest.mark.asyncio
    async def test_cookies_mode_retry_uses_refreshed_cookie(
        self, auth_service: AuthService, memory_store, httpx_mock: HTTPXMock
    ):
        memory_store.set(USER_KEY, json.dumps(ALICE))
        httpx_mock.add_response(method="GET", url=DATA_URL, status_code=401)
        httpx_mock.add_response(
            method="POST",
            url=REFRESH_URL,
            json={"access_token": "httponly-cookie"},
            headers={"Set-Cookie": "access_token=fresh; Path=/; HttpOnly"},
        )
        httpx_mock.add_response(method="GET", url=DATA_URL)

        response = await auth_service.gateway.request("GET", DATA_URL)

        assert response.status_code == 200
        retry = httpx_mock.get_requests(url=DATA_URL)[1]
        assert "access_token=fresh" in retry.headers["Cookie"]
        assert "Authorization" not in retry.headers
        assert memory_store.get("access_token") is None


class TestBearerFallback:
    @pytest.mark.asyncio
    async def test_refused_credentials_retry_once_in_bearer_mode(
        self, auth_service: AuthService, memory_store, context, httpx_mock: HTTPXMock
    ):
        memory_store.set(USER_KEY, json.dumps(ALICE))
        memory_store.set("access_token", "kept-token")
        httpx_mock.add_exception(
            httpx.ConnectError("Credential is not supported"), url=DATA_URL
        )
        httpx_mock.add_response(method="GET", url=DATA_URL, json={"ok": True})

        response = await auth_service.gateway.request("GET", DATA_URL)

        assert response.json() == {"ok": True}
        assert context.mode is AuthMode.BEARER
        assert context.credentials_supported is False
        retry = httpx_mock.get_requests(url=DATA_URL)[1]
        assert retry.headers["Authorization"] == "Bearer kept-token"

    @pytest.mark.asyncio
    async def test_fallback_needs_a_bearer_session(
        self, auth_service: AuthService, memory_store, httpx_mock: HTTPXMock
    ):
        memory_store.set(USER_KEY, json.dumps(ALICE))
        httpx_mock.add_exception(
            httpx.ConnectError("Credential is not supported"), url=DATA_URL
        )

        with pytest.raises(NotAuthenticatedError):
            await auth_service.gateway.request("GET", DATA_URL)

    @pytest.mark.asyncio
    async def test_other_transport_errors_propagate(
        self, auth_service: AuthService, memory_store, context, httpx_mock: HTTPXMock
    ):
        memory_store.set(USER_KEY, json.dumps(ALICE))
        httpx_mock.add_exception(httpx.ConnectError("Connection refused"), url=DATA_URL)

        with pytest.raises(httpx.ConnectError):
            await auth_service.gateway.request("GET", DATA_URL)
        assert context.mode is AuthMode.COOKIES
