"""Tests for the general API client."""

import httpx
import pytest
from pytest_httpx import HTTPXMock

from virail.api.client import ApiClient
from virail.config.api import ApiSettings
from virail.core.errors import ApiError, RequestTimeoutError


BASE_URL = "http://api.virail.test"


@pytest.fixture
def client(transport) -> ApiClient:
    return ApiClient(ApiSettings(base_url=f"{BASE_URL}/", timeout=12.0), transport)


class TestApiClient:
    @pytest.mark.asyncio
    async def test_get_returns_json(self, client: ApiClient, httpx_mock: HTTPXMock):
        httpx_mock.add_response(
            method="GET", url=f"{BASE_URL}/api/v1/plans/", json={"plans": []}
        )

        assert await client.get("/api/v1/plans/") == {"plans": []}

        request = httpx_mock.get_request()
        assert request.headers["Content-Type"] == "application/json"
        assert request.extensions["timeout"]["connect"] == 12.0

    @pytest.mark.asyncio
    async def test_post_sends_json_with_cookies(
        self, client: ApiClient, transport, httpx_mock: HTTPXMock
    ):
        transport.cookies.set("access_token", "c-1", domain="api.virail.test")
        httpx_mock.add_response(
            method="POST",
            url=f"{BASE_URL}/api/v1/analyses",
            match_json={"url": "https://example.com"},
            json={"id": 3},
        )

        assert await client.post("api/v1/analyses", json={"url": "https://example.com"}) == {
            "id": 3
        }
        assert "access_token=c-1" in httpx_mock.get_request().headers["Cookie"]

    @pytest.mark.asyncio
    async def test_get_me(self, client: ApiClient, httpx_mock: HTTPXMock):
        httpx_mock.add_response(
            method="GET", url=f"{BASE_URL}/auth/me-bearer", json={"username": "alice"}
        )

        assert await client.get_me() == {"username": "alice"}

    @pytest.mark.asyncio
    async def test_timeout(self, client: ApiClient, httpx_mock: HTTPXMock):
        httpx_mock.add_exception(httpx.ReadTimeout("timed out"), url=f"{BASE_URL}/slow")

        with pytest.raises(RequestTimeoutError) as exc_info:
            await client.get("/slow")

        assert exc_info.value.timeout == 12.0
        assert exc_info.value.url == f"{BASE_URL}/slow"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status_code", "body", "expected"),
        [
            (404, {"detail": {"message": "Analysis not found"}}, "Analysis not found"),
            (403, {"detail": "Quota exceeded"}, "Quota exceeded"),
            (500, None, "API error: 500"),
        ],
    )
    async def test_error_responses(
        self, client: ApiClient, httpx_mock: HTTPXMock, status_code, body, expected
    ):
        httpx_mock.add_response(
            method="GET", url=f"{BASE_URL}/x", status_code=status_code, json=body
        )

        with pytest.raises(ApiError) as exc_info:
            await client.get("/x")

        assert exc_info.value.message == expected
        assert exc_info.value.status_code == status_code

    @pytest.mark.asyncio
    async def test_invalid_json(self, client: ApiClient, httpx_mock: HTTPXMock):
        httpx_mock.add_response(method="GET", url=f"{BASE_URL}/x", text="<html>")

        with pytest.raises(ApiError):
            await client.get("/x")
