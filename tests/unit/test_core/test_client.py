"""Tests for the TeamCity REST adapter using httpx.MockTransport."""

import httpx
import pytest

from teamcity_mcp.core.client import (
    TeamCityClient,
    extract_error_message,
    parse_retry_after,
    redact_secrets,
)
from teamcity_mcp.core.errors import (
    ClientError,
    NotFoundError,
    RateLimitedError,
    ServerError,
    TeamCityAPIError,
    TeamCityTimeoutError,
    TransientNetworkError,
)


def _client(handler) -> TeamCityClient:
    return TeamCityClient(
        "https://tc.example.com/",
        "secret-token-value",
        transport=httpx.MockTransport(handler),
    )


class TestHelpers:
    def test_redact_bearer(self):
        assert redact_secrets("Authorization: Bearer abcdefghijkl") == "Authorization: Bearer ****"

    def test_redact_leaves_plain_text(self):
        assert redact_secrets("nothing to see") == "nothing to see"

    def test_parse_retry_after(self):
        assert parse_retry_after(httpx.Response(429, headers={"Retry-After": "12"})) == 12.0
        assert parse_retry_after(httpx.Response(429, headers={"Retry-After": "soon"})) is None
        assert parse_retry_after(httpx.Response(429)) is None

    def test_extract_error_message_json(self):
        response = httpx.Response(400, json={"message": "Bad locator"})
        assert extract_error_message(response) == "Bad locator"

    def test_extract_error_message_text(self):
        response = httpx.Response(500, text="Internal failure")
        assert extract_error_message(response) == "Internal failure"


class TestRequests:
    """Request shape and response decoding."""

    @pytest.mark.asyncio
    async def test_list_collection_sends_locator_and_auth(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = request.url
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"count": 0, "project": []})

        async with _client(handler) as client:
            payload = await client.list_collection("projects", "count:10,start:0")

        assert payload == {"count": 0, "project": []}
        assert seen["url"].path == "/app/rest/projects"
        assert seen["url"].params["locator"] == "count:10,start:0"
        assert "project(" in seen["url"].params["fields"]
        assert seen["auth"] == "Bearer secret-token-value"

    @pytest.mark.asyncio
    async def test_get_project_path(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            return httpx.Response(200, json={"id": "My_Project"})

        async with _client(handler) as client:
            await client.get_project("My_Project")
        assert seen["path"] == "/app/rest/projects/id:My_Project"

    @pytest.mark.asyncio
    async def test_unknown_collection(self):
        async with _client(lambda request: httpx.Response(200, json={})) as client:
            with pytest.raises(ValueError):
                await client.list_collection("nope")

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        async with _client(lambda request: httpx.Response(200, text="<html>")) as client:
            with pytest.raises(TeamCityAPIError):
                await client.get_json("/app/rest/server")


class TestErrorMapping:
    """HTTP failures map onto the error taxonomy."""

    @pytest.mark.asyncio
    async def test_429(self):
        handler = lambda request: httpx.Response(429, headers={"Retry-After": "3"})  # noqa: E731
        async with _client(handler) as client:
            with pytest.raises(RateLimitedError) as exc_info:
                await client.list_collection("builds")
        assert exc_info.value.retry_after == 3.0

    @pytest.mark.asyncio
    async def test_404_project(self):
        handler = lambda request: httpx.Response(404, text="No project found")  # noqa: E731
        async with _client(handler) as client:
            with pytest.raises(NotFoundError) as exc_info:
                await client.get_project("Missing")
        assert exc_info.value.identifier == "Missing"
        assert exc_info.value.resource == "Project"

    @pytest.mark.asyncio
    async def test_403(self):
        handler = lambda request: httpx.Response(403, json={"message": "Access denied"})  # noqa: E731
        async with _client(handler) as client:
            with pytest.raises(ClientError) as exc_info:
                await client.list_collection("agents")
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_503(self):
        handler = lambda request: httpx.Response(503, text="maintenance")  # noqa: E731
        async with _client(handler) as client:
            with pytest.raises(ServerError) as exc_info:
                await client.list_collection("builds")
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        async with _client(handler) as client:
            with pytest.raises(TeamCityTimeoutError):
                await client.list_collection("builds")

    @pytest.mark.asyncio
    async def test_connect_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(TransientNetworkError):
                await client.list_collection("builds")
