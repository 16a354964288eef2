"""Tests for the Composio REST client."""

import json
import httpx
import pytest
from app.adapters.composio_client import ComposioClient
from app.infra.circuit_breaker import CircuitBreaker, CircuitOpenError
from app.infra.error_handler import APIError, AuthError, RateLimitError

BASE_URL = "https://composio.test/api/v3"


def make_client(handler, **kwargs):
    kwargs.setdefault("circuit_breaker", CircuitBreaker("composio-test", failure_threshold=5))
    return ComposioClient(
        api_key="test-key",
        base_url=BASE_URL,
        transport=httpx.MockTransport(handler),
        max_retries=0,
        **kwargs,
    )


class TestComposioClient:
    """Test request shaping and response parsing."""

    @pytest.mark.asyncio
    async def test_list_connections(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["request"] = request
            return httpx.Response(200, json={
                "items": [
                    {"id": "ca_1", "status": "ACTIVE", "toolkit": {"slug": "gmail"}, "user_id": "user-1"},
                    {"id": "ca_2", "status": "INITIATED", "toolkit": {"slug": "slack"}},
                ],
                "next_cursor": None,
            })

        client = make_client(handler)
        connections = await client.list_connections(["user-1"], toolkit_slugs=["gmail", "slack"])

        request = seen["request"]
        assert request.method == "GET"
        assert request.url.path == "/api/v3/connected_accounts"
        assert request.url.params.get_list("user_ids") == ["user-1"]
        assert request.url.params.get_list("toolkit_slugs") == ["gmail", "slack"]
        assert request.headers["x-api-key"] == "test-key"

        assert [c.id for c in connections.items] == ["ca_1", "ca_2"]
        assert connections.items[0].is_active
        assert connections.items[0].toolkit_slug == "gmail"
        assert not connections.items[1].is_active
        await client.aclose()

    @pytest.mark.asyncio
    async def test_fetch_tools(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["request"] = request
            return httpx.Response(200, json={
                "items": [
                    {
                        "slug": "GMAIL_SEND_EMAIL",
                        "name": "Send email",
                        "description": "Send an email",
                        "input_parameters": {"type": "object", "properties": {"to": {"type": "string"}}},
                        "toolkit": {"slug": "gmail", "name": "Gmail"},
                    },
                    {"slug": "SLACK_SEND_MESSAGE", "description": None, "toolkit": {"slug": "slack"}},
                ]
            })

        client = make_client(handler)
        tools = await client.fetch_tools("user-1", ["gmail", "slack"], limit=50)

        params = seen["request"].url.params
        assert params["toolkit_slug"] == "gmail,slack"
        assert params["limit"] == "50"
        assert params["user_id"] == "user-1"

        assert list(tools.keys()) == ["GMAIL_SEND_EMAIL", "SLACK_SEND_MESSAGE"]
        assert tools["GMAIL_SEND_EMAIL"].toolkit == "gmail"
        assert tools["GMAIL_SEND_EMAIL"].input_parameters["properties"] == {"to": {"type": "string"}}
        assert tools["SLACK_SEND_MESSAGE"].description == ""
        assert tools["SLACK_SEND_MESSAGE"].input_parameters == {}

    @pytest.mark.asyncio
    async def test_fetch_tools_keeps_batch_with_malformed_items(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={
                "items": [
                    {
                        "slug": "GMAIL_GOOD",
                        "description": "Well formed",
                        "input_parameters": {"type": "object", "properties": {"q": {"type": "string"}}},
                        "toolkit": {"slug": "gmail"},
                    },
                    {
                        "slug": "GMAIL_BAD",
                        "description": "List schema",
                        "input_parameters": [{"type": "string"}],
                        "toolkit": {"slug": "gmail"},
                    },
                    {"description": "No slug", "toolkit": {"slug": "gmail"}},
                    "not-a-record",
                    {"slug": "GMAIL_ODD_DESCRIPTION", "description": {"text": "nested"}, "toolkit": "gmail"},
                ]
            })

        client = make_client(handler)
        tools = await client.fetch_tools("user-1", ["gmail"], limit=50)

        assert list(tools.keys()) == ["GMAIL_GOOD", "GMAIL_BAD"]
        assert tools["GMAIL_GOOD"].input_parameters["properties"] == {"q": {"type": "string"}}
        assert tools["GMAIL_BAD"].input_parameters == [{"type": "string"}]
        assert tools["GMAIL_BAD"].toolkit == "gmail"

    @pytest.mark.asyncio
    async def test_list_connections_without_status(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"items": [
                {"id": "ca_1", "status": "ACTIVE", "toolkit": {"slug": "gmail"}},
                {"id": "ca_2", "toolkit": {"slug": "slack"}},
            ]})

        client = make_client(handler)
        connections = await client.list_connections(["user-1"])

        assert [c.id for c in connections.items] == ["ca_1", "ca_2"]
        assert connections.items[0].is_active
        assert connections.items[1].status is None
        assert not connections.items[1].is_active

    @pytest.mark.asyncio
    async def test_execute_tool(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["request"] = request
            return httpx.Response(200, json={"successful": True, "data": {"id": "msg-1"}, "error": None})

        client = make_client(handler)
        result = await client.execute_tool("GMAIL_SEND_EMAIL", "user-1", {"to": "a@example.com"})

        request = seen["request"]
        assert request.method == "POST"
        assert request.url.path == "/api/v3/tools/execute/GMAIL_SEND_EMAIL"
        assert json.loads(request.content) == {"user_id": "user-1", "arguments": {"to": "a@example.com"}}
        assert result == {"successful": True, "data": {"id": "msg-1"}, "error": None}

    @pytest.mark.asyncio
    async def test_get_toolkit_and_connection(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/toolkits/gmail"):
                return httpx.Response(200, json={
                    "name": "Gmail",
                    "slug": "gmail",
                    "meta": {"description": "Email by Google", "logo": "https://logo", "categories": []},
                })
            return httpx.Response(200, json={"id": "ca_1", "status": "ACTIVE", "toolkit": {"slug": "gmail"}})

        client = make_client(handler)

        toolkit = await client.get_toolkit("gmail")
        connection = await client.get_connection("ca_1")

        assert toolkit.name == "Gmail"
        assert toolkit.meta.description == "Email by Google"
        assert connection.is_active

    @pytest.mark.asyncio
    async def test_delete_connection_empty_body(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            return httpx.Response(204)

        client = make_client(handler)
        await client.delete_connection("ca_1")

        assert seen["method"] == "DELETE"


class TestComposioClientErrors:
    """Test error translation and resilience."""

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        client = ComposioClient(api_key="", base_url=BASE_URL, circuit_breaker=CircuitBreaker("composio-test"))

        with pytest.raises(AuthError):
            await client.list_connections(["user-1"])

    @pytest.mark.asyncio
    async def test_server_error(self):
        client = make_client(lambda request: httpx.Response(500, text="upstream down"))

        with pytest.raises(APIError) as exc_info:
            await client.list_connections(["user-1"])

        assert exc_info.value.status_code == 500
        assert exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_client_error(self):
        client = make_client(lambda request: httpx.Response(404, json={"error": "not found"}))

        with pytest.raises(APIError) as exc_info:
            await client.get_connection("ca_missing")

        assert exc_info.value.status_code == 404
        assert not exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_unauthorized(self):
        client = make_client(lambda request: httpx.Response(401, text="bad key"))

        with pytest.raises(AuthError):
            await client.list_connections(["user-1"])

    @pytest.mark.asyncio
    async def test_rate_limited(self):
        client = make_client(lambda request: httpx.Response(429, headers={"retry-after": "3"}))

        with pytest.raises(RateLimitError) as exc_info:
            await client.list_connections(["user-1"])

        assert exc_info.value.retry_after == 3.0

    @pytest.mark.asyncio
    async def test_retries_transient_errors(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(503, text="busy")
            return httpx.Response(200, json={"items": []})

        client = ComposioClient(
            api_key="test-key",
            base_url=BASE_URL,
            transport=httpx.MockTransport(handler),
            circuit_breaker=CircuitBreaker("composio-test"),
            max_retries=1,
        )

        connections = await client.list_connections(["user-1"])

        assert connections.items == []
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_circuit_opens(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(500)

        client = make_client(handler, circuit_breaker=CircuitBreaker("composio-test", failure_threshold=1))

        with pytest.raises(APIError):
            await client.list_connections(["user-1"])
        with pytest.raises(CircuitOpenError):
            await client.list_connections(["user-1"])

        assert len(calls) == 1
