"""Tests for wrapping catalog tools as runtime tools."""

import pytest
from unittest.mock import AsyncMock, patch
from app.infra.error_handler import ToolArgumentsError
from app.models.tool import ToolDefinition
from app.services.tool_wrapper import (
    decode_arguments,
    strict_schema,
    to_function_parameters,
    wrap_tool,
)


class TestDecodeArguments:
    """Test model argument decoding."""

    def test_json_string(self):
        assert decode_arguments('{"a": 1}') == {"a": 1}

    def test_dict_passes_through(self):
        assert decode_arguments({"a": 1}) == {"a": 1}

    def test_empty(self):
        assert decode_arguments(None) == {}
        assert decode_arguments("") == {}

    def test_invalid_json(self):
        with pytest.raises(ToolArgumentsError):
            decode_arguments("{not json")

    def test_non_object(self):
        with pytest.raises(ToolArgumentsError):
            decode_arguments("[1, 2]")
        with pytest.raises(ToolArgumentsError):
            decode_arguments(42)


class TestSchemaHelpers:
    """Test schema shaping helpers."""

    def test_strict_schema_keeps_required_only(self, gmail_tool_definition):
        strict = strict_schema(gmail_tool_definition.input_parameters)

        assert list(strict["properties"].keys()) == ["max_results"]
        assert strict["additionalProperties"] is False
        # Source untouched
        assert "labels" in gmail_tool_definition.input_parameters["properties"]

    def test_function_parameters_defaults(self):
        assert to_function_parameters({}) == {"type": "object", "properties": {}}
        assert to_function_parameters(None) == {"type": "object", "properties": {}}

    def test_function_parameters_drop_meta_keywords(self):
        parameters = to_function_parameters({
            "$schema": "http://json-schema.org/draft-07/schema#",
            "type": "object",
            "properties": {"q": {"type": "string"}},
        })

        assert parameters == {"type": "object", "properties": {"q": {"type": "string"}}}


class TestWrapTool:
    """Test the wrapped tool."""

    def test_metadata(self, gmail_tool_definition):
        tool = wrap_tool(gmail_tool_definition, AsyncMock())

        assert tool.source == "composio"
        assert tool.slug == "GMAIL_FETCH_EMAILS"
        assert tool.description == "Fetch emails from the inbox"
        assert tool.parameters["properties"]["max_results"]["type"] == "string"
        assert tool.parameters["properties"]["max_results"]["enum"] == ["10", "25", "50"]

    @pytest.mark.asyncio
    async def test_execute_coerces_arguments(self, gmail_tool_definition):
        execute_fn = AsyncMock(return_value={"successful": True, "data": {"messages": []}})
        tool = wrap_tool(gmail_tool_definition, execute_fn)

        result = await tool.execute(
            '{"max_results": "25", "labels": [{"name": "INBOX", "include": "true"}]}'
        )

        assert result == {"successful": True, "data": {"messages": []}}
        execute_fn.assert_awaited_once_with(
            "GMAIL_FETCH_EMAILS",
            {"max_results": 25, "labels": [{"name": "INBOX", "include": True}]},
        )

    @pytest.mark.asyncio
    async def test_execute_with_decoded_arguments(self, gmail_tool_definition):
        execute_fn = AsyncMock(return_value={})
        tool = wrap_tool(gmail_tool_definition, execute_fn)

        await tool.execute({"max_results": "10", "query": "is:unread"})

        execute_fn.assert_awaited_once_with("GMAIL_FETCH_EMAILS", {"max_results": 10, "query": "is:unread"})

    @pytest.mark.asyncio
    async def test_execute_rejects_bad_arguments(self, gmail_tool_definition):
        execute_fn = AsyncMock()
        tool = wrap_tool(gmail_tool_definition, execute_fn)

        with pytest.raises(ToolArgumentsError):
            await tool.execute("not json")
        execute_fn.assert_not_awaited()

    def test_strict_mode(self, gmail_tool_definition):
        tool = wrap_tool(gmail_tool_definition, AsyncMock(), strict=True)

        assert set(tool.parameters["properties"].keys()) == {"max_results"}
        assert tool.parameters["additionalProperties"] is False

    @pytest.mark.asyncio
    async def test_malformed_schema_falls_back(self):
        definition = ToolDefinition(
            slug="BROKEN_TOOL",
            description="Broken schema",
            input_parameters={"type": "object", "properties": {"a": "bad"}},
        )
        execute_fn = AsyncMock(return_value={"ok": True})

        with patch("app.services.tool_wrapper.logger") as mock_logger:
            tool = wrap_tool(definition, execute_fn)

        mock_logger.warning.assert_called_once()
        assert tool.parameters == {"type": "object", "properties": {"a": "bad"}}

        # Arguments pass through uncoerced
        await tool.execute('{"a": "1"}')
        execute_fn.assert_awaited_once_with("BROKEN_TOOL", {"a": "1"})

    @pytest.mark.asyncio
    async def test_non_object_schema_root(self):
        definition = ToolDefinition(
            slug="GMAIL_BAD",
            description="List schema",
            input_parameters=[{"type": "string"}],
        )
        execute_fn = AsyncMock(return_value={"ok": True})

        tool = wrap_tool(definition, execute_fn)

        assert tool.parameters == {"type": "object", "properties": {}}
        await tool.execute('{"q": "1"}')
        execute_fn.assert_awaited_once_with("GMAIL_BAD", {"q": "1"})

    def test_alias_input(self):
        definition = ToolDefinition.model_validate({
            "slug": "SLACK_SEND_MESSAGE",
            "description": "Send a message",
            "inputParameters": {"type": "object", "properties": {"channel": {"type": "string"}}},
        })

        tool = wrap_tool(definition, AsyncMock())

        assert tool.parameters["properties"] == {"channel": {"type": "string"}}
