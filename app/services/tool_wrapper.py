"""Wrap externally-sourced tool definitions as runtime tools."""

import copy
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List

from app.infra.error_handler import ToolArgumentsError
from app.infra.metrics import tool_schema_fallbacks_total
from app.models.schema import ConverterEntry
from app.models.tool import Tool, ToolDefinition
from app.services.schema_sanitizer import coerce_arguments, sanitize_schema

logger = logging.getLogger(__name__)

# (tool slug, decoded + coerced arguments) -> tool result
SlugExecutor = Callable[[str, Dict[str, Any]], Awaitable[Any]]

# Provider-facing schema keywords that the function-calling grammar does not accept
_UNSUPPORTED_KEYWORDS = ("$schema", "$id", "$defs", "definitions", "examples")


def strict_schema(schema: Dict[str, Any]) -> Dict[str, Any]:
    """Keep only required root properties and forbid additional ones."""
    strict = copy.deepcopy(schema)
    required = set(strict.get("required") or [])
    properties = strict.get("properties")
    if isinstance(properties, dict):
        strict["properties"] = {name: prop for name, prop in properties.items() if name in required}
    strict["additionalProperties"] = False
    return strict


def to_function_parameters(schema: Any) -> Dict[str, Any]:
    """Render a JSON Schema as the parameters object of a function declaration."""
    if not isinstance(schema, dict):
        return {"type": "object", "properties": {}}
    parameters = {k: v for k, v in schema.items() if k not in _UNSUPPORTED_KEYWORDS}
    parameters.setdefault("type", "object")
    if parameters["type"] == "object":
        parameters.setdefault("properties", {})
    return parameters


def decode_arguments(raw_args: Any) -> Dict[str, Any]:
    """
    Decode tool call arguments as delivered by the model.

    Raises:
        ToolArgumentsError: If a string payload is not a JSON object
    """
    if raw_args is None or raw_args == "":
        return {}
    if isinstance(raw_args, str):
        try:
            decoded = json.loads(raw_args)
        except json.JSONDecodeError as e:
            raise ToolArgumentsError(f"Tool arguments are not valid JSON: {e}")
    else:
        decoded = raw_args
    if not isinstance(decoded, dict):
        raise ToolArgumentsError(f"Tool arguments must be a JSON object, got {type(decoded).__name__}")
    return decoded


def wrap_tool(tool_definition: ToolDefinition, execute_fn: SlugExecutor, strict: bool = False) -> Tool:
    """
    Wrap a catalog tool so its schema satisfies the model provider and its
    call arguments are restored to the original types before execution.

    A schema that fails to sanitize is used as-is: one malformed upstream
    definition must not take the rest of the tool set down with it.

    Args:
        tool_definition: Tool definition from the catalog
        execute_fn: Coroutine called with (slug, arguments)
        strict: Drop non-required properties and forbid additional ones

    Returns:
        Runtime Tool
    """
    schema = tool_definition.input_parameters
    converters: List[ConverterEntry] = []
    try:
        if strict:
            schema = strict_schema(schema)
        schema, converters = sanitize_schema(schema)
    except Exception as e:
        logger.warning(
            f"Schema sanitization failed for tool {tool_definition.slug}, using original schema: {e}",
            extra={"tool_slug": tool_definition.slug},
        )
        tool_schema_fallbacks_total.inc()
        schema = copy.deepcopy(tool_definition.input_parameters)
        converters = []

    slug = tool_definition.slug

    async def execute(raw_args: Any) -> Any:
        args = decode_arguments(raw_args)
        return await execute_fn(slug, coerce_arguments(args, converters))

    return Tool(
        description=tool_definition.description,
        parameters=to_function_parameters(schema),
        execute=execute,
        source="composio",
        slug=slug,
    )
