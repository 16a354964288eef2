"""Schema sanitization for strict function-calling grammars, and its inverse.

Gemini rejects parameter schemas whose enum members disagree with the
declared type, which is common in tool catalogs that encode categorical
codes as numbers (``{"type": "number", "enum": [30, 40, 49]}``). We rewrite
such enums to strings and remember where we did it; when the model calls
the tool, coerce_arguments() turns those strings back into the original
value types before the real executor sees them.
"""

import copy
import json
import math
import re
from functools import singledispatch
from typing import Any, List, Sequence, Tuple

from app.models.schema import (
    ITEMS,
    CONVERTIBLE_TYPES,
    ArrayNode,
    Branch,
    ConverterEntry,
    ObjectNode,
    PathSegment,
    SchemaNode,
    parse_schema,
)

_FLOAT_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_INT_PREFIX = re.compile(r"^\s*([+-]?\d+)")


def stringify_enum_value(value: Any) -> str:
    """String form of an enum member; booleans and numbers round-trip through coercion."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    return json.dumps(value, separators=(",", ":"), sort_keys=True)


def sanitize_schema(schema: Any) -> Tuple[Any, List[ConverterEntry]]:
    """
    Make a parameter schema safe for a strict function-calling grammar.

    Args:
        schema: JSON-Schema dict (anything else is shallow-copied through)

    Returns:
        Tuple of (sanitized schema, converters recording every narrowing)

    Raises:
        SchemaError: If a nested node is malformed
    """
    if not isinstance(schema, dict):
        return copy.copy(schema), []

    root = parse_schema(schema)
    converters = _sanitize_node(root, ())
    return root.to_dict(), converters


def _infer_enum_type(members: Sequence[Any]) -> Any:
    if not members:
        return None
    if all(isinstance(m, bool) for m in members):
        return "boolean"
    if any(isinstance(m, bool) for m in members):
        return None
    if all(isinstance(m, int) for m in members):
        return "integer"
    if all(isinstance(m, (int, float)) for m in members):
        return "number"
    return None


def _sanitize_enum(node: SchemaNode, path: Tuple[PathSegment, ...]) -> List[ConverterEntry]:
    if node.enum is None:
        return []

    original_members = node.enum
    node.enum = [stringify_enum_value(member) for member in original_members]

    declared = node.declared_type()
    if declared is None:
        declared = _infer_enum_type(original_members)
    if declared not in CONVERTIBLE_TYPES:
        return []

    node.type = "string"
    return [ConverterEntry(path=path, target_type=declared)]


@singledispatch
def _sanitize_node(node: SchemaNode, path: Tuple[PathSegment, ...]) -> List[ConverterEntry]:
    """Sanitize ``node`` in place and return the converters for its subtree."""
    converters = _sanitize_enum(node, path)
    for keyword, branches in node.combinators.items():
        for index, branch in enumerate(branches):
            converters.extend(_sanitize_node(branch, path + (Branch(keyword, index),)))
    return converters


@_sanitize_node.register(ObjectNode)
def _(node: ObjectNode, path: Tuple[PathSegment, ...]) -> List[ConverterEntry]:
    converters = _sanitize_node.dispatch(SchemaNode)(node, path)
    for name, child in (node.properties or {}).items():
        converters.extend(_sanitize_node(child, path + (name,)))
    return converters


@_sanitize_node.register(ArrayNode)
def _(node: ArrayNode, path: Tuple[PathSegment, ...]) -> List[ConverterEntry]:
    converters = _sanitize_node.dispatch(SchemaNode)(node, path)
    if node.items is not None:
        converters.extend(_sanitize_node(node.items, path + (ITEMS,)))
    return converters


def _parse_float(text: str) -> Any:
    match = _FLOAT_PREFIX.match(text)
    if not match:
        return None
    number = float(match.group(1))
    # Overflow to inf is not valid JSON for the tool call; keep the original string
    if not math.isfinite(number):
        return None
    return int(number) if number.is_integer() else number


def _parse_int(text: str) -> Any:
    match = _INT_PREFIX.match(text)
    return int(match.group(1)) if match else None


def _to_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.lower() == "true" or value == "1"
    if isinstance(value, (int, float)):
        return value != 0
    return bool(value)


def _convert(value: Any, target_type: str) -> Any:
    if target_type == "boolean":
        return _to_boolean(value)
    if isinstance(value, str):
        parsed = _parse_int(value) if target_type == "integer" else _parse_float(value)
        # Unparseable values go through as-is; the tool validates its own input
        return value if parsed is None else parsed
    return value


def _apply(value: Any, path: Tuple[PathSegment, ...], target_type: str) -> Any:
    if not path:
        return _convert(value, target_type)

    segment, rest = path[0], path[1:]
    if isinstance(segment, Branch):
        return _apply(value, rest, target_type)
    if segment is ITEMS:
        if isinstance(value, list):
            return [_apply(element, rest, target_type) for element in value]
        return value
    if isinstance(value, dict) and segment in value:
        value[segment] = _apply(value[segment], rest, target_type)
    return value


def coerce_arguments(value: Any, converters: Sequence[ConverterEntry]) -> Any:
    """
    Restore the original value types narrowed by sanitize_schema().

    Works on a deep copy; the caller's payload is never mutated. Never
    raises: values that cannot be converted are passed through unchanged.
    """
    result = copy.deepcopy(value)
    for converter in converters:
        result = _apply(result, converter.path, converter.target_type)
    return result
