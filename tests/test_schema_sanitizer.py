"""Tests for schema sanitization and argument coercion."""

import copy
import pytest
from app.models.schema import ITEMS, Branch, ConverterEntry, SchemaError, parse_schema
from app.services.schema_sanitizer import coerce_arguments, sanitize_schema, stringify_enum_value


class TestStringifyEnumValue:
    """Test enum member stringification."""

    @pytest.mark.parametrize("value,expected", [
        ("a", "a"),
        (True, "true"),
        (False, "false"),
        (None, "null"),
        (30, "30"),
        (-7, "-7"),
        (30.0, "30"),
        (1.5, "1.5"),
        ({"b": 1, "a": 2}, '{"a":2,"b":1}'),
    ])
    def test_string_forms(self, value, expected):
        assert stringify_enum_value(value) == expected


class TestSanitizeSchema:
    """Test schema rewriting."""

    def test_numeric_enum_becomes_string(self):
        schema = {"type": "number", "enum": [30, 40, 49]}

        sanitized, converters = sanitize_schema(schema)

        assert sanitized == {"type": "string", "enum": ["30", "40", "49"]}
        assert converters == [ConverterEntry(path=(), target_type="number")]

    def test_nested_property_path(self):
        schema = {
            "type": "object",
            "properties": {
                "code": {"type": "integer", "enum": [1, 2], "description": "Status code"},
                "name": {"type": "string"},
            },
            "required": ["code"],
        }

        sanitized, converters = sanitize_schema(schema)

        assert sanitized["properties"]["code"] == {
            "type": "string",
            "enum": ["1", "2"],
            "description": "Status code",
        }
        assert sanitized["properties"]["name"] == {"type": "string"}
        assert sanitized["required"] == ["code"]
        assert converters == [ConverterEntry(path=("code",), target_type="integer")]

    def test_array_items_path(self, gmail_tool_definition):
        sanitized, converters = sanitize_schema(gmail_tool_definition.input_parameters)

        assert sanitized["properties"]["labels"]["items"]["properties"]["include"] == {
            "type": "string",
            "enum": ["true", "false"],
        }
        assert ConverterEntry(path=("labels", ITEMS, "include"), target_type="boolean") in converters
        assert ConverterEntry(path=("max_results",), target_type="integer") in converters
        assert len(converters) == 2

    def test_combinator_branch_path(self):
        schema = {
            "anyOf": [
                {"type": "integer", "enum": [1, 2]},
                {"type": "string"},
            ]
        }

        sanitized, converters = sanitize_schema(schema)

        assert sanitized["anyOf"][0] == {"type": "string", "enum": ["1", "2"]}
        assert sanitized["anyOf"][1] == {"type": "string"}
        assert converters == [ConverterEntry(path=(Branch("anyOf", 0),), target_type="integer")]

    def test_string_enum_with_numbers_gets_no_converter(self):
        sanitized, converters = sanitize_schema({"type": "string", "enum": ["a", 1]})

        assert sanitized == {"type": "string", "enum": ["a", "1"]}
        assert converters == []

    def test_untyped_enum_type_is_inferred(self):
        sanitized, converters = sanitize_schema({"enum": [1, 2, 3]})

        assert sanitized == {"type": "string", "enum": ["1", "2", "3"]}
        assert converters == [ConverterEntry(path=(), target_type="integer")]

    def test_mixed_untyped_enum_is_not_converted(self):
        sanitized, converters = sanitize_schema({"enum": [1, "a"]})

        assert sanitized == {"enum": ["1", "a"]}
        assert converters == []

    def test_nullable_type_list(self):
        sanitized, converters = sanitize_schema({"type": ["number", "null"], "enum": [1.5, 2.5]})

        assert sanitized["type"] == "string"
        assert converters == [ConverterEntry(path=(), target_type="number")]

    def test_schema_without_enum_unchanged(self, gmail_tool_definition):
        schema = {
            "type": "object",
            "properties": {
                "to": {"type": "string", "format": "email"},
                "cc": {"type": "array", "items": {"type": "string"}},
            },
            "additionalProperties": False,
        }

        sanitized, converters = sanitize_schema(schema)

        assert sanitized == schema
        assert converters == []

    def test_does_not_mutate_input(self, gmail_tool_definition):
        schema = copy.deepcopy(gmail_tool_definition.input_parameters)
        original = copy.deepcopy(schema)

        sanitize_schema(schema)

        assert schema == original

    def test_non_object_root_is_copied_through(self):
        root = ["not", "a", "schema"]

        sanitized, converters = sanitize_schema(root)

        assert sanitized == root
        assert sanitized is not root
        assert converters == []

    def test_malformed_nested_node_raises(self):
        with pytest.raises(SchemaError):
            sanitize_schema({"type": "object", "properties": {"a": "not-a-schema"}})

        with pytest.raises(SchemaError):
            sanitize_schema({"type": "string", "enum": "abc"})


class TestParseSchema:
    """Test the typed schema view."""

    def test_round_trip_is_lossless(self, gmail_tool_definition):
        schema = gmail_tool_definition.input_parameters
        assert parse_schema(schema).to_dict() == schema

    def test_node_variants(self):
        from app.models.schema import ArrayNode, CompositionNode, ObjectNode, ScalarNode

        assert isinstance(parse_schema({"type": "object"}), ObjectNode)
        assert isinstance(parse_schema({"properties": {}}), ObjectNode)
        assert isinstance(parse_schema({"type": "array"}), ArrayNode)
        assert isinstance(parse_schema({"items": {"type": "string"}}), ArrayNode)
        assert isinstance(parse_schema({"oneOf": [{"type": "string"}]}), CompositionNode)
        assert isinstance(parse_schema({"type": "string"}), ScalarNode)
        assert isinstance(parse_schema({}), ScalarNode)


class TestCoerceArguments:
    """Test restoring original value types."""

    def test_number_round_trip(self):
        _, converters = sanitize_schema({"type": "number", "enum": [30, 40, 49]})

        assert coerce_arguments("40", converters) == 40
        assert coerce_arguments("abc", converters) == "abc"

    def test_property_round_trip(self):
        _, converters = sanitize_schema({
            "type": "object",
            "properties": {"delay": {"type": "number", "enum": [30, 40, 49]}},
        })

        assert coerce_arguments({"delay": "40"}, converters) == {"delay": 40}
        assert coerce_arguments({"delay": "abc"}, converters) == {"delay": "abc"}

    def test_sequence_coercion(self):
        _, converters = sanitize_schema({
            "type": "array",
            "items": {
                "type": "object",
                "properties": {"flag": {"type": "boolean", "enum": [True, False]}},
            },
        })

        result = coerce_arguments([{"flag": "true"}, {"flag": "false"}], converters)

        assert result == [{"flag": True}, {"flag": False}]

    def test_nested_sequence_coercion(self, gmail_tool_definition):
        _, converters = sanitize_schema(gmail_tool_definition.input_parameters)

        result = coerce_arguments(
            {
                "max_results": "25",
                "labels": [{"name": "INBOX", "include": "true"}, {"name": "SPAM", "include": "0"}],
                "query": "from:me",
            },
            converters,
        )

        assert result == {
            "max_results": 25,
            "labels": [{"name": "INBOX", "include": True}, {"name": "SPAM", "include": False}],
            "query": "from:me",
        }

    def test_branch_markers_do_not_consume_structure(self):
        _, converters = sanitize_schema({
            "type": "object",
            "properties": {"level": {"oneOf": [{"type": "integer", "enum": [1, 2]}, {"type": "string"}]}},
        })

        assert coerce_arguments({"level": "2"}, converters) == {"level": 2}

    @pytest.mark.parametrize("value,expected", [
        (True, True),
        (False, False),
        ("true", True),
        ("TRUE", True),
        ("1", True),
        ("false", False),
        ("yes", False),
        (0, False),
        (2, True),
        (None, False),
        ([1], True),
    ])
    def test_boolean_conversion(self, value, expected):
        converters = [ConverterEntry(path=("flag",), target_type="boolean")]
        assert coerce_arguments({"flag": value}, converters) == {"flag": expected}

    @pytest.mark.parametrize("value,target,expected", [
        ("12", "number", 12),
        ("12.5", "number", 12.5),
        ("  7", "number", 7),
        ("12abc", "number", 12),
        ("-3.25e2", "number", -325),
        (".5", "number", 0.5),
        ("12.9", "integer", 12),
        ("abc", "integer", "abc"),
        ("", "number", ""),
        ("Infinity", "number", "Infinity"),
        ("-Infinity", "number", "-Infinity"),
        ("1e400", "number", "1e400"),
        ("-1e400", "number", "-1e400"),
        (5, "number", 5),
    ])
    def test_numeric_conversion(self, value, target, expected):
        converters = [ConverterEntry(path=("n",), target_type=target)]
        assert coerce_arguments({"n": value}, converters) == {"n": expected}

    def test_missing_field_untouched(self):
        converters = [ConverterEntry(path=("code",), target_type="integer")]
        assert coerce_arguments({"other": "1"}, converters) == {"other": "1"}

    def test_wrong_shape_untouched(self):
        converters = [ConverterEntry(path=("items", ITEMS, "flag"), target_type="boolean")]

        assert coerce_arguments({"items": "not-a-list"}, converters) == {"items": "not-a-list"}
        assert coerce_arguments("scalar", converters) == "scalar"

    def test_does_not_mutate_input(self):
        converters = [ConverterEntry(path=("labels", ITEMS, "include"), target_type="boolean")]
        args = {"labels": [{"include": "true"}]}

        result = coerce_arguments(args, converters)

        assert args == {"labels": [{"include": "true"}]}
        assert result == {"labels": [{"include": True}]}
