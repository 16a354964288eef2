"""Typed view over JSON-Schema parameter definitions.

Upstream tool catalogs hand us arbitrary JSON Schema. Parsing it into a
small closed set of node classes lets the sanitizer recurse exhaustively
instead of probing dict keys at every level. Keywords the nodes do not
model (description, required, format, ...) ride along in ``extra`` and are
written back untouched, so parse -> to_dict is lossless.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

COMBINATOR_KEYWORDS = ("anyOf", "oneOf", "allOf")
_STRUCTURAL_KEYS = {"type", "enum", "properties", "items", *COMBINATOR_KEYWORDS}

# Value types a sanitized enum may have been narrowed from
CONVERTIBLE_TYPES = ("number", "integer", "boolean")


class SchemaError(ValueError):
    """Raised when a schema node is not structurally valid."""


class _ItemsMarker:
    """Path segment meaning "every element of the array at this position"."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ITEMS"

    def __reduce__(self):
        return (_ItemsMarker, ())


ITEMS = _ItemsMarker()


@dataclass(frozen=True)
class Branch:
    """Path segment for a branch of anyOf/oneOf/allOf. Does not consume value structure."""
    keyword: str
    index: int


PathSegment = Union[str, _ItemsMarker, Branch]


@dataclass(frozen=True)
class ConverterEntry:
    """A location where a value type was narrowed to string during sanitization."""
    path: Tuple[PathSegment, ...]
    target_type: str  # one of CONVERTIBLE_TYPES


@dataclass
class SchemaNode:
    """Fields shared by every node variant."""
    type: Any = None  # str, list of str, or None when absent
    enum: Optional[List[Any]] = None
    combinators: Dict[str, List["SchemaNode"]] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)

    def declared_type(self) -> Optional[str]:
        """Return the declared scalar type, ignoring "null" in type unions."""
        if isinstance(self.type, list):
            non_null = [t for t in self.type if t != "null"]
            return non_null[0] if non_null else None
        return self.type

    def to_dict(self) -> Dict[str, Any]:
        data = copy.deepcopy(self.extra)
        if self.type is not None:
            data["type"] = copy.deepcopy(self.type)
        if self.enum is not None:
            data["enum"] = copy.deepcopy(self.enum)
        for keyword, branches in self.combinators.items():
            data[keyword] = [branch.to_dict() for branch in branches]
        return data


@dataclass
class ObjectNode(SchemaNode):
    properties: Optional[Dict[str, SchemaNode]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.properties is not None:
            data["properties"] = {name: child.to_dict() for name, child in self.properties.items()}
        return data


@dataclass
class ArrayNode(SchemaNode):
    items: Optional[SchemaNode] = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.items is not None:
            data["items"] = self.items.to_dict()
        return data


@dataclass
class CompositionNode(SchemaNode):
    """A node defined only by anyOf/oneOf/allOf branches."""


@dataclass
class ScalarNode(SchemaNode):
    """Anything else: string, number, integer, boolean, null or untyped leaves."""


def parse_schema(data: Any) -> SchemaNode:
    """
    Parse a JSON-Schema dict into a tree of SchemaNode variants.

    The returned tree shares no mutable state with ``data``.

    Raises:
        SchemaError: If a node or one of its children is not a JSON object,
            or a structural keyword has the wrong shape
    """
    if not isinstance(data, dict):
        raise SchemaError(f"Schema node must be an object, got {type(data).__name__}")

    enum = data.get("enum")
    if enum is not None and not isinstance(enum, list):
        raise SchemaError("'enum' must be an array")

    combinators: Dict[str, List[SchemaNode]] = {}
    for keyword in COMBINATOR_KEYWORDS:
        if keyword not in data:
            continue
        branches = data[keyword]
        if not isinstance(branches, list):
            raise SchemaError(f"'{keyword}' must be an array")
        combinators[keyword] = [parse_schema(branch) for branch in branches]

    common = {
        "type": copy.deepcopy(data.get("type")),
        "enum": copy.deepcopy(enum),
        "combinators": combinators,
        "extra": {k: copy.deepcopy(v) for k, v in data.items() if k not in _STRUCTURAL_KEYS},
    }
    declared = data.get("type")

    if "properties" in data or declared == "object":
        properties = data.get("properties")
        if properties is not None and not isinstance(properties, dict):
            raise SchemaError("'properties' must be an object")
        return ObjectNode(
            properties={name: parse_schema(child) for name, child in properties.items()}
            if properties is not None else None,
            **common,
        )

    if "items" in data or declared == "array":
        items = data.get("items")
        return ArrayNode(items=parse_schema(items) if items is not None else None, **common)

    if combinators and declared is None:
        return CompositionNode(**common)

    return ScalarNode(**common)
