"""Tool name sanitization for the model provider's function naming rules.

Names must start with a letter or underscore, contain only a-zA-Z0-9_.-
and be at most 64 characters long. This is a hard provider constraint.
"""

import logging
import re
from typing import Dict, Iterable, Mapping, Tuple, TypeVar

logger = logging.getLogger(__name__)

MAX_TOOL_NAME_LENGTH = 64
TOOL_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_.-]{0,63}$")

_ILLEGAL_CHARS = re.compile(r"[^A-Za-z0-9_.-]")
_VALID_START = re.compile(r"^[A-Za-z_]")

# Characters kept from each end when shortening an over-long name
_KEEP_EACH_END = 30

T = TypeVar("T")


def is_valid_tool_name(name: str) -> bool:
    """Check a name against the provider grammar."""
    return bool(TOOL_NAME_PATTERN.match(name))


def sanitize_name(name: str) -> str:
    """
    Normalize a single tool name to the provider grammar.

    Already valid names are returned unchanged.
    """
    sanitized = _ILLEGAL_CHARS.sub("_", name)
    if not _VALID_START.match(sanitized):
        sanitized = f"_{sanitized}"

    if len(sanitized) > MAX_TOOL_NAME_LENGTH:
        # Keep both ends: toolkit prefix and action suffix carry the meaning
        sanitized = f"{sanitized[:_KEEP_EACH_END]}__{sanitized[-_KEEP_EACH_END:]}"
        if len(sanitized) > MAX_TOOL_NAME_LENGTH:
            sanitized = sanitized[:MAX_TOOL_NAME_LENGTH]

    return sanitized


def sanitize_all(names: Iterable[str]) -> Dict[str, str]:
    """
    Sanitize a set of names into an injective original -> sanitized map.

    Names are processed in order; a name whose sanitized form is already
    taken gets ``_1``, ``_2``, ... with its base shortened so the result
    still fits in 64 characters.
    """
    used = set()
    name_map: Dict[str, str] = {}

    for original in names:
        if original in name_map:
            continue
        base = sanitize_name(original)
        candidate = base
        counter = 1
        while candidate in used:
            suffix = f"_{counter}"
            counter += 1
            candidate = base[:MAX_TOOL_NAME_LENGTH - len(suffix)] + suffix
        used.add(candidate)
        name_map[original] = candidate

    return name_map


def sanitize_tools(tools: Mapping[str, T]) -> Tuple[Dict[str, T], Dict[str, str]]:
    """
    Rename the keys of a tool mapping to provider-safe names.

    Returns:
        Tuple of (tools keyed by sanitized name, original -> sanitized name map)
    """
    name_map = sanitize_all(tools.keys())
    safe_tools = {name_map[original]: tool for original, tool in tools.items()}

    changes = {original: safe for original, safe in name_map.items() if original != safe}
    if changes:
        logger.info(
            "Renamed tools to satisfy function naming rules",
            extra={"renamed": changes, "total_tools": len(safe_tools)},
        )

    return safe_tools, name_map
