"""Per-request tool assembly: built-in tools plus the user's Composio tools."""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping

from app.models.tool import Tool
from app.services.composio_tools import ComposioToolCache
from app.services.tool_name_sanitizer import sanitize_tools
from app.services.tool_wrapper import SlugExecutor, wrap_tool

logger = logging.getLogger(__name__)


@dataclass
class AssembledTools:
    """Tools handed to the model for one request, keyed by provider-safe name."""
    tools: Dict[str, Tool] = field(default_factory=dict)
    active_tool_names: List[str] = field(default_factory=list)
    # original -> sanitized; for logging only, discarded with the request
    name_map: Dict[str, str] = field(default_factory=dict)


def assemble_tools(
    builtin_tools: Mapping[str, Tool],
    external_tools: Mapping[str, Tool],
) -> AssembledTools:
    """
    Merge built-in and external tools and normalize their names.

    Built-in tools always win: an external tool whose name equals a
    built-in name is dropped. Built-ins are merged first, so they also keep
    their names when sanitization makes two names collide.

    Args:
        builtin_tools: Built-in tools keyed by name
        external_tools: Wrapped external tools keyed by catalog slug

    Returns:
        AssembledTools
    """
    all_tools: Dict[str, Tool] = dict(builtin_tools)
    external_names: List[str] = []
    for name, tool in external_tools.items():
        if name in all_tools:
            logger.warning(
                f"Dropping external tool {name}: name is taken by a built-in tool",
                extra={"tool_name": name},
            )
            continue
        all_tools[name] = tool
        external_names.append(name)

    active_tool_names = list(builtin_tools.keys()) + external_names

    safe_tools, name_map = sanitize_tools(all_tools)
    active_safe = [name_map.get(name, name) for name in active_tool_names]

    return AssembledTools(tools=safe_tools, active_tool_names=active_safe, name_map=name_map)


async def build_request_tools(
    user_id: str,
    toolkit_slugs: Iterable[str],
    cache: ComposioToolCache,
    executor: SlugExecutor,
    builtin_tools: Mapping[str, Tool],
    strict: bool = False,
) -> AssembledTools:
    """
    Build the tool set for a chat request.

    Tool fetching never fails the request; upstream errors degrade to
    stale or zero external tools.
    """
    result = await cache.fetch(user_id, toolkit_slugs)
    if result.reason:
        logger.warning(
            f"Composio tools {result.status}: {result.reason}",
            extra={"user_id": user_id, "tool_count": len(result.tools)},
        )

    external = {
        slug: wrap_tool(tool_def, executor, strict=strict)
        for slug, tool_def in result.tools.items()
    }
    assembled = assemble_tools(builtin_tools, external)

    logger.info(
        f"Assembled {len(assembled.tools)} tools for request",
        extra={
            "user_id": user_id,
            "builtin_count": len(builtin_tools),
            "external_count": len(external),
            "fetch_status": result.status,
        },
    )
    return assembled
