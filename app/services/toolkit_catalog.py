"""Catalogue of supported toolkits with the user's connection status."""

import asyncio
import logging
from typing import Any, Dict, List

from app.adapters.composio_client import ComposioClient

logger = logging.getLogger(__name__)

# Toolkits offered in the UI; each needs an auth config in the Composio project
SUPPORTED_TOOLKITS = [
    "gmail",
    "googlecalendar",
    "slack",
    "todoist",
    "github",
    "notion",
    "linear",
]


async def get_active_connection_map(client: ComposioClient, user_id: str) -> Dict[str, str]:
    """Return lower-cased toolkit slug -> id of an ACTIVE connection."""
    connections = await client.list_connections(user_ids=[user_id])
    connection_map: Dict[str, str] = {}
    for conn in connections.items:
        if conn.is_active and conn.toolkit_slug and conn.id:
            connection_map[conn.toolkit_slug.lower()] = conn.id
    return connection_map


def _fallback_toolkit(slug: str) -> Dict[str, Any]:
    return {
        "name": slug.capitalize(),
        "slug": slug,
        "description": f"Connect your {slug} account",
        "logo": None,
        "categories": [],
    }


async def _describe_toolkit(client: ComposioClient, slug: str) -> Dict[str, Any]:
    try:
        toolkit = await client.get_toolkit(slug)
    except Exception as e:
        logger.warning(f"Failed to fetch toolkit {slug}: {e}")
        return _fallback_toolkit(slug)
    return {
        "name": toolkit.name,
        "slug": slug,
        "description": toolkit.meta.description or f"Connect your {toolkit.name} account",
        "logo": toolkit.meta.logo,
        "categories": toolkit.meta.categories,
    }


async def list_toolkits(client: ComposioClient, user_id: str) -> List[Dict[str, Any]]:
    """
    Describe every supported toolkit with the user's connection status.

    Connection lookup and toolkit metadata failures degrade to "not
    connected" and basic metadata respectively.
    """
    try:
        connection_map = await get_active_connection_map(client, user_id)
    except Exception as e:
        logger.error(f"Failed to fetch connected accounts: {e}", extra={"user_id": user_id})
        connection_map = {}

    toolkits = await asyncio.gather(*[_describe_toolkit(client, slug) for slug in SUPPORTED_TOOLKITS])

    for toolkit in toolkits:
        connection_id = connection_map.get(toolkit["slug"])
        toolkit["isConnected"] = connection_id is not None
        toolkit["connectionId"] = connection_id

    logger.info(
        "Listed toolkits",
        extra={"user_id": user_id, "connected": sum(1 for t in toolkits if t["isConnected"])},
    )
    return list(toolkits)
