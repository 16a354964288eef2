"""API utility functions: app-state dependencies, toolkit resolution and SSE encoding."""

import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional
from fastapi import HTTPException, Request, status

from app.adapters.composio_client import ComposioClient
from app.models.message import EnabledToolkit
from app.services.composio_tools import ComposioToolCache
from app.services.chat_stream import VendorStreamClient
from app.services.user_toolkits import get_user_enabled_toolkits

logger = logging.getLogger(__name__)

SSE_DONE = "data: [DONE]\n\n"


def get_composio_client(request: Request) -> ComposioClient:
    return request.app.state.composio_client


def get_tool_cache(request: Request) -> ComposioToolCache:
    return request.app.state.tool_cache


def get_vendor_client(request: Request, provider: str) -> VendorStreamClient:
    clients: Dict[str, VendorStreamClient] = request.app.state.vendor_clients
    if provider not in clients:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Model provider {provider} is not available",
        )
    return clients[provider]


def resolve_toolkit_slugs(
    user_id: str,
    enabled_toolkits: Optional[List[EnabledToolkit]],
) -> List[str]:
    """
    Toolkits to fetch tools for in a chat request.

    Uses the connected toolkits sent by the client, lower-cased. When the
    client sends none, falls back to the user's persisted enabled set.
    """
    slugs = [t.slug.lower() for t in enabled_toolkits or [] if t.is_connected is True]
    if slugs:
        return slugs

    try:
        slugs = get_user_enabled_toolkits(user_id)
    except Exception as e:
        # Chat proceeds without external tools when the store is unavailable
        logger.warning(f"Failed to load enabled toolkits: {e}", extra={"user_id": user_id})
        return []

    logger.info("Using persisted enabled toolkits", extra={"user_id": user_id, "toolkits": slugs})
    return slugs


def encode_sse(event: Dict[str, Any]) -> str:
    """Encode one event as a Server-Sent Events data frame."""
    return f"data: {json.dumps(event, default=str)}\n\n"


async def sse_stream(events: AsyncIterator[Dict[str, Any]]) -> AsyncIterator[str]:
    async for event in events:
        yield encode_sse(event)
    yield SSE_DONE
