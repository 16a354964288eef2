"""Debug API router: what Composio tools would a chat get right now."""

from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.adapters.composio_client import ComposioClient
from app.api.models import DebugToolsResponse
from app.api.utils import get_composio_client, get_tool_cache
from app.infra.auth import get_current_user_id
from app.infra.config import config
from app.infra.error_handler import RetryableError
from app.services.composio_tools import ComposioToolCache
from app.services.toolkit_catalog import SUPPORTED_TOOLKITS

router = APIRouter()


@router.get("/api/debug-tools", tags=["Debug"], response_model=DebugToolsResponse)
async def debug_tools(
    toolkits: Optional[List[str]] = Query(None, description="Toolkits to test (default: all supported)"),
    user_id: str = Depends(get_current_user_id),
    client: ComposioClient = Depends(get_composio_client),
    cache: ComposioToolCache = Depends(get_tool_cache),
):
    """
    Summarize the user's connections and the tools fetched for them.

    Disabled in production.
    """
    if config.APP_ENV == "production":
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

    tested = [slug.lower() for slug in toolkits] if toolkits else list(SUPPORTED_TOOLKITS)

    try:
        connections = await client.list_connections(user_ids=[user_id])
    except RetryableError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Failed to debug tools: {e.message}")

    result = await cache.fetch(user_id, tested)
    names = sorted(result.tools.keys())

    return DebugToolsResponse(
        user_id=user_id,
        tested_toolkits=tested,
        connected_accounts={
            "total": len(connections.items),
            "active": sum(1 for conn in connections.items if conn.is_active),
            "accounts": [
                {"id": conn.id, "toolkit": conn.toolkit_slug, "status": conn.status}
                for conn in connections.items
            ],
        },
        tools={"found": names, "count": len(names), "sample": names[:5]},
        fetch_status=result.status,
        composio_api_key="Present" if config.COMPOSIO_API_KEY else "Missing",
    )
