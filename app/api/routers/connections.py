"""Connections API router.

Every change to a user's connections clears their cached Composio tools,
so stale authorization state cannot outlive the change.
"""

import logging
from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.adapters.composio_client import ComposioClient
from app.api.models import (
    ConnectionDeletedResponse,
    ConnectionListResponse,
    ConnectionRequest,
    ConnectionStatusResponse,
    ConnectionSummary,
)
from app.api.utils import get_composio_client, get_tool_cache
from app.infra.auth import get_current_user_id
from app.infra.error_handler import APIError, RetryableError
from app.services.composio_tools import ComposioToolCache

logger = logging.getLogger(__name__)

router = APIRouter()


def _upstream_error(action: str, error: RetryableError) -> HTTPException:
    logger.error(f"Failed to {action}: {error.message}", extra={"error_category": error.category.value})
    if isinstance(error, APIError) and error.status_code is not None and 400 <= error.status_code < 500:
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error.message)
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Failed to {action}")


@router.get("/api/connections", tags=["Connections"], response_model=ConnectionListResponse)
async def list_connections(
    user_id: str = Depends(get_current_user_id),
    client: ComposioClient = Depends(get_composio_client),
):
    """List the user's connected accounts."""
    try:
        connections = await client.list_connections(user_ids=[user_id])
    except RetryableError as e:
        raise _upstream_error("list connections", e)

    return ConnectionListResponse(
        connections=[
            ConnectionSummary(id=conn.id, toolkit=conn.toolkit_slug, status=conn.status)
            for conn in connections.items
        ]
    )


@router.post("/api/connections/status", tags=["Connections"], response_model=ConnectionStatusResponse)
async def connection_status(
    body: ConnectionRequest,
    user_id: str = Depends(get_current_user_id),
    client: ComposioClient = Depends(get_composio_client),
    cache: ComposioToolCache = Depends(get_tool_cache),
):
    """
    Check a connected account's status.

    Once a connection is ACTIVE the user's cached tools are cleared so the
    next chat request picks up the new toolkit.
    """
    try:
        connection = await client.get_connection(body.connection_id)
    except RetryableError as e:
        raise _upstream_error("check connection status", e)

    if connection.is_active:
        cache.clear_composio_tools_cache(user_id)

    return ConnectionStatusResponse(
        id=connection.id,
        status=connection.status,
        is_active=connection.is_active,
        toolkit=connection.toolkit.model_dump() if connection.toolkit else None,
    )


@router.delete("/api/connections", tags=["Connections"], response_model=ConnectionDeletedResponse)
async def delete_connection(
    connection_id: str = Query(..., alias="connectionId", min_length=1, description="Connected account id"),
    user_id: str = Depends(get_current_user_id),
    client: ComposioClient = Depends(get_composio_client),
    cache: ComposioToolCache = Depends(get_tool_cache),
):
    """Delete a connected account."""
    try:
        await client.delete_connection(connection_id)
    except RetryableError as e:
        raise _upstream_error("delete connection", e)

    cache.clear_composio_tools_cache(user_id)
    logger.info("Connection deleted", extra={"user_id": user_id, "connection_id": connection_id})
    return ConnectionDeletedResponse(message="Connection deleted successfully")


@router.post("/api/connections/disconnect", tags=["Connections"], response_model=ConnectionDeletedResponse)
async def disconnect(
    body: ConnectionRequest,
    user_id: str = Depends(get_current_user_id),
    client: ComposioClient = Depends(get_composio_client),
    cache: ComposioToolCache = Depends(get_tool_cache),
):
    """Disconnect a connected account."""
    try:
        await client.delete_connection(body.connection_id)
    except RetryableError as e:
        raise _upstream_error("disconnect", e)

    cache.clear_composio_tools_cache(user_id)
    logger.info("Connection disconnected", extra={"user_id": user_id, "connection_id": body.connection_id})
    return ConnectionDeletedResponse(message="Connection disconnected successfully")
