"""Toolkits API router."""

import logging
from fastapi import APIRouter, Depends, HTTPException, status

from app.adapters.composio_client import ComposioClient
from app.api.models import ToolkitListResponse, UserToolkitsRequest, UserToolkitsResponse
from app.api.utils import get_composio_client
from app.infra.auth import get_current_user_id
from app.services.toolkit_catalog import list_toolkits
from app.services.user_toolkits import get_user_enabled_toolkits, set_user_enabled_toolkits

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/api/toolkits", tags=["Toolkits"], response_model=ToolkitListResponse)
async def get_toolkits(
    user_id: str = Depends(get_current_user_id),
    client: ComposioClient = Depends(get_composio_client),
):
    """List supported toolkits with the user's connection status."""
    toolkits = await list_toolkits(client, user_id)
    return {"toolkits": toolkits}


@router.get("/api/user-toolkits", tags=["Toolkits"], response_model=UserToolkitsResponse)
async def get_user_toolkits(user_id: str = Depends(get_current_user_id)):
    """Get the toolkits the user has enabled for chat."""
    try:
        slugs = get_user_enabled_toolkits(user_id)
    except Exception as e:
        logger.error(f"Failed to get user toolkits: {e}", extra={"user_id": user_id}, exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to get user toolkits")
    return UserToolkitsResponse(toolkits=slugs)


@router.post("/api/user-toolkits", tags=["Toolkits"], response_model=UserToolkitsResponse)
async def set_user_toolkits(
    body: UserToolkitsRequest,
    user_id: str = Depends(get_current_user_id),
):
    """Replace the toolkits the user has enabled for chat."""
    try:
        slugs = set_user_enabled_toolkits(user_id, body.slugs)
    except Exception as e:
        logger.error(f"Failed to set user toolkits: {e}", extra={"user_id": user_id}, exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to set user toolkits")
    return UserToolkitsResponse(toolkits=slugs)
