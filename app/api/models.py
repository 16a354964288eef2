"""API request/response models."""

from typing import List, Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field

from app.models.message import ChatMessage, EnabledToolkit


# ============================================================================
# Chat Models
# ============================================================================

class ChatRequest(BaseModel):
    """Request body for a streamed chat turn."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Chat id")
    message: ChatMessage = Field(..., description="New user message")
    messages: List[ChatMessage] = Field(default_factory=list, description="Prior messages of the chat")
    selected_chat_model: str = Field("chat-model", alias="selectedChatModel", examples=["chat-model"])
    selected_visibility_type: str = Field("private", alias="selectedVisibilityType")
    enabled_toolkits: Optional[List[EnabledToolkit]] = Field(None, alias="enabledToolkits")


# ============================================================================
# Connections Models
# ============================================================================

class ConnectionRequest(BaseModel):
    """Request body naming a connected account."""
    model_config = ConfigDict(populate_by_name=True)

    connection_id: str = Field(..., alias="connectionId", min_length=1)


class ConnectionStatusResponse(BaseModel):
    """Status of a connected account."""
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    status: Optional[str] = None
    is_active: bool = Field(..., alias="isActive")
    toolkit: Optional[Dict[str, Any]] = None


class ConnectionSummary(BaseModel):
    id: Optional[str] = None
    toolkit: Optional[str] = None
    status: Optional[str] = None


class ConnectionListResponse(BaseModel):
    connections: List[ConnectionSummary]


class ConnectionDeletedResponse(BaseModel):
    success: bool = True
    message: str


# ============================================================================
# Toolkit Models
# ============================================================================

class ToolkitResponse(BaseModel):
    """A supported toolkit with the user's connection status."""
    model_config = ConfigDict(populate_by_name=True)

    name: str
    slug: str
    description: str
    logo: Optional[str] = None
    categories: List[Any] = Field(default_factory=list)
    is_connected: bool = Field(..., alias="isConnected")
    connection_id: Optional[str] = Field(None, alias="connectionId")


class ToolkitListResponse(BaseModel):
    toolkits: List[ToolkitResponse]


class UserToolkitsRequest(BaseModel):
    slugs: List[str] = Field(..., description="Toolkit slugs to enable; all others are disabled")


class UserToolkitsResponse(BaseModel):
    toolkits: List[str]


# ============================================================================
# Debug Models
# ============================================================================

class DebugToolsResponse(BaseModel):
    """Connection summary and fetched tools for the current user."""
    user_id: str
    tested_toolkits: List[str]
    connected_accounts: Dict[str, Any]
    tools: Dict[str, Any]
    fetch_status: str
    composio_api_key: str
