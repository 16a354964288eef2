"""Chat message models exchanged with the browser."""

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional


class MessagePart(BaseModel):
    """One part of a UI message. Only text parts reach the model."""
    model_config = ConfigDict(extra="allow")

    type: str = Field(..., description="'text' | 'file' | 'tool-*' | ...")
    text: Optional[str] = None


class ChatMessage(BaseModel):
    """UI message as sent by the chat client."""
    model_config = ConfigDict(extra="allow")

    id: str = Field(..., description="Client generated message id")
    role: str = Field(..., description="'user' | 'assistant' | 'system'")
    parts: List[MessagePart] = Field(default_factory=list)

    @property
    def text(self) -> str:
        return "".join(part.text or "" for part in self.parts if part.type == "text")


class EnabledToolkit(BaseModel):
    """Toolkit toggle state sent with a chat request."""
    slug: str
    is_connected: Optional[bool] = Field(None, alias="isConnected")

    model_config = ConfigDict(populate_by_name=True)


class RequestHints(BaseModel):
    """Coarse user location forwarded by the edge, used in the system prompt."""
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None

    @classmethod
    def from_headers(cls, headers: Dict[str, Any]) -> "RequestHints":
        return cls(
            latitude=headers.get("x-vercel-ip-latitude"),
            longitude=headers.get("x-vercel-ip-longitude"),
            city=headers.get("x-vercel-ip-city"),
            country=headers.get("x-vercel-ip-country"),
        )
