"""Composio connection and toolkit models."""

from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field

ACTIVE_STATUS = "ACTIVE"


class ToolkitRef(BaseModel):
    """Toolkit reference embedded in a connection."""
    model_config = ConfigDict(extra="ignore")

    slug: Optional[str] = None


class Connection(BaseModel):
    """A user's authorization of a toolkit (a Composio connected account)."""
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    status: Optional[str] = Field(None, description="INITIATED | ACTIVE | FAILED | EXPIRED | ...; missing counts as inactive")
    toolkit: Optional[ToolkitRef] = None

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE_STATUS

    @property
    def toolkit_slug(self) -> Optional[str]:
        return self.toolkit.slug if self.toolkit else None


class ConnectionList(BaseModel):
    """Page of connections returned by the authorization provider."""
    model_config = ConfigDict(extra="ignore")

    items: List[Connection] = Field(default_factory=list)
    next_cursor: Optional[str] = None


class ToolkitMeta(BaseModel):
    model_config = ConfigDict(extra="ignore")

    description: Optional[str] = None
    logo: Optional[str] = None
    categories: List[Any] = Field(default_factory=list)


class ToolkitInfo(BaseModel):
    """Toolkit metadata from the catalog."""
    model_config = ConfigDict(extra="ignore")

    name: str
    slug: str
    meta: ToolkitMeta = Field(default_factory=ToolkitMeta)
