"""Tool models: externally-sourced definitions and runtime callables."""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field


class ToolDefinition(BaseModel):
    """Tool definition as fetched from the Composio tool catalog."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    slug: str = Field(..., description="Catalog identifier, e.g. GMAIL_SEND_EMAIL")
    name: Optional[str] = Field(None, description="Human readable tool name")
    description: str = Field("", description="Tool description shown to the model")
    input_parameters: Any = Field(
        default_factory=dict,
        alias="inputParameters",
        description="JSON Schema for the tool arguments; passed through as-is when malformed",
    )
    toolkit: Optional[str] = Field(None, description="Slug of the toolkit the tool belongs to")


ToolExecutor = Callable[[Any], Awaitable[Any]]


@dataclass
class Tool:
    """
    A callable tool as handed to the model invocation boundary.

    ``execute`` takes the raw arguments from the model (a JSON string or an
    already-decoded dict) and returns a JSON-serializable result.
    """
    description: str
    parameters: Dict[str, Any]
    execute: ToolExecutor
    source: str = "builtin"  # "builtin" | "composio"
    slug: Optional[str] = None
