from .message import ChatMessage, MessagePart, EnabledToolkit, RequestHints
from .tool import Tool, ToolDefinition
from .connection import Connection, ConnectionList, ToolkitInfo
from .schema import ConverterEntry

__all__ = [
    "ChatMessage",
    "MessagePart",
    "EnabledToolkit",
    "RequestHints",
    "Tool",
    "ToolDefinition",
    "Connection",
    "ConnectionList",
    "ToolkitInfo",
    "ConverterEntry",
]
