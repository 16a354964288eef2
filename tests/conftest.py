"""Pytest configuration and fixtures."""

import pytest
import os
from dotenv import load_dotenv

# Load test environment variables
load_dotenv()

# Set test environment
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")

from app.models.tool import ToolDefinition


@pytest.fixture
def gmail_tool_definition():
    """Catalog tool with a numeric enum, an array of flags and an optional field."""
    return ToolDefinition(
        slug="GMAIL_FETCH_EMAILS",
        name="Fetch emails",
        description="Fetch emails from the inbox",
        toolkit="gmail",
        input_parameters={
            "type": "object",
            "properties": {
                "max_results": {"type": "integer", "enum": [10, 25, 50], "description": "Page size"},
                "labels": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "name": {"type": "string"},
                            "include": {"type": "boolean", "enum": [True, False]},
                        },
                    },
                },
                "query": {"type": "string"},
            },
            "required": ["max_results"],
        },
    )
