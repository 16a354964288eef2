"""Prometheus metrics export."""

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Request metrics
request_count = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

request_duration = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
)

# LLM metrics
llm_calls_total = Counter(
    "llm_calls_total",
    "Total LLM streaming calls",
    ["provider", "model", "status"],
)

llm_call_duration = Histogram(
    "llm_call_duration_seconds",
    "LLM streaming call duration in seconds",
    ["provider", "model"],
)

# Tool metrics
tool_calls_total = Counter(
    "tool_calls_total",
    "Total tool calls",
    ["tool_name", "source", "status"],
)

tool_call_duration = Histogram(
    "tool_call_duration_seconds",
    "Tool call duration in seconds",
    ["tool_name", "source"],
)

# Composio tool cache metrics
tool_cache_lookups_total = Counter(
    "composio_tool_cache_lookups_total",
    "Composio tool cache lookups",
    ["result"],  # hit | miss | expired
)

tool_fetch_total = Counter(
    "composio_tool_fetch_total",
    "Composio tool refresh outcomes",
    ["status"],  # success | degraded | empty
)

tool_schema_fallbacks_total = Counter(
    "tool_schema_fallbacks_total",
    "Tools wrapped with their unsanitized schema after sanitization failed",
)

tool_cache_entries = Gauge(
    "composio_tool_cache_entries",
    "Number of entries in the Composio tool cache",
)

# Circuit breaker metrics
circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=half_open, 2=open)",
    ["service"],
)


def get_metrics_response() -> Response:
    """Get Prometheus metrics as HTTP response."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
