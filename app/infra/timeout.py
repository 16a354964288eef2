"""Request timeout configuration and middleware."""

import asyncio
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware


class TimeoutMiddleware(BaseHTTPMiddleware):
    """
    Middleware to enforce a timeout on producing a response.

    Streaming responses only have to start within the timeout; the body
    itself is bounded by LLM_STREAM_TIMEOUT inside the chat stream.
    """

    def __init__(self, app, timeout: int = 60):
        """
        Initialize timeout middleware.

        Args:
            app: FastAPI application
            timeout: Request timeout in seconds (default: 60)
        """
        super().__init__(app)
        self.timeout = timeout

    async def dispatch(self, request: Request, call_next):
        """Process request with timeout."""
        try:
            return await asyncio.wait_for(call_next(request), timeout=self.timeout)
        except asyncio.TimeoutError:
            return JSONResponse(
                status_code=status.HTTP_504_GATEWAY_TIMEOUT,
                content={"detail": f"Request timeout after {self.timeout} seconds"},
            )


# Timeout configurations
REQUEST_TIMEOUT = 60  # 60 seconds to start a response
LLM_STREAM_TIMEOUT = 120  # 2 minutes for a single model call, per step
TOOL_EXECUTION_TIMEOUT = 30  # 30 seconds for tool execution
COMPOSIO_REQUEST_TIMEOUT = 30.0  # 30 seconds per Composio HTTP request
