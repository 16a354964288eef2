"""FastAPI chat service main application."""

import uuid
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.infra.config import config
from app.infra.logging import app_logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown."""
    from app.adapters.composio_client import ComposioClient
    from app.adapters.vendor_adapter_gemini import GeminiClient
    from app.adapters.vendor_adapter_openai import OpenAIChatClient
    from app.services.composio_tools import ComposioToolCache

    # Startup
    app_logger.info("Application starting up")
    if not config.COMPOSIO_API_KEY:
        app_logger.warning("COMPOSIO_API_KEY not configured; chats will run with built-in tools only")

    composio_client = ComposioClient()
    app.state.composio_client = composio_client
    # One cache per process, shared by all requests
    app.state.tool_cache = ComposioToolCache(composio_client)
    app.state.vendor_clients = {
        "gemini": GeminiClient(),
        "openai": OpenAIChatClient(),
    }

    yield

    # Shutdown
    app_logger.info("Application shutting down")
    await composio_client.aclose()
    for vendor_client in app.state.vendor_clients.values():
        await vendor_client.aclose()

    # Close database connections
    from app.infra.database import engine
    engine.dispose()


# Create app with lifespan
app = FastAPI(
    title="Toolbridge Chat API",
    description="""
    Toolbridge Chat streams model responses over Server-Sent Events and lets the
    model call built-in tools and third-party tools from the Composio catalog.

    ## Features

    - **Chat**: Multi-step streamed responses with tool calling (Gemini, OpenAI)
    - **Connections**: Inspect and remove the user's connected accounts
    - **Toolkits**: Supported toolkits and the user's enabled set

    ## Authentication

    Requests carry the user id in `X-User-ID`. When `APP_API_KEY` is configured
    the shared key must also be sent in `X-API-Key`.
    """,
    version="1.0.0",
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "Chat",
            "description": "Streamed chat with tool calling",
        },
        {
            "name": "Connections",
            "description": "Connected accounts of the current user",
        },
        {
            "name": "Toolkits",
            "description": "Supported toolkits and the user's enabled toolkits",
        },
        {
            "name": "Debug",
            "description": "Tool availability diagnostics (non-production only)",
        },
        {
            "name": "Health",
            "description": "Health check and monitoring endpoints",
        },
    ],
)

# Setup middleware
from app.infra.middleware import RequestIDMiddleware, RequestLoggingMiddleware, setup_cors
from app.infra.timeout import TimeoutMiddleware, REQUEST_TIMEOUT

app.add_middleware(RequestIDMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(TimeoutMiddleware, timeout=REQUEST_TIMEOUT)
setup_cors(app)

# Import and register routers
from app.api.routers import (
    chat,
    connections,
    toolkits,
    debug_tools,
    health,
)

app.include_router(chat.router)
app.include_router(connections.router)
app.include_router(toolkits.router)
app.include_router(debug_tools.router)
app.include_router(health.router)


# Configure OpenAPI security schemes
def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )

    components = openapi_schema.setdefault("components", {})
    security_schemes = components.setdefault("securitySchemes", {})
    security_schemes["ApiKeyAuth"] = {
        "type": "apiKey",
        "in": "header",
        "name": "X-API-Key",
        "description": "Shared API key, required when APP_API_KEY is configured.",
    }
    security_schemes["UserIdAuth"] = {
        "type": "apiKey",
        "in": "header",
        "name": "X-User-ID",
        "description": "Id of the authenticated user.",
    }

    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi

MAX_REQUEST_SIZE = 1024 * 1024  # 1MB


@app.middleware("http")
async def request_size_limit_middleware(request: Request, call_next):
    """Enforce request size limits."""
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > MAX_REQUEST_SIZE:
        return JSONResponse(
            status_code=413,
            content={"detail": f"Request too large. Maximum size: {MAX_REQUEST_SIZE} bytes"},
        )
    return await call_next(request)


# Error handlers
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors."""
    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle all other exceptions."""
    error_id = str(uuid.uuid4())
    app_logger.error(f"Unhandled exception: {exc}", exc_info=True, extra={"error_id": error_id})
    return JSONResponse(
        status_code=500,
        content={"detail": f"Internal server error. Error ID: {error_id}"},
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        timeout_keep_alive=30,
        timeout_graceful_shutdown=30,
    )
