"""Chat API router."""

import logging
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse

from app.adapters.composio_client import ComposioClient
from app.api.models import ChatRequest
from app.api.utils import (
    get_composio_client,
    get_tool_cache,
    get_vendor_client,
    resolve_toolkit_slugs,
    sse_stream,
)
from app.infra.auth import get_current_user_id
from app.infra.config import config
from app.infra.error_handler import ValidationError
from app.models.message import RequestHints
from app.services.builtin_tools import get_builtin_tools
from app.services.chat_stream import resolve_chat_model, stream_chat
from app.services.composio_tools import ComposioToolCache
from app.services.prompt_builder import build_messages, build_system_prompt
from app.services.tool_execution_engine import make_composio_executor
from app.services.tool_registry import build_request_tools

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/api/chat", tags=["Chat"])
async def chat(
    body: ChatRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    client: ComposioClient = Depends(get_composio_client),
    cache: ComposioToolCache = Depends(get_tool_cache),
):
    """
    Stream an assistant response for a new user message.

    Tools offered to the model are the built-in tools plus the Composio
    tools of every connected toolkit the client marked enabled (or, when
    it sends none, the user's persisted enabled toolkits).

    The response is a Server-Sent Events stream of UI message events
    (`data: {json}`), terminated by `data: [DONE]`.
    """
    try:
        provider, model = resolve_chat_model(body.selected_chat_model)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    vendor_client = get_vendor_client(request, provider)

    toolkit_slugs = resolve_toolkit_slugs(user_id, body.enabled_toolkits)
    logger.info(
        "Chat request",
        extra={
            "chat_id": body.id,
            "user_id": user_id,
            "chat_model": body.selected_chat_model,
            "toolkits": toolkit_slugs,
        },
    )

    assembled = await build_request_tools(
        user_id=user_id,
        toolkit_slugs=toolkit_slugs,
        cache=cache,
        executor=make_composio_executor(client, user_id),
        builtin_tools=get_builtin_tools(),
        strict=config.STRICT_TOOL_SCHEMAS,
    )

    system_prompt = build_system_prompt(
        selected_chat_model=body.selected_chat_model,
        request_hints=RequestHints.from_headers(request.headers),
        available_tools=assembled.active_tool_names,
    )
    messages = build_messages(system_prompt, body.messages, body.message)

    events = stream_chat(vendor_client, model, messages, assembled)
    return StreamingResponse(
        sse_stream(events),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
