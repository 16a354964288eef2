"""Multi-step chat streaming: model steps interleaved with tool execution."""

import json
import logging
import uuid
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol, Mapping, Sequence, Tuple

from app.infra.config import config
from app.infra.error_handler import RetryableError, ValidationError
from app.models.tool import Tool
from app.services.tool_execution_engine import execute_tool_call
from app.services.tool_registry import AssembledTools

logger = logging.getLogger(__name__)

DEFAULT_CHAT_MODEL = "chat-model"

# Chat model id -> (provider, provider model)
CHAT_MODELS: Dict[str, Tuple[str, str]] = {
    "chat-model": ("gemini", "gemini-2.0-flash"),
    "chat-model-reasoning": ("gemini", "gemini-2.5-flash"),
    "chat-model-openai": ("openai", "gpt-4o-mini"),
}

# Shown to the user; details stay in the logs
STREAM_ERROR_TEXT = "Oops, an error occurred!"


class VendorStreamClient(Protocol):
    def stream(
        self,
        model: str,
        messages: List[Dict[str, Any]],
        tools: Mapping[str, Tool],
        active_tool_names: Sequence[str],
    ) -> AsyncIterator[Dict[str, Any]]:
        ...


def resolve_chat_model(chat_model_id: str) -> Tuple[str, str]:
    """
    Map a chat model id to (provider, provider model).

    Raises:
        ValidationError: If the chat model id is unknown
    """
    try:
        return CHAT_MODELS[chat_model_id]
    except KeyError:
        raise ValidationError(f"Unknown chat model: {chat_model_id}")


def _recorded_arguments(raw_args: Any) -> Dict[str, Any]:
    """Arguments as stored in the transcript; undecodable input is kept as text."""
    if isinstance(raw_args, dict):
        return raw_args
    if not raw_args:
        return {}
    try:
        decoded = json.loads(raw_args)
    except (TypeError, ValueError):
        return {"_raw": str(raw_args)}
    return decoded if isinstance(decoded, dict) else {"_raw": raw_args}


async def stream_chat(
    client: VendorStreamClient,
    model: str,
    messages: List[Dict[str, Any]],
    assembled: AssembledTools,
    max_steps: Optional[int] = None,
    message_id: Optional[str] = None,
) -> AsyncIterator[Dict[str, Any]]:
    """
    Stream an assistant response as UI message stream events.

    Each step streams one model call; when the model calls tools they are
    executed and their results fed back for the next step, up to max_steps.
    Errors after the stream started are reported as an ``error`` event.

    Args:
        client: Vendor streaming client
        model: Provider model name
        messages: Canonical model messages (not mutated)
        assembled: Tools for this request
        max_steps: Maximum number of model steps
        message_id: Assistant message id

    Yields:
        UI stream event dicts
    """
    max_steps = max_steps or config.MAX_TOOL_STEPS
    conversation = list(messages)

    yield {"type": "start", "messageId": message_id or str(uuid.uuid4())}

    try:
        for step in range(max_steps):
            yield {"type": "start-step"}

            text_id = str(uuid.uuid4())
            text_parts: List[str] = []
            tool_calls: List[Dict[str, Any]] = []
            finish_reason = None

            async for event in client.stream(model, conversation, assembled.tools, assembled.active_tool_names):
                if event["type"] == "text-delta":
                    if not text_parts:
                        yield {"type": "text-start", "id": text_id}
                    text_parts.append(event["delta"])
                    yield {"type": "text-delta", "id": text_id, "delta": event["delta"]}
                elif event["type"] == "tool-call":
                    tool_calls.append(event)
                    yield {
                        "type": "tool-input-available",
                        "toolCallId": event["toolCallId"],
                        "toolName": event["toolName"],
                        "input": _recorded_arguments(event["input"]),
                    }
                elif event["type"] == "finish":
                    finish_reason = event.get("finishReason")

            if text_parts:
                yield {"type": "text-end", "id": text_id}

            if tool_calls:
                conversation.append({
                    "role": "assistant",
                    "content": "".join(text_parts),
                    "tool_calls": [
                        {
                            "id": call["toolCallId"],
                            "name": call["toolName"],
                            "arguments": _recorded_arguments(call["input"]),
                        }
                        for call in tool_calls
                    ],
                })
                for call in tool_calls:
                    output = await execute_tool_call(assembled.tools, call["toolName"], call["input"])
                    yield {"type": "tool-output-available", "toolCallId": call["toolCallId"], "output": output}
                    conversation.append({
                        "role": "tool",
                        "tool_call_id": call["toolCallId"],
                        "name": call["toolName"],
                        "content": output,
                    })

            yield {"type": "finish-step"}
            logger.debug(
                f"Chat step {step + 1} finished",
                extra={"model": model, "finish_reason": finish_reason, "tool_calls": len(tool_calls)},
            )
            if not tool_calls:
                break
        else:
            logger.info(f"Chat stopped after reaching {max_steps} steps", extra={"model": model})

        yield {"type": "finish"}
    except RetryableError as e:
        logger.error(
            f"Chat stream failed: {e.message}",
            extra={"model": model, "error_category": e.category.value},
        )
        yield {"type": "error", "errorText": STREAM_ERROR_TEXT}
    except Exception as e:
        logger.error(f"Chat stream failed: {e}", extra={"model": model}, exc_info=True)
        yield {"type": "error", "errorText": STREAM_ERROR_TEXT}
