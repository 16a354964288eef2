"""OpenAI vendor adapter: streaming chat completions with function calling."""

import json
import logging
import time
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Sequence
from openai import AsyncOpenAI

from app.infra.circuit_breaker import CircuitBreaker, openai_circuit_breaker
from app.infra.config import config
from app.infra.error_handler import AuthError, wrap_llm_error
from app.infra.metrics import llm_call_duration, llm_calls_total
from app.infra.timeout import LLM_STREAM_TIMEOUT
from app.models.tool import Tool

logger = logging.getLogger(__name__)


def build_openai_tools(
    tools: Mapping[str, Tool],
    active_tool_names: Sequence[str],
) -> List[Dict[str, Any]]:
    """
    Convert the active tools to OpenAI tool schema.

    Args:
        tools: Tools keyed by provider-safe name
        active_tool_names: Names the model may call

    Returns:
        List of OpenAI tool dicts in OpenAI format
    """
    openai_tools = []
    for name in active_tool_names:
        tool = tools.get(name)
        if tool is None:
            continue
        openai_tools.append({
            "type": "function",
            "function": {
                "name": name,
                "description": tool.description,
                "parameters": tool.parameters or {"type": "object", "properties": {}},
            }
        })
    return openai_tools


def to_openai_messages(messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Convert canonical messages to chat completions messages."""
    openai_messages = []
    for msg in messages:
        role = msg.get("role")
        if role == "assistant" and msg.get("tool_calls"):
            openai_messages.append({
                "role": "assistant",
                "content": msg.get("content") or None,
                "tool_calls": [
                    {
                        "id": call["id"],
                        "type": "function",
                        "function": {"name": call["name"], "arguments": json.dumps(call.get("arguments") or {})},
                    }
                    for call in msg["tool_calls"]
                ],
            })
        elif role == "tool":
            openai_messages.append({
                "role": "tool",
                "tool_call_id": msg["tool_call_id"],
                "content": json.dumps(msg.get("content"), default=str),
            })
        else:
            openai_messages.append({"role": role, "content": msg.get("content", "")})
    return openai_messages


class OpenAIChatClient:
    """Streaming client for OpenAI chat completions."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.api_key = api_key if api_key is not None else config.OPENAI_API_KEY
        self._breaker = circuit_breaker or openai_circuit_breaker
        self._client = None

    @property
    def client(self) -> AsyncOpenAI:
        """Lazy initialization of OpenAI client."""
        if self._client is None:
            if not self.api_key:
                raise AuthError("OPENAI_API_KEY not configured")
            self._client = AsyncOpenAI(api_key=self.api_key, timeout=LLM_STREAM_TIMEOUT)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def stream(
        self,
        model: str,
        messages: List[Dict[str, Any]],
        tools: Mapping[str, Tool],
        active_tool_names: Sequence[str],
    ) -> AsyncIterator[Dict[str, Any]]:
        """
        Stream one model step.

        Tool call arguments arrive in fragments and are emitted once the
        stream ends.

        Yields:
            {"type": "text-delta", "delta": str}
            {"type": "tool-call", "toolCallId": str, "toolName": str, "input": str}
            {"type": "finish", "finishReason": str, "usage": dict}
        """
        request: Dict[str, Any] = {
            "model": model,
            "messages": to_openai_messages(messages),
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        openai_tools = build_openai_tools(tools, active_tool_names)
        if openai_tools:
            request["tools"] = openai_tools
            request["tool_choice"] = "auto"

        start_time = time.time()
        status = "success"
        try:
            try:
                stream = await self._breaker.call_async(self.client.chat.completions.create, **request)
            except AuthError:
                raise
            except Exception as e:
                raise wrap_llm_error(e, "openai") from e

            # index -> {"id", "name", "arguments"}
            pending_calls: Dict[int, Dict[str, str]] = {}
            finish_reason = None
            usage: Dict[str, Any] = {}
            try:
                async for chunk in stream:
                    if chunk.usage:
                        usage = chunk.usage.model_dump()
                    if not chunk.choices:
                        continue
                    choice = chunk.choices[0]
                    delta = choice.delta
                    if delta.content:
                        yield {"type": "text-delta", "delta": delta.content}
                    for call_delta in delta.tool_calls or []:
                        call = pending_calls.setdefault(call_delta.index, {"id": "", "name": "", "arguments": ""})
                        if call_delta.id:
                            call["id"] = call_delta.id
                        if call_delta.function:
                            call["name"] += call_delta.function.name or ""
                            call["arguments"] += call_delta.function.arguments or ""
                    finish_reason = choice.finish_reason or finish_reason
            except Exception as e:
                raise wrap_llm_error(e, "openai") from e

            for index in sorted(pending_calls):
                call = pending_calls[index]
                yield {
                    "type": "tool-call",
                    "toolCallId": call["id"],
                    "toolName": call["name"],
                    "input": call["arguments"],
                }

            yield {"type": "finish", "finishReason": finish_reason or "stop", "usage": usage}
        except Exception:
            status = "error"
            raise
        finally:
            llm_calls_total.labels(provider="openai", model=model, status=status).inc()
            llm_call_duration.labels(provider="openai", model=model).observe(time.time() - start_time)
