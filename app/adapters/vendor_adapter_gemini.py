"""Gemini vendor adapter: streaming generation with function calling (REST)."""

import json
import logging
import time
import uuid
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Sequence, Tuple

import httpx

from app.infra.circuit_breaker import CircuitBreaker, gemini_circuit_breaker
from app.infra.config import config
from app.infra.error_handler import AuthError, wrap_llm_error
from app.infra.metrics import llm_call_duration, llm_calls_total
from app.infra.timeout import LLM_STREAM_TIMEOUT
from app.models.tool import Tool

logger = logging.getLogger(__name__)

# Schema fields accepted by Gemini function declarations
GEMINI_SCHEMA_FIELDS = {
    "type", "format", "title", "description", "nullable", "enum",
    "maxItems", "minItems", "minProperties", "maxProperties",
    "minLength", "maxLength", "pattern", "minimum", "maximum", "default",
}


def to_gemini_schema(schema: Any) -> Dict[str, Any]:
    """
    Reduce a JSON Schema to the subset Gemini accepts.

    List types become their first non-null entry plus ``nullable``;
    ``oneOf`` is folded into ``anyOf``; ``allOf`` and unknown keywords are dropped.
    """
    if not isinstance(schema, dict):
        return {}

    out: Dict[str, Any] = {}
    for key, value in schema.items():
        if key == "type":
            if isinstance(value, list):
                non_null = [t for t in value if t != "null"]
                if len(non_null) < len(value):
                    out["nullable"] = True
                value = non_null[0] if non_null else "string"
            out["type"] = value
        elif key == "properties" and isinstance(value, dict):
            out["properties"] = {name: to_gemini_schema(prop) for name, prop in value.items()}
        elif key == "items":
            out["items"] = to_gemini_schema(value)
        elif key in ("anyOf", "oneOf") and isinstance(value, list):
            out.setdefault("anyOf", []).extend(to_gemini_schema(branch) for branch in value)
        elif key == "required" and isinstance(value, list):
            out["required"] = value
        elif key in GEMINI_SCHEMA_FIELDS:
            out[key] = value

    # Gemini rejects required names that are not declared properties
    if "required" in out:
        declared = out.get("properties", {})
        out["required"] = [name for name in out["required"] if name in declared]
        if not out["required"]:
            del out["required"]
    return out


def build_function_declarations(
    tools: Mapping[str, Tool],
    active_tool_names: Sequence[str],
) -> List[Dict[str, Any]]:
    """Declare the active tools only, in active-name order."""
    declarations = []
    for name in active_tool_names:
        tool = tools.get(name)
        if tool is None:
            continue
        declaration: Dict[str, Any] = {"name": name, "description": tool.description}
        parameters = to_gemini_schema(tool.parameters)
        # Parameterless functions must omit the schema entirely
        if parameters.get("properties"):
            declaration["parameters"] = parameters
        declarations.append(declaration)
    return declarations


def to_gemini_contents(messages: List[Dict[str, Any]]) -> Tuple[List[Dict[str, Any]], Optional[str]]:
    """
    Convert canonical messages to Gemini contents.

    System messages are joined into the system instruction. Tool results are
    sent as functionResponse parts; adjacent messages of the same role are merged.

    Returns:
        Tuple of (contents, system_instruction)
    """
    contents: List[Dict[str, Any]] = []
    system_parts: List[str] = []

    for msg in messages:
        role = msg.get("role")
        if role == "system":
            system_parts.append(msg.get("content", ""))
            continue

        if role == "assistant":
            gemini_role = "model"
            parts: List[Dict[str, Any]] = []
            if msg.get("content"):
                parts.append({"text": msg["content"]})
            for call in msg.get("tool_calls") or []:
                parts.append({"functionCall": {"name": call["name"], "args": call.get("arguments") or {}}})
        elif role == "tool":
            gemini_role = "user"
            parts = [{"functionResponse": {"name": msg["name"], "response": msg.get("content") or {}}}]
        else:
            gemini_role = "user"
            parts = [{"text": msg.get("content", "")}]

        if not parts:
            continue
        if contents and contents[-1]["role"] == gemini_role:
            contents[-1]["parts"].extend(parts)
        else:
            contents.append({"role": gemini_role, "parts": parts})

    system_instruction = "\n\n".join(p for p in system_parts if p) or None
    return contents, system_instruction


class GeminiClient:
    """Streaming client for the Gemini generateContent REST API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.api_key = api_key if api_key is not None else config.GEMINI_API_KEY
        self.base_url = (base_url or config.GEMINI_BASE_URL).rstrip("/")
        self._transport = transport
        self._breaker = circuit_breaker or gemini_circuit_breaker
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy initialization of the HTTP client."""
        if self._client is None:
            if not self.api_key:
                raise AuthError("GEMINI_API_KEY not configured")
            self._client = httpx.AsyncClient(
                headers={"x-goog-api-key": self.api_key, "Content-Type": "application/json"},
                timeout=LLM_STREAM_TIMEOUT,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def build_payload(
        self,
        messages: List[Dict[str, Any]],
        tools: Mapping[str, Tool],
        active_tool_names: Sequence[str],
    ) -> Dict[str, Any]:
        contents, system_instruction = to_gemini_contents(messages)
        payload: Dict[str, Any] = {"contents": contents}
        if system_instruction:
            payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        declarations = build_function_declarations(tools, active_tool_names)
        if declarations:
            payload["tools"] = [{"functionDeclarations": declarations}]
        return payload

    async def stream(
        self,
        model: str,
        messages: List[Dict[str, Any]],
        tools: Mapping[str, Tool],
        active_tool_names: Sequence[str],
    ) -> AsyncIterator[Dict[str, Any]]:
        """
        Stream one model step.

        Yields:
            {"type": "text-delta", "delta": str}
            {"type": "tool-call", "toolCallId": str, "toolName": str, "input": dict}
            {"type": "finish", "finishReason": str, "usage": dict}
        """
        url = f"{self.base_url}/models/{model}:streamGenerateContent"
        payload = self.build_payload(messages, tools, active_tool_names)
        logger.debug(
            f"Gemini stream request for {model}",
            extra={"model": model, "message_count": len(payload["contents"]), "tool_count": len(active_tool_names)},
        )

        async def open_stream() -> httpx.Response:
            request = self.client.build_request("POST", url, params={"alt": "sse"}, json=payload)
            response = await self.client.send(request, stream=True)
            if response.is_error:
                await response.aread()
                await response.aclose()
                response.raise_for_status()
            return response

        start_time = time.time()
        status = "success"
        try:
            try:
                response = await self._breaker.call_async(open_stream)
            except httpx.HTTPError as e:
                raise wrap_llm_error(e, "gemini") from e

            finish_reason = None
            usage: Dict[str, Any] = {}
            try:
                async for line in response.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    chunk = json.loads(line[len("data:"):].strip())
                    usage = chunk.get("usageMetadata") or usage
                    for candidate in chunk.get("candidates", [])[:1]:
                        for part in (candidate.get("content") or {}).get("parts", []):
                            if part.get("text"):
                                yield {"type": "text-delta", "delta": part["text"]}
                            elif "functionCall" in part:
                                call = part["functionCall"]
                                yield {
                                    "type": "tool-call",
                                    "toolCallId": f"call_{uuid.uuid4().hex[:24]}",
                                    "toolName": call.get("name"),
                                    "input": call.get("args") or {},
                                }
                        finish_reason = candidate.get("finishReason") or finish_reason
            except httpx.HTTPError as e:
                raise wrap_llm_error(e, "gemini") from e
            finally:
                await response.aclose()

            yield {"type": "finish", "finishReason": finish_reason or "STOP", "usage": usage}
        except Exception:
            status = "error"
            raise
        finally:
            llm_calls_total.labels(provider="gemini", model=model, status=status).inc()
            llm_call_duration.labels(provider="gemini", model=model).observe(time.time() - start_time)
