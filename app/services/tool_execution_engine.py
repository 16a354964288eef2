"""Tool execution for model-issued tool calls."""

import asyncio
import logging
import time
from typing import Any, Dict, Mapping

from app.adapters.composio_client import ComposioClient
from app.infra.error_handler import RetryableError
from app.infra.metrics import tool_call_duration, tool_calls_total
from app.infra.timeout import TOOL_EXECUTION_TIMEOUT
from app.models.tool import Tool
from app.services.tool_wrapper import SlugExecutor

logger = logging.getLogger(__name__)


def make_composio_executor(client: ComposioClient, user_id: str) -> SlugExecutor:
    """
    Bind Composio tool execution to the requesting user.

    The user id always comes from the authenticated request, never from
    model-supplied arguments.
    """
    async def execute(slug: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        return await client.execute_tool(slug, user_id, arguments)

    return execute


async def execute_tool_call(
    tools: Mapping[str, Tool],
    name: str,
    raw_args: Any,
    timeout: float = TOOL_EXECUTION_TIMEOUT,
) -> Dict[str, Any]:
    """
    Execute a tool call issued by the model.

    Failures are returned to the model as ``{"error": ...}`` so it can
    recover or explain; nothing is raised to the caller.

    Args:
        tools: Tools offered for this request, keyed by provider-safe name
        name: Tool name as issued by the model
        raw_args: Arguments as issued by the model (JSON string or dict)
        timeout: Execution timeout in seconds

    Returns:
        Tool result wrapped as a dict
    """
    tool = tools.get(name)
    if tool is None:
        logger.warning(f"Model called unknown tool {name}")
        tool_calls_total.labels(tool_name=name, source="unknown", status="error").inc()
        return {"error": f"Unknown tool: {name}"}

    start_time = time.time()
    status = "success"
    try:
        result = await asyncio.wait_for(tool.execute(raw_args), timeout=timeout)
    except asyncio.TimeoutError:
        status = "timeout"
        logger.error(f"Tool {name} timed out after {timeout}s", extra={"tool_name": name})
        return {"error": f"Tool {name} timed out after {timeout} seconds"}
    except RetryableError as e:
        status = "error"
        logger.error(
            f"Tool {name} failed: {e.message}",
            extra={"tool_name": name, "error_category": e.category.value},
        )
        return {"error": e.message}
    except Exception as e:
        status = "error"
        logger.error(f"Tool {name} failed: {e}", extra={"tool_name": name}, exc_info=True)
        return {"error": str(e)}
    finally:
        tool_calls_total.labels(tool_name=name, source=tool.source, status=status).inc()
        tool_call_duration.labels(tool_name=name, source=tool.source).observe(time.time() - start_time)

    if isinstance(result, dict):
        return result
    return {"result": result}
