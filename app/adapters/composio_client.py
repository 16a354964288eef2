"""Composio REST client: connected accounts (authorization) and tool catalog."""

import logging
from typing import Any, Dict, List, Optional
import httpx
from pydantic import ValidationError

from app.infra.circuit_breaker import CircuitBreaker, composio_circuit_breaker
from app.infra.config import config
from app.infra.error_handler import AuthError, retry_with_backoff, wrap_composio_error
from app.infra.timeout import COMPOSIO_REQUEST_TIMEOUT
from app.models.connection import Connection, ConnectionList, ToolkitInfo
from app.models.tool import ToolDefinition

logger = logging.getLogger(__name__)


class ComposioClient:
    """Client for the Composio v3 REST API.

    All requests go through the Composio circuit breaker and are retried
    with backoff on transient failures. httpx errors are translated into
    the RetryableError hierarchy from app.infra.error_handler.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = COMPOSIO_REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        max_retries: Optional[int] = None,
    ):
        self.api_key = api_key if api_key is not None else config.COMPOSIO_API_KEY
        self.base_url = (base_url or config.COMPOSIO_BASE_URL).rstrip("/")
        self.timeout = timeout
        self.max_retries = config.COMPOSIO_MAX_RETRIES if max_retries is None else max_retries
        self._transport = transport
        self._breaker = circuit_breaker or composio_circuit_breaker
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy initialization of the HTTP client."""
        if self._client is None:
            if not self.api_key:
                raise AuthError("COMPOSIO_API_KEY not configured")
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"x-api-key": self.api_key, "Content-Type": "application/json"},
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        async def send():
            response = await self.client.request(method, path, **kwargs)
            response.raise_for_status()
            return response.json() if response.content else {}

        async def guarded_send():
            try:
                return await self._breaker.call_async(send)
            except httpx.HTTPError as e:
                raise wrap_composio_error(e) from e

        def on_retry(e: Exception, attempt: int) -> None:
            logger.warning(f"Retrying Composio {method} {path} (attempt {attempt}): {e}")

        return await retry_with_backoff(
            guarded_send,
            max_retries=self.max_retries,
            initial_delay=0.5,
            max_delay=5.0,
            on_retry=on_retry,
        )

    async def list_connections(
        self,
        user_ids: List[str],
        toolkit_slugs: Optional[List[str]] = None,
    ) -> ConnectionList:
        """
        List connected accounts for users, optionally restricted to toolkits.

        Args:
            user_ids: User ids to list connections for
            toolkit_slugs: Optional toolkit filter

        Returns:
            ConnectionList with items of {id, status, toolkit: {slug}}
        """
        params: Dict[str, Any] = {"user_ids": list(user_ids)}
        if toolkit_slugs:
            params["toolkit_slugs"] = list(toolkit_slugs)
        data = await self._request("GET", "/connected_accounts", params=params)
        return ConnectionList.model_validate(data)

    async def get_connection(self, connection_id: str) -> Connection:
        data = await self._request("GET", f"/connected_accounts/{connection_id}")
        return Connection.model_validate(data)

    async def delete_connection(self, connection_id: str) -> None:
        await self._request("DELETE", f"/connected_accounts/{connection_id}")

    async def get_toolkit(self, slug: str) -> ToolkitInfo:
        data = await self._request("GET", f"/toolkits/{slug}")
        return ToolkitInfo.model_validate(data)

    async def fetch_tools(
        self,
        user_id: str,
        toolkits: List[str],
        limit: int,
    ) -> Dict[str, ToolDefinition]:
        """
        Fetch tool definitions for toolkits.

        Args:
            user_id: User the tools will be executed for
            toolkits: Toolkit slugs to fetch tools for
            limit: Maximum number of tools

        Returns:
            Dict mapping tool slug -> ToolDefinition
        """
        data = await self._request(
            "GET",
            "/tools",
            params={"toolkit_slug": ",".join(toolkits), "limit": limit, "user_id": user_id},
        )

        tools: Dict[str, ToolDefinition] = {}
        for item in data.get("items", []):
            # One bad catalog record must not cost the user the rest of the batch
            slug = item.get("slug") if isinstance(item, dict) else None
            if not slug:
                logger.warning("Skipping Composio tool without a slug", extra={"toolkits": toolkits})
                continue
            toolkit = item.get("toolkit") or {}
            input_parameters = item.get("input_parameters")
            try:
                tool_def = ToolDefinition(
                    slug=slug,
                    name=item.get("name"),
                    description=item.get("description") or "",
                    input_parameters={} if input_parameters is None else input_parameters,
                    toolkit=toolkit.get("slug") if isinstance(toolkit, dict) else None,
                )
            except ValidationError as e:
                logger.warning(f"Skipping malformed Composio tool {slug}: {e}", extra={"tool_slug": slug})
                continue
            tools[tool_def.slug] = tool_def
        return tools

    async def execute_tool(self, slug: str, user_id: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """
        Execute a catalog tool on behalf of a user.

        Returns:
            Dict with data, successful and error keys
        """
        data = await self._request(
            "POST",
            f"/tools/execute/{slug}",
            json={"user_id": user_id, "arguments": arguments},
        )
        return {
            "successful": data.get("successful", True),
            "data": data.get("data"),
            "error": data.get("error"),
        }
