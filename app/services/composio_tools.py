"""Per-user Composio tool fetching with a time-bounded cache."""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional

from app.adapters.composio_client import ComposioClient
from app.infra.config import config
from app.infra.metrics import tool_cache_entries, tool_cache_lookups_total, tool_fetch_total
from app.models.tool import ToolDefinition

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_DEGRADED = "degraded"
STATUS_EMPTY = "empty"


@dataclass
class ToolFetchResult:
    """Outcome of a tool fetch: success(tools) | degraded(tools, reason) | empty."""
    status: str
    tools: Dict[str, ToolDefinition] = field(default_factory=dict)
    reason: Optional[str] = None


@dataclass
class CacheEntry:
    user_id: str
    tools: Dict[str, ToolDefinition]
    timestamp: float


def cache_key(user_id: str, toolkit_slugs: Iterable[str]) -> str:
    return f"{user_id}:{','.join(sorted(toolkit_slugs))}"


class ComposioToolCache:
    """
    Process-wide cache of the Composio tools each user may call.

    Constructed once per process (FastAPI lifespan) and passed to the
    request handlers. Concurrent refreshes of the same key are last-write-wins.
    """

    def __init__(
        self,
        client: ComposioClient,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.time,
        tools_limit: Optional[int] = None,
    ):
        self.client = client
        self.ttl_seconds = config.TOOLS_CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self.tools_limit = config.COMPOSIO_TOOLS_LIMIT if tools_limit is None else tools_limit
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _store(self, key: str, user_id: str, tools: Dict[str, ToolDefinition]) -> None:
        self._entries[key] = CacheEntry(user_id=user_id, tools=tools, timestamp=self._clock())
        tool_cache_entries.set(len(self._entries))

    def _is_fresh(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.timestamp < self.ttl_seconds

    async def _active_toolkits(self, user_id: str, toolkit_slugs: List[str]) -> List[str]:
        """Return the requested toolkits with at least one ACTIVE connection."""
        connections = await self.client.list_connections(user_ids=[user_id], toolkit_slugs=toolkit_slugs)
        active = {
            conn.toolkit_slug.lower()
            for conn in connections.items
            if conn.is_active and conn.toolkit_slug
        }
        return [slug for slug in toolkit_slugs if slug.lower() in active]

    async def fetch(self, user_id: str, toolkit_slugs: Iterable[str]) -> ToolFetchResult:
        """
        Resolve the tools a user may call for the given toolkits.

        Args:
            user_id: User identifier
            toolkit_slugs: Toolkits enabled for this request

        Returns:
            ToolFetchResult; never raises
        """
        slugs = sorted(set(toolkit_slugs))
        if not slugs:
            return ToolFetchResult(status=STATUS_EMPTY)

        key = cache_key(user_id, slugs)
        entry = self._entries.get(key)
        if entry is not None and self._is_fresh(entry):
            tool_cache_lookups_total.labels(result="hit").inc()
            status = STATUS_SUCCESS if entry.tools else STATUS_EMPTY
            return ToolFetchResult(status=status, tools=entry.tools)
        tool_cache_lookups_total.labels(result="expired" if entry is not None else "miss").inc()

        try:
            active_slugs = await self._active_toolkits(user_id, slugs)
            if not active_slugs:
                # Never expose schemas for toolkits the user cannot invoke
                logger.info(
                    "No active connections for requested toolkits",
                    extra={"user_id": user_id, "toolkits": slugs},
                )
                self._store(key, user_id, {})
                tool_fetch_total.labels(status=STATUS_EMPTY).inc()
                return ToolFetchResult(status=STATUS_EMPTY)

            tools = await self.client.fetch_tools(user_id, active_slugs, limit=self.tools_limit)
            self._store(key, user_id, tools)
            logger.info(
                f"Fetched {len(tools)} Composio tools",
                extra={"user_id": user_id, "toolkits": active_slugs, "tool_count": len(tools)},
            )
            tool_fetch_total.labels(status=STATUS_SUCCESS).inc()
            return ToolFetchResult(status=STATUS_SUCCESS, tools=tools)
        except Exception as e:
            reason = f"{type(e).__name__}: {e}"
            logger.error(
                f"Error fetching Composio tools: {reason}",
                extra={"user_id": user_id, "toolkits": slugs, "stale_entry": entry is not None},
                exc_info=True,
            )
            if entry is not None:
                tool_fetch_total.labels(status=STATUS_DEGRADED).inc()
                return ToolFetchResult(status=STATUS_DEGRADED, tools=entry.tools, reason=reason)
            tool_fetch_total.labels(status=STATUS_EMPTY).inc()
            return ToolFetchResult(status=STATUS_EMPTY, reason=reason)

    async def get_composio_tools(self, user_id: str, toolkit_slugs: Iterable[str]) -> Dict[str, ToolDefinition]:
        result = await self.fetch(user_id, toolkit_slugs)
        return result.tools

    def clear_composio_tools_cache(self, user_id: Optional[str] = None) -> None:
        """Drop every cached entry for a user, or all entries when no user is given."""
        if user_id is None:
            self._entries.clear()
        else:
            for key in [k for k, entry in self._entries.items() if entry.user_id == user_id]:
                del self._entries[key]
        tool_cache_entries.set(len(self._entries))
        logger.debug("Cleared Composio tools cache", extra={"user_id": user_id})
