"""
Library search tool for the Mixing Desk agentic loop.

Looks up library items in the content store by title substring or topic
membership (case-insensitive). An empty match list is a successful result;
only a store failure is reported as a tool error, carrying the store's own
error text so the model can decide how to recover.
"""

from __future__ import annotations

import logging
from typing import Any

from mixingdesk.conversation.context import SessionContext
from mixingdesk.conversation.providers import ToolDefinition
from mixingdesk.conversation.tools.registry import AsyncToolHandler, ToolError
from mixingdesk.storage.base import ContentStore, ContentStoreError

logger = logging.getLogger(__name__)


class SearchLibraryTool:
    """Searches library items in the content store.

    Attributes:
        TOOL_DEFINITION: Ready-to-use ``ToolDefinition`` for ``AgenticLoop``.
    """

    TOOL_DEFINITION: ToolDefinition = ToolDefinition(
        name="search-library",
        description=(
            "Search and retrieve content from the library. "
            "Use this to find relevant information to share with the visitor."
        ),
        parameters={
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Search query - can be a title, topic, or keyword.",
                }
            },
            "required": ["query"],
        },
    )

    def __init__(self, store: ContentStore) -> None:
        self.store = store

    async def search(self, query: str) -> dict[str, Any]:
        """Return ``{"library_items": [...]}`` for *query*.

        Raises:
            ToolError: If the content store fails.
        """
        try:
            items = await self.store.search_library(query)
        except ContentStoreError as exc:
            logger.warning("Library search %r failed: %s", query, exc)
            raise ToolError(str(exc)) from exc
        return {"library_items": list(items or [])}

    def as_dispatcher_entry(self) -> AsyncToolHandler:
        async def _call(args: dict[str, Any], context: SessionContext) -> dict[str, Any]:
            return await self.search(str(args.get("query") or ""))

        return _call
