"""
Turntable display tools.

The kiosk has two display surfaces: Turntable 1 shows an image, Turntable 2
shows text. Both tools only describe what to show; the frontend renders the
payload it finds in ``tool_results``.

- ``DisplayImageTool`` resolves a storage path to a public URL.
- ``DisplayContentTool`` passes title and body text straight through.
"""

from __future__ import annotations

from typing import Any

from mixingdesk.conversation.context import SessionContext
from mixingdesk.conversation.providers import ToolDefinition
from mixingdesk.conversation.tools.registry import AsyncToolHandler, ToolError
from mixingdesk.storage.base import ContentStore


class DisplayImageTool:
    """Shows an image from the asset bucket on Turntable 1.

    Attributes:
        TOOL_DEFINITION: Ready-to-use ``ToolDefinition`` for ``AgenticLoop``.
    """

    TOOL_DEFINITION: ToolDefinition = ToolDefinition(
        name="display-image",
        description=(
            "Display an image on Turntable 1 (the visual display area). "
            "Use this to show images to the visitor."
        ),
        parameters={
            "type": "object",
            "properties": {
                "image_path": {
                    "type": "string",
                    "description": (
                        "The filename or path of the image in the image storage bucket."
                    ),
                }
            },
            "required": ["image_path"],
        },
    )

    def __init__(self, store: ContentStore) -> None:
        self.store = store

    async def display(self, image_path: str) -> dict[str, Any]:
        return {"image_url": await self.store.asset_url(image_path)}

    def as_dispatcher_entry(self) -> AsyncToolHandler:
        async def _call(args: dict[str, Any], context: SessionContext) -> dict[str, Any]:
            image_path = str(args.get("image_path") or "").strip()
            if not image_path:
                raise ToolError("image_path is required")
            return await self.display(image_path)

        return _call


class DisplayContentTool:
    """Shows text content on Turntable 2."""

    TOOL_DEFINITION: ToolDefinition = ToolDefinition(
        name="display-content",
        description=(
            "Display text content on Turntable 2 (the content display area). "
            "Use this to show detailed information, retrieved content, or explanations."
        ),
        parameters={
            "type": "object",
            "properties": {
                "content": {
                    "type": "string",
                    "description": "The text content to display.",
                },
                "title": {
                    "type": "string",
                    "description": "Optional title for the content.",
                },
            },
            "required": ["content"],
        },
    )

    def as_dispatcher_entry(self) -> AsyncToolHandler:
        async def _call(args: dict[str, Any], context: SessionContext) -> dict[str, Any]:
            return {"content": args.get("content", ""), "title": args.get("title")}

        return _call
