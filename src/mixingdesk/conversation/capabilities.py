"""
The capability set advertised to the model.

``list_capabilities()`` is the fixed, ordered sequence of tool descriptors sent
with every LLM call. ``build_tool_registry()`` binds each descriptor to its
handler; handlers that need the content store receive it here.
"""

from __future__ import annotations

from mixingdesk.conversation.providers import ToolDefinition
from mixingdesk.conversation.tools import (
    AddVisitNoteTool,
    DisplayContentTool,
    DisplayImageTool,
    EmotionalDeliveryTool,
    EndSessionTool,
    ReadVisitNotesTool,
    SearchLibraryTool,
    ToolRegistry,
)
from mixingdesk.storage.base import ContentStore

CAPABILITIES: tuple[ToolDefinition, ...] = (
    DisplayImageTool.TOOL_DEFINITION,
    DisplayContentTool.TOOL_DEFINITION,
    SearchLibraryTool.TOOL_DEFINITION,
    EmotionalDeliveryTool.TOOL_DEFINITION,
    ReadVisitNotesTool.TOOL_DEFINITION,
    AddVisitNoteTool.TOOL_DEFINITION,
    EndSessionTool.TOOL_DEFINITION,
)


def list_capabilities() -> list[ToolDefinition]:
    """Return the advertised tool descriptors in their canonical order."""
    return list(CAPABILITIES)


def build_tool_registry(store: ContentStore) -> ToolRegistry:
    """Register every capability with its handler, in ``CAPABILITIES`` order."""
    handlers = {
        DisplayImageTool.TOOL_DEFINITION.name: DisplayImageTool(store).as_dispatcher_entry(),
        DisplayContentTool.TOOL_DEFINITION.name: DisplayContentTool().as_dispatcher_entry(),
        SearchLibraryTool.TOOL_DEFINITION.name: SearchLibraryTool(store).as_dispatcher_entry(),
        EmotionalDeliveryTool.TOOL_DEFINITION.name: EmotionalDeliveryTool().as_dispatcher_entry(),
        ReadVisitNotesTool.TOOL_DEFINITION.name: ReadVisitNotesTool().as_dispatcher_entry(),
        AddVisitNoteTool.TOOL_DEFINITION.name: AddVisitNoteTool().as_dispatcher_entry(),
        EndSessionTool.TOOL_DEFINITION.name: EndSessionTool().as_dispatcher_entry(),
    }
    registry = ToolRegistry()
    for definition in CAPABILITIES:
        registry.register(definition, handlers[definition.name])
    return registry
