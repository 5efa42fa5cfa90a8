"""
Built-in tools for the Mixing Desk agentic loop.

Each tool module exposes:
- A tool class with a ``TOOL_DEFINITION`` attribute (``ToolDefinition``).
- An ``as_dispatcher_entry()`` method returning a handler for ``ToolRegistry``.

The ``ToolRegistry`` class manages tool registration and produces the executor
callable (with timeout, retry, and failure containment) used by ``AgenticLoop``.
"""

from mixingdesk.conversation.tools.delivery import (
    EMOTIONAL_DELIVERY_TOOL,
    EmotionalDeliveryTool,
)
from mixingdesk.conversation.tools.display import DisplayContentTool, DisplayImageTool
from mixingdesk.conversation.tools.library import SearchLibraryTool
from mixingdesk.conversation.tools.registry import (
    AsyncToolHandler,
    ToolError,
    ToolExecutionResult,
    ToolExecutor,
    ToolRegistry,
)
from mixingdesk.conversation.tools.visit import (
    ADD_VISIT_NOTE_ACTION,
    END_SESSION_ACTION,
    AddVisitNoteTool,
    EndSessionTool,
    ReadVisitNotesTool,
)

__all__ = [
    "ADD_VISIT_NOTE_ACTION",
    "AddVisitNoteTool",
    "AsyncToolHandler",
    "DisplayContentTool",
    "DisplayImageTool",
    "EMOTIONAL_DELIVERY_TOOL",
    "END_SESSION_ACTION",
    "EmotionalDeliveryTool",
    "EndSessionTool",
    "ReadVisitNotesTool",
    "SearchLibraryTool",
    "ToolError",
    "ToolExecutionResult",
    "ToolExecutor",
    "ToolRegistry",
]
