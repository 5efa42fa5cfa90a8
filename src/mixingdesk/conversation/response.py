"""Shapes a ``LoopResult`` into the JSON payload returned to the kiosk."""

from __future__ import annotations

from typing import Any

from mixingdesk.conversation.loop import LoopResult
from mixingdesk.conversation.tools.registry import ToolExecutionResult


def trace_entry(result: ToolExecutionResult) -> dict[str, Any]:
    """``{tool, success, data}`` on success, ``{tool, success, error}`` otherwise."""
    entry: dict[str, Any] = {"tool": result.tool_name, "success": result.success}
    if result.success:
        entry["data"] = result.payload
    else:
        entry["error"] = result.error_message
    return entry


def assemble(result: LoopResult) -> dict[str, Any]:
    """Build the wire payload for one turn.

    ``emotional_delivery`` is present only when the agent chose one.
    """
    payload: dict[str, Any] = {
        "message": result.final_text,
        "tool_results": [trace_entry(r) for r in result.tool_trace],
    }
    if result.emotional_delivery is not None:
        payload["emotional_delivery"] = result.emotional_delivery.to_dict()
    return payload
