"""
Visit lifecycle tools.

``read-visit-notes`` answers from the visit snapshot the caller supplied with
the turn. ``add-visit-note`` and ``end-session`` perform no persistence or
navigation: they return an action marker (``{"action": ...}``) that the host
application interprets after the turn (see ``mixingdesk.visits``).
"""

from __future__ import annotations

from typing import Any

from mixingdesk.conversation.context import SessionContext
from mixingdesk.conversation.providers import ToolDefinition
from mixingdesk.conversation.tools.registry import AsyncToolHandler, ToolError

ADD_VISIT_NOTE_ACTION = "add_visit_note"
END_SESSION_ACTION = "end_session"


class ReadVisitNotesTool:
    TOOL_DEFINITION: ToolDefinition = ToolDefinition(
        name="read-visit-notes",
        description=(
            "Read all notes recorded for the current visit, including what the "
            "visitor shared at check-in."
        ),
        parameters={"type": "object", "properties": {}, "required": []},
    )

    def as_dispatcher_entry(self) -> AsyncToolHandler:
        async def _call(args: dict[str, Any], context: SessionContext) -> dict[str, Any]:
            notes = [note.to_dict() for note in context.notes]
            noun = "note" if len(notes) == 1 else "notes"
            return {
                "notes": notes,
                "message": f"Found {len(notes)} {noun} for this visit.",
            }

        return _call


class AddVisitNoteTool:
    TOOL_DEFINITION: ToolDefinition = ToolDefinition(
        name="add-visit-note",
        description=(
            "Record an observation about the visitor or the conversation in the "
            "visit notes, such as interests, questions, or preferences."
        ),
        parameters={
            "type": "object",
            "properties": {
                "content": {
                    "type": "string",
                    "description": "The note to record.",
                }
            },
            "required": ["content"],
        },
    )

    def as_dispatcher_entry(self) -> AsyncToolHandler:
        async def _call(args: dict[str, Any], context: SessionContext) -> dict[str, Any]:
            content = str(args.get("content") or "").strip()
            if not content:
                raise ToolError("content is required")
            return {
                "action": ADD_VISIT_NOTE_ACTION,
                "content": content,
                "visit_id": context.visit_id,
                "message": "Note will be added to the visit.",
            }

        return _call


class EndSessionTool:
    TOOL_DEFINITION: ToolDefinition = ToolDefinition(
        name="end-session",
        description=(
            "End the visitor's session and move them to check-out. Use this when "
            "the visitor says goodbye or indicates they are finished."
        ),
        parameters={
            "type": "object",
            "properties": {
                "summary": {
                    "type": "string",
                    "description": "Optional summary of the visit for the notes.",
                }
            },
            "required": [],
        },
    )

    def as_dispatcher_entry(self) -> AsyncToolHandler:
        async def _call(args: dict[str, Any], context: SessionContext) -> dict[str, Any]:
            return {
                "action": END_SESSION_ACTION,
                "summary": args.get("summary"),
                "visit_id": context.visit_id,
                "message": "Session will end and the visitor will move to check-out.",
            }

        return _call
