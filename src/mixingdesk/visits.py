"""
Host-side interpretation of visit action markers.

The visit tools never touch storage themselves; they return markers such as
``{"action": "add_visit_note", "content": ...}``. After a turn completes,
``apply_visit_actions`` replays those markers against the content store:

- ``add_visit_note`` appends an ``agent`` note.
- ``end_session`` appends a ``checkout`` note (when a summary was given) and
  moves the visit to ``checking_out``.

Persistence failures are logged and skipped so the visitor still gets the
agent's reply.
"""

from __future__ import annotations

import logging
from typing import Any

from mixingdesk.conversation.tools.registry import ToolExecutionResult
from mixingdesk.conversation.tools.visit import ADD_VISIT_NOTE_ACTION, END_SESSION_ACTION
from mixingdesk.storage.base import ContentStore, ContentStoreError

logger = logging.getLogger(__name__)

CHECKOUT_STATUS = "checking_out"


def action_markers(results: list[ToolExecutionResult]) -> list[dict[str, Any]]:
    """Return the payloads of successful results that carry an ``action`` key."""
    return [r.payload for r in results if r.success and r.payload.get("action")]


async def apply_visit_actions(
    visit_id: str,
    results: list[ToolExecutionResult],
    store: ContentStore,
) -> list[str]:
    """Apply every visit action marker in *results* to *visit_id*.

    Args:
        visit_id: The visit the turn belongs to.
        results: The turn's tool trace, in execution order.
        store: Where visit records live.

    Returns:
        The actions that were applied successfully, in order.
    """
    applied: list[str] = []
    for marker in action_markers(results):
        action = marker["action"]
        try:
            if action == ADD_VISIT_NOTE_ACTION:
                await store.add_visit_note(visit_id, "agent", marker["content"])
            elif action == END_SESSION_ACTION:
                if marker.get("summary"):
                    await store.add_visit_note(visit_id, "checkout", marker["summary"])
                await store.update_visit_status(visit_id, CHECKOUT_STATUS)
            else:
                logger.warning("Ignoring unknown visit action %r", action)
                continue
        except ContentStoreError as exc:
            logger.error("Failed to apply %s to visit %s: %s", action, visit_id, exc)
            continue
        logger.info("Applied %s to visit %s", action, visit_id)
        applied.append(action)
    return applied
