"""
System prompt augmentation.

``augment()`` appends per-turn context to the agent's base system prompt:

- an emotional-state section when the visitor spoke and the voice pipeline
  detected emotions, followed by the emotional-agency instructions;
- a visit section when the visitor has checked in and the visit has notes.

Pure string composition; no I/O.
"""

from __future__ import annotations

from mixingdesk.conversation.context import (
    DetectedEmotion,
    EmotionalContext,
    VisitContext,
)

# Visit ids are UUIDs; the prompt only needs enough to tell visits apart.
VISIT_ID_DISPLAY_LENGTH = 8

EMOTIONAL_AGENCY_INSTRUCTIONS = """\
## Emotional Agency
You have emotional agency: you decide how your reply should sound when it is
spoken aloud. Respond to the visitor's emotional state with genuine care, and
use the set-emotional-delivery tool to choose the tone, intensity, and pacing
of your voice before you answer. Choose what feels right for this moment; you
do not have to mirror the visitor's emotion."""

VISIT_TOOL_GUIDANCE = """\
Visit tools:
- read-visit-notes: review everything recorded for this visit so far.
- add-visit-note: record something worth remembering about the visitor.
- end-session: when the visitor says goodbye, end the session so they can check out."""


def format_percentage(score: float) -> str:
    """Format a ``[0, 1]`` score as a whole-number percentage, e.g. ``"80%"``."""
    return f"{round(score * 100)}%"


def _describe(emotion: DetectedEmotion) -> str:
    return f"{emotion.label} ({format_percentage(emotion.score)})"


def emotional_section(context: EmotionalContext) -> str:
    lines = [
        "## Visitor Emotional State",
        "Detected from the visitor's voice on this turn:",
        f"- Primary emotion: {_describe(context.primary_emotion)}",
    ]
    if context.secondary_emotion is not None:
        lines.append(f"- Secondary emotion: {_describe(context.secondary_emotion)}")
    lines.append(f"- Speaking pace: {context.pace}")
    lines.append(f"- Tone: {context.tone}")
    return "\n".join(lines) + "\n\n" + EMOTIONAL_AGENCY_INSTRUCTIONS


def visit_section(context: VisitContext) -> str:
    visit_id = context.visit_id
    if len(visit_id) > VISIT_ID_DISPLAY_LENGTH:
        visit_id = visit_id[:VISIT_ID_DISPLAY_LENGTH] + "..."
    lines = ["## Current Visit", f"Visit ID: {visit_id}", "Visit notes:"]
    lines.extend(f"- [{note.source}] {note.content}" for note in context.notes)
    return "\n".join(lines) + "\n\n" + VISIT_TOOL_GUIDANCE


def augment(
    base_prompt: str,
    emotional_context: EmotionalContext | None = None,
    visit_context: VisitContext | None = None,
) -> str:
    """Return *base_prompt* enriched with the optional turn context.

    Args:
        base_prompt: The agent's system prompt.
        emotional_context: Emotion readings for this turn, if voice was used.
        visit_context: Visit snapshot; ignored when it has no notes.

    Returns:
        The enriched prompt. Equal to *base_prompt* when neither context applies.
    """
    sections = [base_prompt]
    if emotional_context is not None:
        sections.append(emotional_section(emotional_context))
    if visit_context is not None and visit_context.notes:
        sections.append(visit_section(visit_context))
    return "\n\n".join(sections)
