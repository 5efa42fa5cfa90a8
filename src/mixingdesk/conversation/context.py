"""
Per-turn context types consumed by the prompt augmenter and the tools.

These are plain dataclasses; the HTTP layer validates the wire shapes with
pydantic and converts them into these before a turn is processed.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

DELIVERY_TONES = (
    "excited",
    "calm",
    "empathetic",
    "confident",
    "warm",
    "professional",
    "neutral",
)
DELIVERY_PACINGS = ("energetic", "measured", "gentle", "normal")
NOTE_SOURCES = ("checkin", "agent", "vws", "checkout")

DEFAULT_INTENSITY = 0.7
DEFAULT_PACING = "normal"


@dataclass(frozen=True)
class DetectedEmotion:
    """A single emotion reading from the voice pipeline.

    Attributes:
        label: Emotion name, e.g. ``"anxiety"``.
        score: Confidence in ``[0, 1]``.
    """

    label: str
    score: float


@dataclass(frozen=True)
class EmotionalContext:
    """What the voice pipeline detected about the visitor on this turn."""

    primary_emotion: DetectedEmotion
    secondary_emotion: DetectedEmotion | None = None
    pace: str = "normal"
    tone: str = "neutral"


@dataclass(frozen=True)
class VisitNote:
    timestamp: str
    source: str
    content: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class VisitContext:
    """Read-only snapshot of the visit the turn belongs to.

    Attributes:
        visit_id: Opaque identifier of the visit record.
        notes: Notes recorded so far, oldest first.
    """

    visit_id: str
    notes: tuple[VisitNote, ...] = ()


@dataclass(frozen=True)
class EmotionalDelivery:
    """The agent's chosen voice expression for its reply.

    Attributes:
        tone: One of ``DELIVERY_TONES``.
        intensity: Strength of the expression in ``[0, 1]``.
        pacing: One of ``DELIVERY_PACINGS``.
    """

    tone: str
    intensity: float = DEFAULT_INTENSITY
    pacing: str = DEFAULT_PACING

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SessionContext:
    """State the tool handlers may read during a turn.

    Attributes:
        visit: The visit snapshot supplied by the caller, if any.
    """

    visit: VisitContext | None = None

    @property
    def visit_id(self) -> str | None:
        return self.visit.visit_id if self.visit else None

    @property
    def notes(self) -> list[VisitNote]:
        return list(self.visit.notes) if self.visit else []


@dataclass
class TurnInput:
    """Everything the kiosk sends for one visitor turn.

    Attributes:
        messages: Conversation so far, including the newest visitor message.
        system_prompt: Base system prompt (the agent OS content).
        emotional_context: Voice-derived emotion readings, if voice was used.
        visit: Visit snapshot, if the visitor checked in.
    """

    messages: list[dict[str, Any]]
    system_prompt: str
    emotional_context: EmotionalContext | None = None
    visit: VisitContext | None = None
