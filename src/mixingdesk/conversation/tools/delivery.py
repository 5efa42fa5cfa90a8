"""
Emotional delivery tool.

Lets the agent choose how its reply should sound. The result never reaches
the visitor-facing tool trace; the ``AgenticLoop`` captures it into a single
side-channel slot that the voice layer reads when synthesising speech.
"""

from __future__ import annotations

from typing import Any

from mixingdesk.conversation.context import (
    DEFAULT_INTENSITY,
    DEFAULT_PACING,
    DELIVERY_PACINGS,
    DELIVERY_TONES,
    EmotionalDelivery,
    SessionContext,
)
from mixingdesk.conversation.providers import ToolDefinition
from mixingdesk.conversation.tools.registry import AsyncToolHandler, ToolError

EMOTIONAL_DELIVERY_TOOL = "set-emotional-delivery"


class EmotionalDeliveryTool:
    """Builds an ``EmotionalDelivery`` from the model's arguments."""

    TOOL_DEFINITION: ToolDefinition = ToolDefinition(
        name=EMOTIONAL_DELIVERY_TOOL,
        description=(
            "Choose the emotional delivery of your spoken reply. Call this before "
            "responding when the visitor's emotional state suggests a particular "
            "tone of voice would help."
        ),
        parameters={
            "type": "object",
            "properties": {
                "tone": {
                    "type": "string",
                    "enum": list(DELIVERY_TONES),
                    "description": "The emotional tone of your voice.",
                },
                "intensity": {
                    "type": "number",
                    "description": (
                        "How strongly to express the tone, from 0.0 to 1.0. "
                        f"Defaults to {DEFAULT_INTENSITY}."
                    ),
                },
                "pacing": {
                    "type": "string",
                    "enum": list(DELIVERY_PACINGS),
                    "description": f"Speaking pace. Defaults to '{DEFAULT_PACING}'.",
                },
            },
            "required": ["tone"],
        },
    )

    def build(
        self,
        tone: str,
        intensity: float | None = None,
        pacing: str | None = None,
    ) -> EmotionalDelivery:
        """Construct a delivery, applying defaults and clamping intensity to [0, 1].

        Raises:
            ToolError: If *tone* or *pacing* is not one of the allowed values.
        """
        if tone not in DELIVERY_TONES:
            raise ToolError(
                f"Invalid tone {tone!r}; expected one of {', '.join(DELIVERY_TONES)}"
            )
        if pacing is None:
            pacing = DEFAULT_PACING
        elif pacing not in DELIVERY_PACINGS:
            raise ToolError(
                f"Invalid pacing {pacing!r}; expected one of {', '.join(DELIVERY_PACINGS)}"
            )

        if intensity is None:
            value = DEFAULT_INTENSITY
        else:
            try:
                value = float(intensity)
            except (TypeError, ValueError) as exc:
                raise ToolError(f"Invalid intensity {intensity!r}") from exc
            value = min(1.0, max(0.0, value))

        return EmotionalDelivery(tone=tone, intensity=value, pacing=pacing)

    def as_dispatcher_entry(self) -> AsyncToolHandler:
        async def _call(args: dict[str, Any], context: SessionContext) -> dict[str, Any]:
            delivery = self.build(
                tone=args.get("tone", ""),
                intensity=args.get("intensity"),
                pacing=args.get("pacing"),
            )
            return delivery.to_dict()

        return _call
