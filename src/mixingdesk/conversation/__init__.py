"""
Mixing Desk Conversation Package.

Implements the agentic tool-calling loop behind the kiosk's chat endpoint:
prompt augmentation, the bounded tool-use driver, the tool executor and
capability set, and the response assembler.
"""

from mixingdesk.conversation.agent import MixingDeskAgent, TurnOutcome
from mixingdesk.conversation.capabilities import build_tool_registry, list_capabilities
from mixingdesk.conversation.context import (
    DetectedEmotion,
    EmotionalContext,
    EmotionalDelivery,
    SessionContext,
    TurnInput,
    VisitContext,
    VisitNote,
)
from mixingdesk.conversation.loop import (
    AgenticLoop,
    EmptyConversationError,
    LoopResult,
    LoopState,
)
from mixingdesk.conversation.prompts import augment
from mixingdesk.conversation.providers import (
    AnthropicProvider,
    CompletionResult,
    LLMProvider,
    OpenAICompatibleProvider,
    ToolCall,
    ToolDefinition,
)
from mixingdesk.conversation.response import assemble

__all__ = [
    "AgenticLoop",
    "AnthropicProvider",
    "CompletionResult",
    "DetectedEmotion",
    "EmotionalContext",
    "EmotionalDelivery",
    "EmptyConversationError",
    "LLMProvider",
    "LoopResult",
    "LoopState",
    "MixingDeskAgent",
    "OpenAICompatibleProvider",
    "SessionContext",
    "ToolCall",
    "ToolDefinition",
    "TurnInput",
    "TurnOutcome",
    "VisitContext",
    "VisitNote",
    "assemble",
    "augment",
    "build_tool_registry",
    "list_capabilities",
]
