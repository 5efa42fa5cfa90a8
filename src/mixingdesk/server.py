"""
HTTP server for the Mixing Desk agent.

Exposes the agent to the kiosk frontend over a small REST API.

Endpoints
---------
POST   /api/agent/chat     Process one visitor turn through the agentic loop.
POST   /api/agent/init     Load an agent OS (system prompt) by name.
GET    /health             Health / readiness check.

Any other method on the POST routes returns 405. Error bodies always have the
shape ``{"error": <kind>, "details": <human-readable text>}``.

Usage (standalone)::

    from mixingdesk.server import create_app
    import uvicorn

    app = create_app()
    uvicorn.run(app, host="0.0.0.0", port=8000)
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from mixingdesk.config import Settings, get_settings
from mixingdesk.conversation.agent import MixingDeskAgent
from mixingdesk.conversation.capabilities import list_capabilities
from mixingdesk.conversation.context import (
    DetectedEmotion,
    EmotionalContext,
    TurnInput,
    VisitContext,
    VisitNote,
)
from mixingdesk.conversation.loop import EmptyConversationError
from mixingdesk.conversation.providers import LLMError
from mixingdesk.storage.base import ContentStore, ContentStoreError
from mixingdesk.storage.supabase import SupabaseContentStore
from mixingdesk.visits import apply_visit_actions

logger = logging.getLogger(__name__)

VALIDATION_ERROR = "Validation error"
CONFIGURATION_ERROR = "Server configuration error"
INTERNAL_ERROR = "Internal server error"
NOT_FOUND_ERROR = "Agent OS not found"


class ServiceConfigurationError(Exception):
    """Raised when a collaborator's credentials are missing."""


# ---------------------------------------------------------------------------
# Request / response schemas
# ---------------------------------------------------------------------------


class DetectedEmotionModel(BaseModel):
    label: str
    score: float = Field(..., ge=0.0, le=1.0)


class EmotionalContextModel(BaseModel):
    """Voice-derived emotion readings for the visitor's turn."""

    primary_emotion: DetectedEmotionModel
    secondary_emotion: DetectedEmotionModel | None = None
    pace: Literal["slow", "normal", "fast"] = "normal"
    tone: Literal["hesitant", "neutral", "engaged", "excited"] = "neutral"

    def to_context(self) -> EmotionalContext:
        secondary = self.secondary_emotion
        return EmotionalContext(
            primary_emotion=DetectedEmotion(**self.primary_emotion.model_dump()),
            secondary_emotion=DetectedEmotion(**secondary.model_dump()) if secondary else None,
            pace=self.pace,
            tone=self.tone,
        )


class VisitNoteModel(BaseModel):
    timestamp: str
    source: Literal["checkin", "agent", "vws", "checkout"]
    content: str


class ChatMessageModel(BaseModel):
    role: Literal["user", "visitor", "assistant"]
    content: str | list[dict[str, Any]] | None = None


class ChatRequest(BaseModel):
    """Body for POST /api/agent/chat."""

    model_config = ConfigDict(populate_by_name=True)

    messages: list[ChatMessageModel] = Field(
        ..., description="Transcript so far, ending with the visitor's new message."
    )
    system_prompt: str = Field(..., alias="systemPrompt", min_length=1)
    emotional_context: EmotionalContextModel | None = Field(
        default=None, alias="emotionalContext"
    )
    visit_id: str | None = Field(default=None, alias="visitId")
    visit_notes: list[VisitNoteModel] = Field(default_factory=list, alias="visitNotes")

    def to_turn_input(self) -> TurnInput:
        visit = None
        if self.visit_id:
            visit = VisitContext(
                visit_id=self.visit_id,
                notes=tuple(VisitNote(**n.model_dump()) for n in self.visit_notes),
            )
        return TurnInput(
            messages=[m.model_dump() for m in self.messages],
            system_prompt=self.system_prompt,
            emotional_context=(
                self.emotional_context.to_context() if self.emotional_context else None
            ),
            visit=visit,
        )


class InitRequest(BaseModel):
    """Body for POST /api/agent/init."""

    agent_name: str = Field(..., min_length=1)


def _error(status_code: int, error: str, details: str | None = None) -> JSONResponse:
    body: dict[str, Any] = {"error": error}
    if details is not None:
        body["details"] = details
    return JSONResponse(status_code=status_code, content=body)


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(
    settings: Settings | None = None,
    agent: MixingDeskAgent | None = None,
    store: ContentStore | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Collaborators that are not passed in are built lazily from *settings* on
    first use, so a missing credential surfaces as a 500 configuration error
    on the request that needs it rather than at startup.

    Args:
        settings: Service configuration. Defaults to ``get_settings()``.
        agent: A pre-built agent (tests inject one with a mocked provider).
        store: A pre-built content store.

    Returns:
        A configured ``FastAPI`` application, usable in tests via
        ``httpx.AsyncClient(transport=ASGITransport(app=app))``.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Mixing Desk Agent API",
        description=(
            "Conversation endpoint for the Mixing Desk kiosk: runs the visitor's "
            "turn through the tool-using agent and returns the reply, the "
            "turntable tool results, and the chosen emotional delivery."
        ),
        version="0.1.0",
    )
    app.state.settings = settings
    app.state.agent = agent
    app.state.store = store

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    def get_store() -> ContentStore:
        if app.state.store is None:
            errors = settings.store_configuration_errors()
            if errors:
                raise ServiceConfigurationError("; ".join(errors))
            app.state.store = SupabaseContentStore(
                url=settings.supabase_url,
                anon_key=settings.supabase_anon_key,
                image_bucket=settings.image_bucket,
                timeout=settings.store_timeout,
            )
        return app.state.store

    def get_agent() -> MixingDeskAgent:
        if app.state.agent is None:
            errors = settings.configuration_errors()
            if errors:
                raise ServiceConfigurationError("; ".join(errors))
            app.state.agent = MixingDeskAgent.from_settings(settings, get_store())
        return app.state.agent

    # ------------------------------------------------------------------
    # Error handlers
    # ------------------------------------------------------------------

    @app.exception_handler(ServiceConfigurationError)
    async def configuration_error_handler(
        request: Request, exc: ServiceConfigurationError
    ) -> JSONResponse:
        logger.error("Configuration error on %s: %s", request.url.path, exc)
        return _error(500, CONFIGURATION_ERROR, str(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        problems = []
        for err in exc.errors():
            location = ".".join(str(part) for part in err.get("loc", ())[1:])
            problems.append(f"{location}: {err.get('msg')}" if location else err.get("msg"))
        logger.info("Rejected %s: %s", request.url.path, problems)
        return _error(400, VALIDATION_ERROR, "; ".join(problems))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    @app.get("/health")
    async def health() -> dict[str, Any]:
        """Return server health and the advertised tools."""
        tools = app.state.agent.tools if app.state.agent else list_capabilities()
        return {
            "status": "ok",
            "llm_provider": settings.llm_provider,
            "tools": [t.name for t in tools],
        }

    @app.post("/api/agent/chat")
    async def chat(
        body: ChatRequest, agent: MixingDeskAgent = Depends(get_agent)
    ) -> JSONResponse:
        """Process one visitor turn.

        Returns 200 ``{message, tool_results, emotional_delivery?}``, 400 when
        no non-empty message remains, or 500 on an upstream failure.
        """
        logger.info(
            "POST /api/agent/chat: messages=%d visit_id=%r voice=%s",
            len(body.messages),
            body.visit_id,
            body.emotional_context is not None,
        )

        try:
            outcome = await agent.async_process(body.to_turn_input())
        except EmptyConversationError as exc:
            return _error(400, VALIDATION_ERROR, str(exc))
        except LLMError as exc:
            return _error(500, INTERNAL_ERROR, str(exc))
        except Exception as exc:
            logger.error("Unexpected error in chat turn: %s", exc, exc_info=True)
            return _error(500, INTERNAL_ERROR, str(exc) or type(exc).__name__)

        if settings.apply_visit_actions and body.visit_id:
            try:
                visit_store = get_store()
            except ServiceConfigurationError as exc:
                logger.warning("Visit actions not applied: %s", exc)
            else:
                await apply_visit_actions(
                    body.visit_id, outcome.result.tool_trace, visit_store
                )

        return JSONResponse(status_code=200, content=outcome.payload)

    @app.post("/api/agent/init")
    async def init_agent(
        body: InitRequest, store: ContentStore = Depends(get_store)
    ) -> JSONResponse:
        """Load the active agent OS named ``agent_name``."""
        logger.info("POST /api/agent/init: agent_name=%r", body.agent_name)
        try:
            agent_os = await store.get_agent_os(body.agent_name)
        except ContentStoreError as exc:
            logger.error("Error loading agent OS %r: %s", body.agent_name, exc)
            return _error(500, INTERNAL_ERROR, str(exc))

        if agent_os is None:
            return _error(
                404, NOT_FOUND_ERROR, f"No active agent OS named {body.agent_name!r}"
            )
        return JSONResponse(status_code=200, content={"agentOS": agent_os})

    return app
