"""
Tool registry for the Mixing Desk agentic loop.

Provides ``ToolRegistry``, a dispatch table mapping capability names to their
definitions and async handlers, and builds the executor callable the
``AgenticLoop`` uses to run tool invocations.

Typical usage::

    from mixingdesk.conversation.tools.registry import ToolRegistry
    from mixingdesk.conversation.tools.display import DisplayContentTool

    registry = ToolRegistry()
    registry.register(DisplayContentTool.TOOL_DEFINITION, DisplayContentTool().as_dispatcher_entry())

    execute = registry.build_executor(timeout=10.0)
    result = await execute("display-content", {"content": "Hi"}, SessionContext())
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from mixingdesk.conversation.context import SessionContext
from mixingdesk.conversation.providers import ToolDefinition

logger = logging.getLogger(__name__)

# Type alias for a single tool handler: async (args, context) -> payload dict
AsyncToolHandler = Callable[[dict[str, Any], SessionContext], Awaitable[dict[str, Any]]]


class ToolError(Exception):
    """Raised by a handler to report a failure with a specific message."""


@dataclass
class ToolExecutionResult:
    """Uniform outcome of one tool invocation.

    Attributes:
        tool_name: The tool that was invoked.
        success: Whether the handler completed.
        payload: Handler output on success.
        error_message: Failure description when ``success`` is ``False``.
    """

    tool_name: str
    success: bool
    payload: dict[str, Any] = field(default_factory=dict)
    error_message: str | None = None

    @classmethod
    def ok(cls, tool_name: str, payload: dict[str, Any]) -> ToolExecutionResult:
        return cls(tool_name=tool_name, success=True, payload=payload)

    @classmethod
    def failure(cls, tool_name: str, message: str) -> ToolExecutionResult:
        return cls(tool_name=tool_name, success=False, error_message=message)

    def to_llm_content(self) -> str:
        """JSON body sent back to the model in the tool-result turn."""
        if self.success:
            return json.dumps({"success": True, **self.payload}, default=str)
        return json.dumps({"success": False, "error": self.error_message})


# Async callable (name, args, context) -> ToolExecutionResult
ToolExecutor = Callable[
    [str, dict[str, Any], SessionContext], Awaitable[ToolExecutionResult]
]


class ToolRegistry:
    """Registry mapping tool names to their definitions and async handlers.

    Use ``get_definitions()`` to obtain the ordered list of ``ToolDefinition``
    objects sent with every LLM call, and ``build_executor()`` to produce the
    executor callable for ``AgenticLoop``.
    """

    def __init__(self) -> None:
        self._tools: dict[str, tuple[ToolDefinition, AsyncToolHandler]] = {}

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self,
        definition: ToolDefinition,
        handler: AsyncToolHandler,
    ) -> None:
        """Register a tool with its async handler.

        Raises:
            ValueError: If a tool with the same name is already registered.
        """
        if definition.name in self._tools:
            raise ValueError(
                f"Tool {definition.name!r} is already registered. "
                "Deregister it first before re-registering."
            )
        self._tools[definition.name] = (definition, handler)
        logger.debug("Registered tool: %r", definition.name)

    def deregister(self, name: str) -> None:
        """Remove a registered tool by name.

        Raises:
            KeyError: If the tool is not registered.
        """
        if name not in self._tools:
            raise KeyError(f"Tool {name!r} is not registered.")
        del self._tools[name]
        logger.debug("Deregistered tool: %r", name)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_definitions(self) -> list[ToolDefinition]:
        """Return all registered ``ToolDefinition`` objects (insertion order)."""
        return [defn for defn, _handler in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    # ------------------------------------------------------------------
    # Executor factory
    # ------------------------------------------------------------------

    def build_executor(
        self,
        timeout: float | None = 30.0,
        max_retries: int = 0,
        retry_exceptions: tuple[type[BaseException], ...] = (asyncio.TimeoutError,),
    ) -> ToolExecutor:
        """Build an async executor compatible with ``AgenticLoop.tool_executor``.

        The returned callable wraps each tool invocation with:

        - **Timeout**: ``asyncio.wait_for(handler(...), timeout=timeout)``
          if *timeout* is set.
        - **Retry**: re-attempts the call up to *max_retries* additional times
          when the exception is an instance of *retry_exceptions*.
        - **Containment**: any exception left after retries becomes a
          ``success=False`` result. The executor itself never raises for a
          handler failure or an unknown tool name.

        Args:
            timeout: Maximum seconds per tool call. ``None`` disables the timeout.
            max_retries: Number of *additional* attempts on retryable failures.
            retry_exceptions: Exception types that trigger a retry.

        Returns:
            An async callable ``(name, args, context) -> ToolExecutionResult``.
        """
        # Snapshot the registry at build time; later registrations are not
        # reflected in this executor.
        registry_snapshot = dict(self._tools)
        total_attempts = max_retries + 1

        async def _execute(
            name: str, args: dict[str, Any], context: SessionContext
        ) -> ToolExecutionResult:
            entry = registry_snapshot.get(name)
            if entry is None:
                logger.warning("Unknown tool requested: %r", name)
                return ToolExecutionResult.failure(name, f"Unknown tool: {name}")

            _definition, handler = entry

            for attempt in range(1, total_attempts + 1):
                try:
                    if timeout is not None:
                        payload = await asyncio.wait_for(
                            handler(args, context), timeout=timeout
                        )
                    else:
                        payload = await handler(args, context)
                    return ToolExecutionResult.ok(name, payload)
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    is_retryable = retry_exceptions and isinstance(exc, retry_exceptions)
                    if is_retryable and attempt < total_attempts:
                        logger.warning(
                            "Tool %r attempt %d/%d failed (%s: %s); retrying",
                            name,
                            attempt,
                            total_attempts,
                            type(exc).__name__,
                            exc,
                        )
                        continue
                    if isinstance(exc, asyncio.TimeoutError):
                        message = f"Tool {name} timed out after {timeout}s"
                    else:
                        message = str(exc) or type(exc).__name__
                    if isinstance(exc, ToolError):
                        logger.warning("Tool %r reported failure: %s", name, message)
                    else:
                        logger.error("Tool %r failed: %s", name, exc, exc_info=True)
                    return ToolExecutionResult.failure(name, message)

            # Unreachable, but keeps type checkers happy.
            raise RuntimeError("build_executor: retry loop exited unexpectedly")  # pragma: no cover

        return _execute
