"""Agentic chat engine: completion rounds interleaved with vault tool execution."""

import asyncio
import json
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from vaultpilot.exceptions import RequestAbortedError
from vaultpilot.models.auth import AuthState, ModelOption
from vaultpilot.models.llm import CompletionResult, ToolDeclaration
from vaultpilot.models.messages import ChatMessage, ConversationMessage, ToolCall, ToolCallOutcome
from vaultpilot.services.history import build_api_messages
from vaultpilot.utils.logging import get_logger

logger = get_logger(__name__)


class CompletionTransport(Protocol):
    """Interface for chat completion backends."""

    async def create_completion(
        self,
        token: str,
        model: ModelOption,
        messages: list[ChatMessage],
        tools: list[ToolDeclaration] | None = None,
        on_content: Callable[[str], None] | None = None,
        on_tool_call: Callable[[ToolCall], None] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> CompletionResult: ...


class TokenProvider(Protocol):
    """Interface for obtaining a valid bearer token."""

    async def ensure_valid_token(
        self, auth_state: AuthState, on_update: Callable[[dict[str, Any]], None]
    ) -> str: ...


class ToolExecutor(Protocol):
    """Interface for dispatching tool calls."""

    def get_tool_declarations(self) -> list[ToolDeclaration]: ...

    async def execute(self, name: str, args: dict[str, Any]) -> str: ...


def _noop(*_args: Any) -> None:
    return None


@dataclass
class EngineCallbacks:
    """Notifications emitted while a run progresses. Return values are ignored."""

    on_message: Callable[[list[ConversationMessage]], None] = _noop
    on_content_delta: Callable[[str], None] = _noop
    on_tool_call: Callable[[ToolCallOutcome], None] = _noop
    on_error: Callable[[str], None] = _noop
    on_debug: Callable[[str], None] = _noop
    on_auth_update: Callable[[dict[str, Any]], None] = _noop


@dataclass
class EngineOptions:
    """Per-run configuration."""

    auth_state: AuthState
    model: ModelOption
    system_prompt: str = ""
    max_iterations: int = 5
    enable_tools: bool = True
    callbacks: EngineCallbacks = field(default_factory=EngineCallbacks)
    cancel_event: asyncio.Event | None = None


@dataclass
class EngineRunState:
    """Mutable state owned by a single run."""

    new_messages: list[ConversationMessage] = field(default_factory=list)
    iteration: int = 0
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    rounds: int = 0

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()


class ArgumentParseError(ValueError):
    """Tool-call argument text is not a JSON object."""


def parse_tool_arguments(raw: str) -> dict[str, Any]:
    """Parse tool-call argument text; an empty payload means no arguments."""
    try:
        parsed = json.loads(raw or "{}")
    except json.JSONDecodeError as e:
        raise ArgumentParseError(str(e)) from e
    if not isinstance(parsed, dict):
        raise ArgumentParseError(f"expected a JSON object, got {type(parsed).__name__}")
    return parsed


def _describe(error: BaseException) -> str:
    return str(error) or type(error).__name__


class ChatEngine:
    """Runs the request / tool-execution loop for one user message at a time."""

    def __init__(self, transport: CompletionTransport, token_provider: TokenProvider, tools: ToolExecutor):
        """Initialize the engine.

        Args:
            transport: Completion backend
            token_provider: Source of Copilot bearer tokens
            tools: Tool registry used for declarations and dispatch
        """
        self.transport = transport
        self.token_provider = token_provider
        self.tools = tools

    async def run(
        self, history: list[ConversationMessage], user_message: str, options: EngineOptions
    ) -> list[ConversationMessage]:
        """Process one user message.

        Rounds continue while the model requests tools with a continuation
        finish reason, up to ``options.max_iterations`` rounds, or until
        cancellation. Tool failures become tool messages; authentication and
        transport failures end the run with an assistant error message.

        Args:
            history: Prior conversation, not modified
            user_message: New user text
            options: Model, auth, limits, callbacks and cancellation signal

        Returns:
            The messages produced by this run, starting with the user message
        """
        callbacks = options.callbacks
        state = EngineRunState(cancel_event=options.cancel_event or asyncio.Event())

        def debug(message: str) -> None:
            logger.debug(message)
            callbacks.on_debug(message)

        def publish() -> None:
            callbacks.on_message(list(state.new_messages))

        state.new_messages.append(ConversationMessage(role="user", content=user_message))
        publish()

        tool_declarations = self.tools.get_tool_declarations() if options.enable_tools else None

        while state.iteration < options.max_iterations:
            if state.cancelled:
                debug(f"[Engine] Aborted at iteration {state.iteration}")
                break

            debug(f"[Engine] Iteration {state.iteration + 1}/{options.max_iterations}, model={options.model.value}")

            try:
                token = await self.token_provider.ensure_valid_token(options.auth_state, callbacks.on_auth_update)

                api_messages = build_api_messages(options.system_prompt, history, state.new_messages)
                debug(
                    f"[Engine] Sending {len(api_messages)} messages, "
                    f"tools={len(tool_declarations) if tool_declarations else 0}"
                )

                result = await self.transport.create_completion(
                    token,
                    options.model,
                    api_messages,
                    tool_declarations,
                    on_content=callbacks.on_content_delta,
                    on_tool_call=lambda tc: debug(f"[Engine] Tool call received: {tc.name}"),
                    cancel_event=state.cancel_event,
                )
                state.rounds += 1

                assistant_message = ConversationMessage(
                    role="assistant",
                    content=result.content,
                    tool_calls=result.tool_calls,
                )
                state.new_messages.append(assistant_message)
                publish()

                debug(
                    f"[Engine] Assistant message: content={len(result.content)} chars, "
                    f"toolCalls={len(result.tool_calls)}, finishReason={result.finish_reason}"
                )

                if not result.tool_calls:
                    debug("[Engine] No tool calls, ending")
                    break

                debug(f"[Engine] Executing {len(result.tool_calls)} tool call(s)")
                await self._execute_tool_calls(result.tool_calls, assistant_message, state, callbacks, debug)
                publish()

                if state.cancelled:
                    debug("[Engine] Aborted after tool execution")
                    break

                if not result.wants_more:
                    debug(f"[Engine] finish_reason={result.finish_reason}, not continuing loop")
                    break

                debug("[Engine] Continuing to next iteration...")
                state.iteration += 1

            except Exception as e:
                if state.cancelled or isinstance(e, RequestAbortedError):
                    debug("[Engine] Request aborted")
                    break

                error_message = _describe(e)
                logger.error(f"Chat engine run failed: {error_message}", exc_info=True)
                callbacks.on_error(error_message)
                debug(f"[Engine] Error: {error_message}")

                state.new_messages.append(ConversationMessage(role="assistant", content=f"Error: {error_message}"))
                publish()
                break
        else:
            debug(f"[Engine] Reached max iterations ({options.max_iterations})")

        debug(f"[Engine] Finished after {state.rounds} round(s). Total new messages: {len(state.new_messages)}")
        return state.new_messages

    async def _execute_tool_calls(
        self,
        tool_calls: list[ToolCall],
        assistant_message: ConversationMessage,
        state: EngineRunState,
        callbacks: EngineCallbacks,
        debug: Callable[[str], None],
    ) -> None:
        """Execute one round's tool calls strictly in order."""

        def report(outcome: ToolCallOutcome) -> None:
            callbacks.on_tool_call(outcome.model_copy(deep=True))

        for tool_call in tool_calls:
            if state.cancelled:
                debug("[Engine] Cancelled before tool dispatch, skipping remaining tool calls")
                break

            try:
                args = parse_tool_arguments(tool_call.arguments)
            except ArgumentParseError:
                debug(f"[Engine] Failed to parse tool args: {tool_call.arguments}")
                outcome = ToolCallOutcome(
                    tool_call_id=tool_call.id,
                    tool_name=tool_call.name,
                    status="error",
                    error=f"Failed to parse arguments: {tool_call.arguments}",
                )
                assistant_message.tool_results.append(outcome)
                state.new_messages.append(
                    ConversationMessage(
                        role="tool",
                        content=f"Error: Failed to parse arguments: {tool_call.arguments}",
                        tool_call_id=tool_call.id,
                    )
                )
                report(outcome)
                continue

            outcome = ToolCallOutcome(
                tool_call_id=tool_call.id,
                tool_name=tool_call.name,
                args=args,
                status="running",
            )
            assistant_message.tool_results.append(outcome)
            report(outcome)

            try:
                debug(f"[Engine] Executing: {tool_call.name}({json.dumps(args)[:200]})")
                result = await self.tools.execute(tool_call.name, args)
            except Exception as e:
                error_message = _describe(e)
                outcome.status = "error"
                outcome.error = error_message
                report(outcome)
                debug(f"[Engine] Tool error: {error_message}")
                state.new_messages.append(
                    ConversationMessage(role="tool", content=f"Error: {error_message}", tool_call_id=tool_call.id)
                )
                continue

            outcome.status = "success"
            outcome.result = result
            report(outcome)
            debug(f"[Engine] Tool success: {result[:100]}")
            state.new_messages.append(ConversationMessage(role="tool", content=result, tool_call_id=tool_call.id))
