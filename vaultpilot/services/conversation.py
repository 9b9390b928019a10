"""Conversation service: runs the chat engine for HTTP sessions."""

import json
from dataclasses import dataclass, field

import httpx

from vaultpilot.clients.copilot import CopilotClient, CopilotConfig, get_copilot_client
from vaultpilot.config import Settings, load_settings
from vaultpilot.exceptions import CompletionError, NotAuthenticatedError
from vaultpilot.models.auth import AVAILABLE_MODELS, ModelOption
from vaultpilot.models.messages import ConversationMessage, ToolCallOutcome
from vaultpilot.models.session import Session
from vaultpilot.services.auth_store import AuthStore, get_auth_store
from vaultpilot.services.engine import ChatEngine, EngineCallbacks, EngineOptions
from vaultpilot.services.vault import FileSystemVault
from vaultpilot.tools import ToolsRegistry
from vaultpilot.utils.logging import get_logger

logger = get_logger(__name__)

MAX_MESSAGE_CHARS = 16_000
NO_RESPONSE_TEXT = "I apologize, but I couldn't produce a response."


@dataclass
class ConversationResult:
    """What one processed user message produced."""

    messages: list[ConversationMessage]
    response: str
    errors: list[str] = field(default_factory=list)
    tool_outcomes: list[ToolCallOutcome] = field(default_factory=list)


def final_response_text(messages: list[ConversationMessage]) -> str:
    """Content of the last assistant message that has any."""
    for message in reversed(messages):
        if message.role == "assistant" and message.content:
            return message.content
    return NO_RESPONSE_TEXT


class ConversationService:
    """Service for handling conversational AI interactions over a vault."""

    def __init__(
        self,
        settings: Settings,
        engine: ChatEngine,
        vault: FileSystemVault,
        auth_store: AuthStore,
        copilot: CopilotClient,
    ):
        self.settings = settings
        self.engine = engine
        self.vault = vault
        self.auth_store = auth_store
        self.copilot = copilot

        logger.info(
            f"ConversationService initialized with vault {vault.root}, model {settings.model.value}, "
            f"tools {'enabled' if settings.enable_tools else 'disabled'}"
        )

    def _validate_message(self, message: str) -> None:
        """Raise ValueError for empty or oversized messages."""
        if not message.strip():
            raise ValueError("Message must not be empty.")
        if len(message) > MAX_MESSAGE_CHARS:
            raise ValueError(f"Your message is too long. Please keep messages under {MAX_MESSAGE_CHARS} characters.")

    async def process_message(
        self, message: str, session: Session, active_file: str | None = None
    ) -> ConversationResult:
        """Process a user message and return what the run produced.

        Runs on the same session are serialized by the session lock.

        Raises:
            ValueError: If the message is empty or too long
        """
        self._validate_message(message)

        errors: list[str] = []
        outcomes: dict[str, ToolCallOutcome] = {}

        def on_error(description: str) -> None:
            logger.warning(f"Run failed for session {session.session_id}: {description}")
            errors.append(description)

        def on_tool_call(outcome: ToolCallOutcome) -> None:
            if outcome.is_terminal:
                logger.info(f"Tool {outcome.tool_name} [{outcome.tool_call_id}] {outcome.status}")
            else:
                logger.debug(f"Tool {outcome.tool_name} [{outcome.tool_call_id}] {outcome.status}")
            outcomes[outcome.tool_call_id] = outcome

        callbacks = EngineCallbacks(
            on_error=on_error,
            on_tool_call=on_tool_call,
            on_auth_update=self.auth_store.apply_update,
        )

        async with session.run_lock:
            if active_file is not None:
                self.vault.set_active_file(active_file)

            cancel_event = session.begin_run()
            logger.info(f"Processing message for session {session.session_id} {json.dumps(session.as_dict())}")

            new_messages = await self.engine.run(
                list(session.history),
                message,
                EngineOptions(
                    auth_state=self.auth_store.state,
                    model=self.settings.model,
                    system_prompt=self.settings.system_prompt,
                    max_iterations=self.settings.max_iterations,
                    enable_tools=self.settings.enable_tools,
                    callbacks=callbacks,
                    cancel_event=cancel_event,
                ),
            )
            session.append_messages(new_messages)

        return ConversationResult(
            messages=new_messages,
            response=final_response_text(new_messages),
            errors=errors,
            tool_outcomes=list(outcomes.values()),
        )

    def cancel(self, session: Session) -> bool:
        """Cancel the session's in-flight run, if any."""
        return session.cancel_run()

    async def fetch_available_models(self) -> list[ModelOption]:
        """List chat models from Copilot, or the built-in list when that is not possible."""
        try:
            token = await self.engine.token_provider.ensure_valid_token(
                self.auth_store.state, self.auth_store.apply_update
            )
            return await self.copilot.fetch_models(token)
        except (NotAuthenticatedError, CompletionError, httpx.HTTPError) as e:
            logger.info(f"Using built-in model list: {e}")
            return list(AVAILABLE_MODELS)


_conversation_service: ConversationService | None = None


def get_conversation_service() -> ConversationService:
    """Get or create the conversation service from environment settings."""
    global _conversation_service
    if _conversation_service is None:
        settings = load_settings()
        auth_store = get_auth_store()
        copilot = get_copilot_client(CopilotConfig(requests_per_minute=settings.requests_per_minute))
        vault = FileSystemVault(settings.vault_path)
        engine = ChatEngine(copilot, auth_store.auth_client, ToolsRegistry(vault))
        _conversation_service = ConversationService(settings, engine, vault, auth_store, copilot)
    return _conversation_service
