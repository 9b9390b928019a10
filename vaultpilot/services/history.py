"""Assembly of conversation history into chat completion messages."""

from collections.abc import Iterable

from vaultpilot.models.messages import ChatMessage, ConversationMessage
from vaultpilot.utils.logging import get_logger

logger = get_logger(__name__)

VAULT_SYSTEM_INSTRUCTIONS = """You are a helpful AI assistant embedded in Obsidian, a note-taking application. \
You have access to vault tools that let you read, write, edit, search, and manage files in the user's vault.

IMPORTANT RULES:
1. When the user asks you to create files, examples, or templates - you MUST use the vault tools \
(vault_write_file, vault_create_folder, etc.) to actually create them. Do NOT just describe what to do - \
actually do it by calling the tools.
2. Always read a file before editing it to understand its current content.
3. Use vault_edit_file for targeted edits and vault_write_file for creating new files or completely replacing content.
4. When a task requires creating multiple files, create ALL of them using tool calls. \
Do not stop after describing what you plan to do.
5. For complex tasks that require many files, create them one by one using multiple tool calls in sequence.
6. After creating/modifying files, confirm what you did with a summary.
7. The vault uses Markdown files (.md) with possible YAML frontmatter, wiki-links ([[link]]), \
and other Obsidian-specific syntax.
8. Obsidian .canvas files use JSON format. When creating canvas files, use proper JSON structure.
9. If you want to create an example or template, always use tool calls to create the actual files - \
never just show the content in chat."""


def to_chat_message(message: ConversationMessage) -> ChatMessage | None:
    """Translate one conversation message, or return None when it cannot be sent."""
    if message.role in ("user", "assistant"):
        if message.tool_calls:
            # A turn that only issues tool calls sends null content, not an empty string.
            return ChatMessage(role=message.role, content=message.content or None, tool_calls=message.tool_calls)
        return ChatMessage(role=message.role, content=message.content)

    if message.role == "tool" and message.tool_call_id:
        return ChatMessage(role="tool", content=message.content, tool_call_id=message.tool_call_id)

    logger.debug(f"Skipping message {message.id} with role {message.role} and no tool call id")
    return None


def build_api_messages(
    system_prompt: str,
    history: Iterable[ConversationMessage],
    new_messages: Iterable[ConversationMessage],
) -> list[ChatMessage]:
    """Linearize the system instructions, prior history and this run's messages.

    The operator's custom prompt (when non-empty) comes first, followed by the
    built-in vault instructions, then history and new messages in order.
    """
    messages: list[ChatMessage] = []
    if system_prompt:
        messages.append(ChatMessage(role="system", content=system_prompt))
    messages.append(ChatMessage(role="system", content=VAULT_SYSTEM_INSTRUCTIONS))

    for message in (*history, *new_messages):
        chat_message = to_chat_message(message)
        if chat_message is not None:
            messages.append(chat_message)

    return messages
