"""Message and conversation data models."""

from datetime import UTC, datetime
from typing import Any, Literal

from cuid2 import cuid_wrapper
from pydantic import BaseModel, Field

cuid = cuid_wrapper()

MessageRole = Literal["system", "user", "assistant", "tool"]
ToolCallStatus = Literal["pending", "running", "success", "error", "rejected"]

TERMINAL_TOOL_STATUSES: frozenset[str] = frozenset({"success", "error", "rejected"})


class FunctionCall(BaseModel):
    """Function name and raw JSON argument text requested by the model."""

    name: str
    arguments: str = ""


class ToolCall(BaseModel):
    """A tool call issued by the assistant, in OpenAI wire shape."""

    id: str
    type: Literal["function"] = "function"
    function: FunctionCall

    @property
    def name(self) -> str:
        return self.function.name

    @property
    def arguments(self) -> str:
        return self.function.arguments


class ToolCallOutcome(BaseModel):
    """Progress and result of executing one tool call."""

    tool_call_id: str
    tool_name: str
    args: dict[str, Any] = Field(default_factory=dict)
    status: ToolCallStatus = "pending"
    result: str | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_TOOL_STATUSES


class ConversationMessage(BaseModel):
    """A message in a conversation."""

    id: str = Field(default_factory=lambda: cuid())
    role: Literal["user", "assistant", "tool"]
    content: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    tool_calls: list[ToolCall] = Field(default_factory=list)
    tool_call_id: str | None = None
    tool_results: list[ToolCallOutcome] = Field(default_factory=list)


class ChatMessage(BaseModel):
    """A message as sent to the chat completion API."""

    role: MessageRole
    content: str | None
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Serialize for the request body, keeping ``content`` even when it is null."""
        payload: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            payload["tool_calls"] = [tool_call.model_dump() for tool_call in self.tool_calls]
        if self.tool_call_id is not None:
            payload["tool_call_id"] = self.tool_call_id
        return payload
