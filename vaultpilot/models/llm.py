"""Chat completion request/response types (OpenAI-compatible wire format)."""

from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel

from vaultpilot.models.messages import ChatMessage, ToolCall

CONTINUE_FINISH_REASONS: frozenset[str] = frozenset({"tool_calls", "function_call"})


class FunctionDefinition(BaseModel):
    """Function declaration advertised to the model."""

    name: str
    description: str
    parameters: dict[str, Any]


class ToolDeclaration(BaseModel):
    """Tool declaration in OpenAI function-calling format."""

    type: Literal["function"] = "function"
    function: FunctionDefinition


class ChatCompletionRequest(BaseModel):
    """Body of a chat completion request."""

    intent: bool = False
    model: str
    temperature: float = 0
    top_p: float = 1
    n: int = 1
    stream: bool = True
    messages: list[ChatMessage]
    tools: list[ToolDeclaration] | None = None

    def to_payload(self) -> dict[str, Any]:
        """Serialize the request; tools and tool_choice are only sent when tools are present."""
        payload: dict[str, Any] = {
            "intent": self.intent,
            "model": self.model,
            "temperature": self.temperature,
            "top_p": self.top_p,
            "n": self.n,
            "stream": self.stream,
            "messages": [message.to_payload() for message in self.messages],
        }
        if self.tools:
            payload["tools"] = [tool.model_dump() for tool in self.tools]
            payload["tool_choice"] = "auto"
        return payload


@dataclass
class CompletionResult:
    """Fully accumulated result of one completion round."""

    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: str = "stop"

    @property
    def wants_more(self) -> bool:
        """Whether the model asked for another round after its tool calls."""
        return self.finish_reason in CONTINUE_FINISH_REASONS
