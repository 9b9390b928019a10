"""Decoding of streamed chat completions into events and accumulated results.

The Copilot endpoint streams Server-Sent Events whose ``data:`` lines carry
OpenAI-style chunks. A single tool call can arrive split across many chunks,
keyed by an ``index``; the accumulator below merges those fragments back into
complete tool calls.
"""

import asyncio
import json
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from typing import Any

from vaultpilot.exceptions import CompletionError, RequestAbortedError
from vaultpilot.models.llm import CompletionResult
from vaultpilot.models.messages import FunctionCall, ToolCall
from vaultpilot.utils.logging import get_logger

logger = get_logger(__name__)

SSE_DATA_PREFIX = "data: "
SSE_DONE_SENTINEL = "[DONE]"


@dataclass(frozen=True)
class ContentDelta:
    """A piece of assistant text."""

    text: str


@dataclass(frozen=True)
class ToolCallFragment:
    """A partial tool call; fragments sharing an index belong to the same call."""

    index: int
    id: str | None = None
    name: str | None = None
    arguments: str | None = None


@dataclass(frozen=True)
class StreamDone:
    """Terminal event carrying the finish reason."""

    finish_reason: str


StreamEvent = ContentDelta | ToolCallFragment | StreamDone


@dataclass
class _PartialToolCall:
    id: str = ""
    name: str = ""
    arguments: list[str] = field(default_factory=list)


class ToolCallAccumulator:
    """Merges tool-call fragments by index."""

    def __init__(self) -> None:
        self._partials: dict[int, _PartialToolCall] = {}

    def __len__(self) -> int:
        return len(self._partials)

    def add(self, fragment: ToolCallFragment) -> None:
        """Merge one fragment.

        Argument text is concatenated in arrival order; id and name are only
        overwritten by non-empty values.
        """
        partial = self._partials.setdefault(fragment.index, _PartialToolCall())
        if fragment.id:
            partial.id = fragment.id
        if fragment.name:
            partial.name = fragment.name
        if fragment.arguments:
            partial.arguments.append(fragment.arguments)

    def finalize(self) -> list[ToolCall]:
        """Return one tool call per index, ordered by index."""
        return [
            ToolCall(
                id=partial.id,
                function=FunctionCall(name=partial.name, arguments="".join(partial.arguments)),
            )
            for _, partial in sorted(self._partials.items())
        ]


class SSEDecoder:
    """Turns SSE lines into stream events and tracks the finish reason."""

    def __init__(self) -> None:
        self.finish_reason = "stop"
        self.chunks_seen = 0

    def feed(self, line: str) -> list[StreamEvent]:
        """Decode one line of the event stream.

        Blank lines, non-data lines, the ``[DONE]`` sentinel and malformed JSON
        chunks produce no events.
        """
        stripped = line.strip()
        if not stripped.startswith(SSE_DATA_PREFIX):
            return []

        data = stripped[len(SSE_DATA_PREFIX) :]
        if data == SSE_DONE_SENTINEL:
            return []

        try:
            chunk = json.loads(data)
        except json.JSONDecodeError:
            logger.debug(f"Skipping malformed stream chunk: {data[:200]}")
            return []

        if not isinstance(chunk, dict):
            logger.debug(f"Skipping non-object stream chunk: {data[:200]}")
            return []

        self.chunks_seen += 1
        return self._decode_chunk(chunk)

    def _decode_chunk(self, chunk: dict[str, Any]) -> list[StreamEvent]:
        choices = chunk.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return []

        choice = choices[0]
        if choice.get("finish_reason"):
            self.finish_reason = choice["finish_reason"]

        delta = choice.get("delta")
        if not isinstance(delta, dict):
            return []

        events: list[StreamEvent] = []
        if isinstance(delta.get("content"), str) and delta["content"]:
            events.append(ContentDelta(text=delta["content"]))

        raw_calls = delta.get("tool_calls") or []
        if not isinstance(raw_calls, list):
            logger.debug(f"Skipping tool_calls that is not a list: {raw_calls!r:.200}")
            return events

        for raw_call in raw_calls:
            if not isinstance(raw_call, dict):
                logger.debug(f"Skipping malformed tool call fragment: {raw_call!r:.200}")
                continue
            function = raw_call.get("function")
            if not isinstance(function, dict):
                function = {}
            index = raw_call.get("index")
            if not isinstance(index, int):
                index = None
            events.append(
                ToolCallFragment(
                    index=index if index is not None else 0,
                    id=raw_call.get("id"),
                    name=function.get("name"),
                    arguments=function.get("arguments"),
                )
            )
        return events


async def decode_sse_lines(lines: AsyncIterator[str]) -> AsyncIterator[StreamEvent]:
    """Decode an SSE line stream into events, ending with exactly one StreamDone."""
    decoder = SSEDecoder()
    async for line in lines:
        for event in decoder.feed(line):
            yield event

    if decoder.chunks_seen == 0:
        raise CompletionError("Malformed completion stream: no data chunks received")

    yield StreamDone(finish_reason=decoder.finish_reason)


async def collect_completion(
    events: AsyncIterator[StreamEvent],
    on_content: Callable[[str], None] | None = None,
    on_tool_call: Callable[[ToolCall], None] | None = None,
    cancel_event: asyncio.Event | None = None,
) -> CompletionResult:
    """Consume a stream of events into a CompletionResult.

    Raises:
        RequestAbortedError: If cancellation is signalled while consuming.
        CompletionError: If the stream ends without a StreamDone event.
    """
    content_parts: list[str] = []
    accumulator = ToolCallAccumulator()

    async for event in events:
        if cancel_event is not None and cancel_event.is_set():
            raise RequestAbortedError()

        if isinstance(event, ContentDelta):
            content_parts.append(event.text)
            if on_content:
                on_content(event.text)
        elif isinstance(event, ToolCallFragment):
            accumulator.add(event)
        elif isinstance(event, StreamDone):
            tool_calls = accumulator.finalize()
            if on_tool_call:
                for tool_call in tool_calls:
                    on_tool_call(tool_call)
            return CompletionResult(
                content="".join(content_parts),
                tool_calls=tool_calls,
                finish_reason=event.finish_reason,
            )

    raise CompletionError("Completion stream ended without a finish event")
