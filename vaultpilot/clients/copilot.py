"""GitHub Copilot chat completion client with rate limiting and error handling."""

import asyncio
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx
from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter

from vaultpilot.clients.stream import StreamEvent, collect_completion, decode_sse_lines
from vaultpilot.exceptions import CompletionError, RequestAbortedError
from vaultpilot.models.auth import ModelOption
from vaultpilot.models.llm import ChatCompletionRequest, CompletionResult, ToolDeclaration
from vaultpilot.models.messages import ChatMessage, ToolCall
from vaultpilot.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class CopilotConfig:
    """Configuration for the Copilot API client."""

    api_base: str = "https://api.githubcopilot.com"
    editor_version: str = "vscode/1.80.1"
    timeout: float = 120.0
    max_retries: int = 3
    retry_delay: float = 1.0
    max_retry_after: float = 120.0
    requests_per_minute: int = 60


class CopilotRateLimiter:
    """Client-side request rate limiter built on the limits library."""

    def __init__(self, requests_per_minute: int = 60):
        """Initialize rate limiter.

        Args:
            requests_per_minute: Maximum completion requests per minute
        """
        self.storage = MemoryStorage()
        self.limiter = MovingWindowRateLimiter(self.storage)
        self.request_limit = parse(f"{requests_per_minute}/minute")

    async def acquire(self, identifier: str = "copilot") -> None:
        """Wait until a request slot is available."""
        while not self.limiter.hit(self.request_limit, identifier):
            reset_time, _ = self.limiter.get_window_stats(self.request_limit, identifier)
            wait_time = max(0.05, reset_time - time.time())
            logger.warning(f"Request rate limit exceeded, waiting {wait_time:.2f}s")
            await asyncio.sleep(wait_time)


class CopilotClient:
    """Low-level Copilot API client: streamed completions and model listing."""

    def __init__(self, config: CopilotConfig | None = None, http_client: httpx.AsyncClient | None = None):
        """Initialize Copilot client.

        Args:
            config: Client configuration
            http_client: Preconfigured HTTP client (tests pass one with a mock transport)
        """
        self.config = config or CopilotConfig()
        self.http = http_client or httpx.AsyncClient(timeout=self.config.timeout)
        self.rate_limiter = CopilotRateLimiter(self.config.requests_per_minute)

    async def aclose(self) -> None:
        await self.http.aclose()

    def _headers(self, token: str, accept: str) -> dict[str, str]:
        return {
            "Accept": accept,
            "editor-version": self.config.editor_version,
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    async def create_completion(
        self,
        token: str,
        model: ModelOption,
        messages: list[ChatMessage],
        tools: list[ToolDeclaration] | None = None,
        on_content: Callable[[str], None] | None = None,
        on_tool_call: Callable[[ToolCall], None] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> CompletionResult:
        """Run one streamed completion and return the accumulated result.

        Args:
            token: Copilot bearer token
            model: Model to use
            messages: Assembled conversation
            tools: Tool declarations; omitted from the request when empty
            on_content: Called with every content fragment in generation order
            on_tool_call: Called with each finalized tool call
            cancel_event: Run cancellation signal

        Raises:
            RequestAbortedError: If cancellation is observed
            CompletionError: On network failure, bad status or a malformed stream
        """
        _raise_if_cancelled(cancel_event)
        async with aclosing(self.stream_events(token, model, messages, tools, cancel_event)) as events:
            return await collect_completion(events, on_content, on_tool_call, cancel_event)

    async def stream_events(
        self,
        token: str,
        model: ModelOption,
        messages: list[ChatMessage],
        tools: list[ToolDeclaration] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Yield stream events for one completion, ending with a StreamDone."""
        request = ChatCompletionRequest(model=model.value, messages=messages, tools=tools or None)
        payload = request.to_payload()

        logger.debug(
            f"Creating completion with {len(messages)} messages, {len(tools) if tools else 0} tools, "
            f"model: {model.value}"
        )
        response = await self._open_stream(payload, token, cancel_event)
        try:
            async for event in decode_sse_lines(_cancellable_lines(response.aiter_lines(), cancel_event)):
                yield event
        except httpx.TransportError as e:
            raise CompletionError(f"Completion stream interrupted: {e}") from e
        finally:
            await response.aclose()

    async def _open_stream(
        self, payload: dict[str, Any], token: str, cancel_event: asyncio.Event | None
    ) -> httpx.Response:
        """Send the completion request, retrying rate limits and server errors."""
        url = f"{self.config.api_base}/chat/completions"
        last_attempt = self.config.max_retries - 1

        for attempt in range(self.config.max_retries):
            _raise_if_cancelled(cancel_event)
            await self.rate_limiter.acquire()

            request = self.http.build_request(
                "POST", url, json=payload, headers=self._headers(token, "text/event-stream")
            )
            try:
                response = await _until_cancelled(self.http.send(request, stream=True), cancel_event)
            except httpx.TransportError as e:
                if attempt < last_attempt:
                    logger.warning(f"Completion request failed ({e}), retrying")
                    await _sleep(self.config.retry_delay * (2**attempt), cancel_event)
                    continue
                raise CompletionError(f"Completion request failed: {e}") from e

            if response.is_success:
                return response

            await response.aread()
            await response.aclose()
            status = response.status_code

            if status == 429 and attempt < last_attempt:
                retry_after = _retry_after(response)
                if retry_after < self.config.max_retry_after:
                    logger.warning(f"Rate limited by Copilot, retrying in {retry_after:.0f}s")
                    await _sleep(retry_after, cancel_event)
                    continue
            elif status >= 500 and attempt < last_attempt:
                # Server error, retry with exponential backoff
                await _sleep(self.config.retry_delay * (2**attempt), cancel_event)
                continue

            raise CompletionError(
                f"Completion request failed with status {status}: {response.text[:500]}",
                status_code=status,
            )

        raise CompletionError(f"Failed to complete request after {self.config.max_retries} attempts")

    async def fetch_models(self, token: str) -> list[ModelOption]:
        """List chat-capable models, sorted by label."""
        response = await self.http.get(
            f"{self.config.api_base}/models",
            headers=self._headers(token, "application/json"),
        )
        if not response.is_success:
            raise CompletionError(f"Model listing failed with status {response.status_code}", response.status_code)

        models = []
        for entry in response.json().get("data", []):
            capability_types = (entry.get("capabilities") or {}).get("type")
            if capability_types and "chat" not in capability_types:
                continue
            models.append(ModelOption(label=entry.get("name") or entry["id"], value=entry["id"]))

        return sorted(models, key=lambda m: m.label)


def _raise_if_cancelled(cancel_event: asyncio.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise RequestAbortedError()


async def _sleep(delay: float, cancel_event: asyncio.Event | None) -> None:
    """Sleep for a retry delay, waking early with RequestAbortedError on cancellation."""
    if cancel_event is None:
        await asyncio.sleep(delay)
        return
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=delay)
    except TimeoutError:
        return
    raise RequestAbortedError()


async def _until_cancelled(awaitable: Awaitable[T], cancel_event: asyncio.Event | None) -> T:
    """Await a network operation, abandoning it with RequestAbortedError on cancellation."""
    if cancel_event is None:
        return await awaitable

    operation = asyncio.ensure_future(awaitable)
    cancelled = asyncio.ensure_future(cancel_event.wait())
    try:
        await asyncio.wait({operation, cancelled}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        cancelled.cancel()
        if not operation.done():
            operation.cancel()

    if operation.done() and not operation.cancelled():
        return operation.result()

    await asyncio.gather(operation, return_exceptions=True)
    raise RequestAbortedError()


async def _next_line(lines: AsyncIterator[str]) -> str | None:
    try:
        return await anext(lines)
    except StopAsyncIteration:
        return None


async def _cancellable_lines(lines: AsyncIterator[str], cancel_event: asyncio.Event | None) -> AsyncIterator[str]:
    """Yield response lines, raising RequestAbortedError if cancelled while waiting for one."""
    while (line := await _until_cancelled(_next_line(lines), cancel_event)) is not None:
        yield line


def _retry_after(response: httpx.Response) -> float:
    try:
        return float(response.headers.get("retry-after", 60))
    except ValueError:
        return 60.0


_copilot_client: CopilotClient | None = None


def get_copilot_client(config: CopilotConfig | None = None) -> CopilotClient:
    """Get or create Copilot client instance."""
    global _copilot_client
    if _copilot_client is None:
        _copilot_client = CopilotClient(config)
    return _copilot_client
