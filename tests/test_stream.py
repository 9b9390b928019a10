"""Tests for SSE decoding and tool-call fragment accumulation."""

import asyncio
import itertools
import json

import pytest

from vaultpilot.clients.stream import (
    ContentDelta,
    SSEDecoder,
    StreamDone,
    ToolCallAccumulator,
    ToolCallFragment,
    collect_completion,
    decode_sse_lines,
)
from vaultpilot.exceptions import CompletionError, RequestAbortedError


def sse(chunk: dict) -> str:
    return f"data: {json.dumps(chunk)}"


async def aiter(items):
    for item in items:
        yield item


class TestToolCallAccumulator:
    """Tests for merging tool-call fragments."""

    def test_arguments_concatenate_in_arrival_order(self):
        """Test argument text is joined in the order fragments arrive."""
        acc = ToolCallAccumulator()
        acc.add(ToolCallFragment(index=0, id="call_1", name="vault_read_file", arguments='{"pa'))
        acc.add(ToolCallFragment(index=0, arguments='th": "a.md"}'))

        [call] = acc.finalize()
        assert call.id == "call_1"
        assert call.name == "vault_read_file"
        assert call.arguments == '{"path": "a.md"}'

    def test_finalize_sorts_by_index(self):
        """Test calls are returned by index even when they arrive out of order."""
        acc = ToolCallAccumulator()
        acc.add(ToolCallFragment(index=2, id="c", name="vault_search"))
        acc.add(ToolCallFragment(index=0, id="a", name="vault_list_files"))
        acc.add(ToolCallFragment(index=1, id="b", name="vault_read_file"))

        assert [call.id for call in acc.finalize()] == ["a", "b", "c"]
        assert len(acc) == 3

    def test_empty_values_do_not_overwrite(self):
        """Test that later empty id or name fragments keep earlier values."""
        acc = ToolCallAccumulator()
        acc.add(ToolCallFragment(index=0, id="call_1", name="vault_search"))
        acc.add(ToolCallFragment(index=0, id="", name="", arguments="{}"))

        [call] = acc.finalize()
        assert call.id == "call_1"
        assert call.name == "vault_search"

    def test_id_and_name_merge_is_order_independent(self):
        """Test singly supplied id and name produce the same call in any order."""
        fragments = [
            ToolCallFragment(index=0, id="call_1"),
            ToolCallFragment(index=0, name="vault_list_files"),
            ToolCallFragment(index=0, arguments=""),
        ]
        results = set()
        for ordering in itertools.permutations(fragments):
            acc = ToolCallAccumulator()
            for fragment in ordering:
                acc.add(fragment)
            [call] = acc.finalize()
            results.add((call.id, call.name, call.arguments))

        assert results == {("call_1", "vault_list_files", "")}


class TestSSEDecoder:
    """Tests for decoding individual SSE lines."""

    def test_ignores_non_data_and_done_lines(self):
        """Test blank lines, comments and the DONE sentinel yield nothing."""
        decoder = SSEDecoder()
        assert decoder.feed("") == []
        assert decoder.feed(": keep-alive") == []
        assert decoder.feed("event: ping") == []
        assert decoder.feed("data: [DONE]") == []
        assert decoder.chunks_seen == 0

    def test_skips_malformed_json(self):
        """Test a malformed chunk is skipped without raising."""
        decoder = SSEDecoder()
        assert decoder.feed("data: {not json") == []
        assert decoder.chunks_seen == 0

    def test_skips_malformed_tool_call_entries(self):
        """Test tool-call entries of the wrong shape are dropped, keeping the valid ones."""
        decoder = SSEDecoder()

        assert decoder.feed(sse({"choices": [{"delta": {"tool_calls": {"index": 0}}}]})) == []
        events = decoder.feed(
            sse(
                {
                    "choices": [
                        {
                            "delta": {
                                "tool_calls": [
                                    "oops",
                                    None,
                                    {"index": 1, "id": "call_2", "function": "bad"},
                                    {"index": 0, "function": {"arguments": "{}"}},
                                ]
                            }
                        }
                    ]
                }
            )
        )

        assert events == [
            ToolCallFragment(index=1, id="call_2", name=None, arguments=None),
            ToolCallFragment(index=0, id=None, name=None, arguments="{}"),
        ]

    def test_content_and_tool_call_fragments(self):
        """Test content and tool-call deltas become events."""
        decoder = SSEDecoder()
        events = decoder.feed(
            sse(
                {
                    "choices": [
                        {
                            "delta": {
                                "content": "Hi",
                                "tool_calls": [{"id": "call_1", "function": {"name": "vault_search", "arguments": "{"}}],
                            }
                        }
                    ]
                }
            )
        )

        assert events == [
            ContentDelta(text="Hi"),
            ToolCallFragment(index=0, id="call_1", name="vault_search", arguments="{"),
        ]

    def test_last_finish_reason_wins(self):
        """Test the most recent non-empty finish reason is kept."""
        decoder = SSEDecoder()
        decoder.feed(sse({"choices": [{"delta": {}, "finish_reason": "tool_calls"}]}))
        decoder.feed(sse({"choices": [{"delta": {}, "finish_reason": None}]}))
        assert decoder.finish_reason == "tool_calls"


class TestDecodeAndCollect:
    """Tests for the full stream pipeline."""

    @pytest.mark.asyncio
    async def test_collects_split_tool_calls(self):
        """Test a realistic stream with two interleaved tool calls."""
        lines = [
            sse({"choices": [{"delta": {"content": "Let me "}}]}),
            sse({"choices": [{"delta": {"content": "look."}}]}),
            sse({"choices": [{"delta": {"tool_calls": [{"index": 1, "id": "call_b", "function": {"name": "vault_read_file"}}]}}]}),
            sse({"choices": [{"delta": {"tool_calls": [{"index": 0, "id": "call_a", "function": {"name": "vault_list_files"}}]}}]}),
            sse({"choices": [{"delta": {"tool_calls": [{"index": 1, "function": {"arguments": '{"path": '}}]}}]}),
            sse({"choices": [{"delta": {"tool_calls": [{"index": 1, "function": {"arguments": '"a.md"}'}}]}}]}),
            sse({"choices": [{"delta": {}, "finish_reason": "tool_calls"}]}),
            "data: [DONE]",
        ]
        deltas = []

        result = await collect_completion(decode_sse_lines(aiter(lines)), on_content=deltas.append)

        assert result.content == "Let me look."
        assert deltas == ["Let me ", "look."]
        assert result.finish_reason == "tool_calls"
        assert [(c.id, c.name, c.arguments) for c in result.tool_calls] == [
            ("call_a", "vault_list_files", ""),
            ("call_b", "vault_read_file", '{"path": "a.md"}'),
        ]
        assert result.wants_more

    @pytest.mark.asyncio
    async def test_default_finish_reason_is_stop(self):
        """Test a stream without a finish reason reports stop."""
        result = await collect_completion(decode_sse_lines(aiter([sse({"choices": [{"delta": {"content": "Hi"}}]})])))
        assert result.finish_reason == "stop"
        assert result.tool_calls == []

    @pytest.mark.asyncio
    async def test_stream_without_chunks_is_malformed(self):
        """Test that a stream with no parseable chunk raises CompletionError."""
        with pytest.raises(CompletionError):
            await collect_completion(decode_sse_lines(aiter(["data: oops", "data: [DONE]"])))

    @pytest.mark.asyncio
    async def test_stream_without_done_event_raises(self):
        """Test that consuming events with no StreamDone raises CompletionError."""
        with pytest.raises(CompletionError):
            await collect_completion(aiter([ContentDelta(text="partial")]))

    @pytest.mark.asyncio
    async def test_cancellation_between_events(self):
        """Test that cancellation observed mid-stream raises RequestAbortedError."""
        cancel_event = asyncio.Event()

        def on_content(text):
            cancel_event.set()

        events = aiter([ContentDelta(text="a"), ContentDelta(text="b"), StreamDone(finish_reason="stop")])
        with pytest.raises(RequestAbortedError):
            await collect_completion(events, on_content=on_content, cancel_event=cancel_event)
