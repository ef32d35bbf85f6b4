#!/usr/bin/env python3
"""
Tests for SSE line parsing, the chunk stream state machine and delta
accumulation.
"""

import asyncio
import json

import httpx
import pytest

from zhipu_llm.exceptions import (
    APIError,
    EndOfStream,
    RequestCancelledError,
    StreamDecodeError,
    StreamingError,
    StreamTerminatedError,
    TooManyEmptyStreamMessagesError,
    TransportError,
)
from zhipu_llm.models import ChatCompletionStreamResponse, MessageRole
from zhipu_llm.streaming import (
    ChatCompletionStream,
    DeltaAccumulator,
    SSEEventType,
    StreamState,
    parse_sse_line,
)


def chunk_json(content=None, *, role=None, finish_reason=None, chunk_id="chatcmpl-1"):
    delta = {}
    if role is not None:
        delta["role"] = role
    if content is not None:
        delta["content"] = content
    choice = {"index": 0, "delta": delta}
    if finish_reason is not None:
        choice["finish_reason"] = finish_reason
    return json.dumps({"id": chunk_id, "model": "chatglm_turbo", "choices": [choice]})


def sse_body(*payloads, done=True) -> bytes:
    frames = [f"data: {payload}\n\n" for payload in payloads]
    if done:
        frames.append("data: [DONE]\n\n")
    return "".join(frames).encode()


def make_stream(content, status_code=200, **kwargs) -> ChatCompletionStream:
    response = httpx.Response(
        status_code,
        headers={"content-type": "text/event-stream"},
        content=content,
    )
    return ChatCompletionStream(response, **kwargs)


async def collect(stream: ChatCompletionStream) -> list[ChatCompletionStreamResponse]:
    chunks = []
    while True:
        try:
            chunks.append(await stream.recv())
        except EndOfStream:
            return chunks


class TestParseSSELine:
    """Test classification of single SSE lines."""

    @pytest.mark.parametrize("line", ["", "   ", "\r"])
    def test_blank_lines_separate_events(self, line):
        """Test blank lines produce no event."""
        assert parse_sse_line(line) is None

    @pytest.mark.parametrize(
        "line,event_type,data",
        [
            ('data: {"id": "1"}', SSEEventType.CHUNK, '{"id": "1"}'),
            ('data:{"id": "1"}', SSEEventType.CHUNK, '{"id": "1"}'),
            ("data: [DONE]", SSEEventType.COMPLETION, "[DONE]"),
            ('data: {"error": {"message": "x"}}', SSEEventType.ERROR,
             '{"error": {"message": "x"}}'),
            ("data:", SSEEventType.HEARTBEAT, ""),
            ("event: add", SSEEventType.FIELD, "event: add"),
            ("id: 42", SSEEventType.FIELD, "id: 42"),
            (": keep-alive", SSEEventType.FIELD, ": keep-alive"),
            ('{"error": {', SSEEventType.UNKNOWN, '{"error": {'),
        ],
    )
    def test_line_classification(self, line, event_type, data):
        """Test each kind of line is classified with its payload."""
        event = parse_sse_line(line)

        assert event.event_type is event_type
        assert event.data == data
        assert event.raw_line == line


class TestChatCompletionStream:
    """Test ChatCompletionStream.recv and its state transitions."""

    @pytest.mark.asyncio
    async def test_yields_n_chunks_then_end_of_stream(self):
        """Test N frames plus terminator give N chunks then EndOfStream."""
        stream = make_stream(sse_body(*(chunk_json(str(i)) for i in range(5))))
        assert stream.state is StreamState.OPEN

        for i in range(5):
            chunk = await stream.recv()
            assert chunk.choices[0].delta.content == str(i)
            assert stream.state is StreamState.RECEIVING

        with pytest.raises(EndOfStream):
            await stream.recv()
        assert stream.state is StreamState.CLOSED
        assert stream.chunks_received == 5

        with pytest.raises(EndOfStream):
            await stream.recv()
        await stream.close()

    @pytest.mark.asyncio
    async def test_empty_stream_with_terminator_ends_immediately(self):
        """Test a stream holding only the terminator yields nothing."""
        stream = make_stream(sse_body())

        with pytest.raises(EndOfStream):
            await stream.recv()
        assert stream.state is StreamState.CLOSED

    @pytest.mark.asyncio
    async def test_close_without_terminator_is_abnormal(self):
        """Test K frames then EOF give K chunks then StreamTerminatedError."""
        stream = make_stream(sse_body(chunk_json("a"), chunk_json("b"), done=False))

        assert (await stream.recv()).choices[0].delta.content == "a"
        assert (await stream.recv()).choices[0].delta.content == "b"
        with pytest.raises(StreamTerminatedError):
            await stream.recv()
        assert stream.state is StreamState.FAILED

    @pytest.mark.asyncio
    async def test_failed_stream_refuses_further_reads(self):
        """Test recv after a failure raises instead of reporting end."""
        stream = make_stream(b"")

        with pytest.raises(StreamTerminatedError):
            await stream.recv()
        with pytest.raises(StreamingError, match="cannot be read again"):
            await stream.recv()

    @pytest.mark.asyncio
    async def test_invalid_json_frame_raises_at_its_position(self):
        """Test a malformed frame fails after earlier chunks are delivered."""
        stream = make_stream(sse_body(chunk_json("ok"), "{not json", chunk_json("late")))

        assert (await stream.recv()).choices[0].delta.content == "ok"
        with pytest.raises(StreamDecodeError) as exc_info:
            await stream.recv()
        assert exc_info.value.raw_data == "{not json"
        assert stream.state is StreamState.FAILED

    @pytest.mark.asyncio
    async def test_sse_fields_comments_and_heartbeats_are_skipped(self):
        """Test non-data framing between frames does not produce chunks."""
        body = (
            ": connected\n\n"
            "event: add\n"
            "id: 1\n"
            f"data: {chunk_json('He')}\n\n"
            "data:\n\n"
            "retry: 3000\n"
            f"data: {chunk_json('llo')}\n\n"
            "data: [DONE]\n\n"
        ).encode()

        chunks = await collect(make_stream(body))

        assert [c.choices[0].delta.content for c in chunks] == ["He", "llo"]

    @pytest.mark.asyncio
    async def test_injected_error_frame_raises_structured_error(self):
        """Test a late error envelope in the stream surfaces as APIError."""
        body = sse_body(
            chunk_json("partial"),
            json.dumps({"error": {"code": "1301", "message": "unsafe content"}}),
            done=False,
        )
        stream = make_stream(body)

        await stream.recv()
        with pytest.raises(APIError) as exc_info:
            await stream.recv()
        assert exc_info.value.status_code == 200
        assert exc_info.value.code == "1301"
        assert exc_info.value.args[0] == "unsafe content"
        assert stream.state is StreamState.FAILED

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            '{ "error": {"code": "1301", "message": "unsafe content"} }',
            '{"id": "chatcmpl-1", "error": {"code": "1301", "message": "unsafe content"}}',
        ],
    )
    async def test_error_frame_detected_regardless_of_key_layout(self, payload):
        """Test spaced or reordered error envelopes are never returned as chunks."""
        stream = make_stream(sse_body(payload))

        with pytest.raises(APIError) as exc_info:
            await stream.recv()
        assert exc_info.value.code == "1301"
        assert exc_info.value.args[0] == "unsafe content"
        assert stream.state is StreamState.FAILED

    @pytest.mark.asyncio
    async def test_stray_line_before_chunk_does_not_mask_later_error(self):
        """Test bytes buffered before a valid chunk are dropped once it arrives."""
        body = (
            f"stray\ndata: {chunk_json('partial')}\n\n"
            '{"error": {"code": "500", "message": "upstream"}}\n'
        ).encode()
        stream = make_stream(body)

        assert (await stream.recv()).choices[0].delta.content == "partial"
        with pytest.raises(APIError) as exc_info:
            await stream.recv()
        assert exc_info.value.args[0] == "upstream"

    @pytest.mark.asyncio
    async def test_accumulated_raw_error_decoded_at_eof(self):
        """Test unframed error JSON spread over lines is decoded at EOF."""
        body = b'{"error": {\n"code": "500",\n"message": "upstream failed"}}\n'
        stream = make_stream(body)

        with pytest.raises(APIError) as exc_info:
            await stream.recv()
        assert exc_info.value.args[0] == "upstream failed"

    @pytest.mark.asyncio
    async def test_unstructured_garbage_then_eof_is_abnormal_termination(self):
        """Test garbage that is not an error envelope still ends abnormally."""
        stream = make_stream(b"<html>\nproxy error\n</html>\n")

        with pytest.raises(StreamTerminatedError):
            await stream.recv()

    @pytest.mark.asyncio
    async def test_too_many_empty_messages(self):
        """Test exceeding the empty message limit fails the stream."""
        body = b": ping\n: ping\n: ping\n" + sse_body(chunk_json("never"))
        stream = make_stream(body, empty_messages_limit=2)

        with pytest.raises(TooManyEmptyStreamMessagesError):
            await stream.recv()
        assert stream.state is StreamState.FAILED

    @pytest.mark.asyncio
    async def test_empty_message_count_resets_per_chunk(self):
        """Test the limit applies between two data frames, not in total."""
        body = (
            f": ping\n: ping\ndata: {chunk_json('a')}\n\n"
            f": ping\n: ping\ndata: {chunk_json('b')}\n\n"
            "data: [DONE]\n\n"
        ).encode()

        chunks = await collect(make_stream(body, empty_messages_limit=2))

        assert len(chunks) == 2

    @pytest.mark.asyncio
    async def test_read_failure_raises_transport_error(self):
        """Test a broken connection after a chunk raises TransportError."""
        async def body():
            yield f"data: {chunk_json('first')}\n\n".encode()
            raise httpx.ReadError("connection reset by peer")

        stream = make_stream(body())

        assert (await stream.recv()).choices[0].delta.content == "first"
        with pytest.raises(TransportError, match="connection reset"):
            await stream.recv()
        assert stream.state is StreamState.FAILED
        await stream.close()

    @pytest.mark.asyncio
    async def test_read_deadline_raises_cancelled(self):
        """Test a recv deadline aborts the blocked read."""
        async def body():
            yield f"data: {chunk_json('first')}\n\n".encode()
            await asyncio.sleep(3600)
            yield b"data: [DONE]\n\n"

        stream = make_stream(body())

        await stream.recv(timeout=1.0)
        with pytest.raises(RequestCancelledError):
            await stream.recv(timeout=0.05)
        assert stream.state is StreamState.FAILED
        await stream.close()

    @pytest.mark.asyncio
    async def test_task_cancellation_propagates(self):
        """Test cancelling the reading task aborts recv and fails the stream."""
        started = asyncio.Event()

        async def body():
            started.set()
            await asyncio.sleep(3600)
            yield b""

        stream = make_stream(body())
        task = asyncio.create_task(stream.recv())
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert stream.state is StreamState.FAILED
        await stream.close()

    @pytest.mark.asyncio
    async def test_close_is_idempotent_and_releases_response(self):
        """Test close can be repeated and closes the response."""
        stream = make_stream(sse_body(chunk_json("unread")))

        await stream.close()
        await stream.close()

        assert stream.response.is_closed
        assert stream.state is StreamState.CLOSED

    @pytest.mark.asyncio
    async def test_recv_after_early_close_is_not_a_normal_end(self):
        """Test an abandoned stream does not report EndOfStream."""
        stream = make_stream(sse_body(chunk_json("first"), chunk_json("unread")))
        await stream.recv()

        await stream.close()

        with pytest.raises(StreamingError, match="closed before the terminator"):
            await stream.recv()

    @pytest.mark.asyncio
    async def test_recv_after_normal_end_and_close_keeps_end_of_stream(self):
        """Test closing a finished stream keeps reporting EndOfStream."""
        stream = make_stream(sse_body(chunk_json("only")))
        await collect(stream)

        await stream.close()

        with pytest.raises(EndOfStream):
            await stream.recv()

    @pytest.mark.asyncio
    async def test_close_keeps_failed_state(self):
        """Test closing a failed stream does not turn it into a normal end."""
        stream = make_stream(b"")
        with pytest.raises(StreamTerminatedError):
            await stream.recv()

        await stream.close()

        assert stream.state is StreamState.FAILED

    @pytest.mark.asyncio
    async def test_async_iteration_and_context_manager(self):
        """Test async for stops on the terminator and async with closes."""
        stream = make_stream(sse_body(chunk_json("x"), chunk_json("y")))

        async with stream:
            contents = [chunk.choices[0].delta.content async for chunk in stream]

        assert contents == ["x", "y"]
        assert stream.response.is_closed

    @pytest.mark.asyncio
    async def test_async_iteration_raises_failures(self):
        """Test async for does not hide abnormal termination."""
        stream = make_stream(sse_body(chunk_json("x"), done=False))

        with pytest.raises(StreamTerminatedError):
            async with stream:
                async for _ in stream:
                    pass
        assert stream.response.is_closed


class TestDeltaAccumulator:
    """Test folding deltas into a full message."""

    def test_accumulates_content_role_and_finish_reason(self):
        """Test content is concatenated and metadata captured."""
        accumulator = DeltaAccumulator()
        chunks = [
            ChatCompletionStreamResponse.model_validate_json(payload)
            for payload in (
                chunk_json("He", role="assistant"),
                chunk_json("llo"),
                chunk_json(None, finish_reason="stop", chunk_id="chatcmpl-9"),
            )
        ]

        fragments = [accumulator.add(chunk) for chunk in chunks]

        assert fragments == ["He", "llo", None]
        assert accumulator.content == "Hello"
        assert accumulator.finish_reason == "stop"
        assert accumulator.message.role is MessageRole.ASSISTANT
        assert accumulator.message.content == "Hello"
        assert accumulator.state.completion_id == "chatcmpl-9"
        assert accumulator.state.chunk_count == 3

    def test_ignores_alternative_choices(self):
        """Test only the first choice is merged."""
        accumulator = DeltaAccumulator()
        chunk = ChatCompletionStreamResponse.model_validate({
            "choices": [
                {"index": 0, "delta": {"content": "kept"}},
                {"index": 1, "delta": {"content": "dropped"}},
            ]
        })

        accumulator.add(chunk)

        assert accumulator.content == "kept"

    def test_reset_clears_state(self):
        """Test reset starts a fresh message."""
        accumulator = DeltaAccumulator()
        accumulator.add(ChatCompletionStreamResponse.model_validate_json(chunk_json("x")))

        accumulator.reset()

        assert accumulator.content == ""
        assert accumulator.finish_reason is None
