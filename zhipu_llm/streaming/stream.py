"""
Pull-based decoder over an open SSE chat completion response.
"""

from __future__ import annotations

import asyncio

import httpx
from pydantic import ValidationError

from ..config import DEFAULT_EMPTY_MESSAGES_LIMIT
from ..errors import ErrorAccumulator, ErrorResponseDecoder
from ..exceptions import (
    APIError,
    EndOfStream,
    LLMError,
    RequestCancelledError,
    StreamDecodeError,
    StreamingError,
    StreamTerminatedError,
    TooManyEmptyStreamMessagesError,
    TransportError,
)
from ..logging_utils import ContextualLogger
from ..models import ChatCompletionStreamResponse
from .models import RawSSELine, SSEEventType, StreamState
from .parser import parse_sse_line


class ChatCompletionStream:
    """
    Reads chat completion chunks from an open SSE response, one per call.

    The stream owns ``response`` and must be closed by its owner, either with
    ``close()`` or by using it as an async context manager. ``recv()`` reads
    only as far as the next data frame, so a slow consumer simply delays the
    next network read. A stream has a single owner: concurrent ``recv()``
    calls are not supported.

    Usage:
        async with await client.create_chat_completion_stream(request) as stream:
            async for chunk in stream:
                ...
    """

    def __init__(
        self,
        response: httpx.Response,
        *,
        empty_messages_limit: int = DEFAULT_EMPTY_MESSAGES_LIMIT,
        error_decoder: ErrorResponseDecoder | None = None,
        log: ContextualLogger | None = None,
    ) -> None:
        self._response = response
        self._lines = response.aiter_lines()
        self._empty_messages_limit = empty_messages_limit
        self._error_decoder = error_decoder or ErrorResponseDecoder()
        self._accumulator = ErrorAccumulator()
        self._log = log or ContextualLogger({"component": "chat_stream"})
        self._state = StreamState.OPEN
        self._released = False
        self._completed = False
        self._chunks_received = 0

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def chunks_received(self) -> int:
        return self._chunks_received

    @property
    def response(self) -> httpx.Response:
        return self._response

    async def recv(self, timeout: float | None = None) -> ChatCompletionStreamResponse:
        """
        Wait for the next chunk.

        Args:
            timeout: Optional deadline in seconds for this read

        Returns:
            The next chunk, in arrival order

        Raises:
            EndOfStream: The terminator frame was received (also on every
                later call)
            StreamDecodeError: A data frame held malformed JSON
            StreamTerminatedError: The connection closed without a terminator
            APIError: The provider injected an error envelope into the stream
            TransportError: The underlying read failed
            RequestCancelledError: The deadline expired during the read
            StreamingError: The stream already failed or was closed before
                its terminator frame
        """
        if self._state is StreamState.CLOSED:
            if not self._completed:
                raise StreamingError("Stream was closed before the terminator frame")
            raise EndOfStream
        if self._state is StreamState.FAILED:
            raise StreamingError("Stream has failed and cannot be read again")

        try:
            async with asyncio.timeout(timeout):
                chunk = await self._read_chunk()
        except EndOfStream:
            self._completed = True
            self._state = StreamState.CLOSED
            self._log.debug("Stream finished", chunks=self._chunks_received)
            raise
        except (TimeoutError, httpx.TimeoutException) as e:
            self._fail(e)
            raise RequestCancelledError("Stream read deadline exceeded") from e
        except (LLMError, asyncio.CancelledError) as e:
            self._fail(e)
            raise

        self._state = StreamState.RECEIVING
        self._chunks_received += 1
        return chunk

    async def close(self) -> None:
        """Release the connection; safe to call more than once."""
        if self._released:
            return
        self._released = True
        if not self._state.is_terminal:
            self._state = StreamState.CLOSED

        try:
            await self._lines.aclose()
        finally:
            await self._response.aclose()

    async def __aenter__(self) -> ChatCompletionStream:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __aiter__(self) -> ChatCompletionStream:
        return self

    async def __anext__(self) -> ChatCompletionStreamResponse:
        try:
            return await self.recv()
        except EndOfStream:
            raise StopAsyncIteration from None

    async def _read_chunk(self) -> ChatCompletionStreamResponse:
        empty_messages = 0
        while True:
            event = parse_sse_line(await self._read_line())
            if event is None:
                continue

            if event.event_type is SSEEventType.CHUNK:
                # Error envelopes are recognised by content, not key layout
                error = self._error_decoder.try_decode(
                    self._response.status_code, event.data.encode("utf-8")
                )
                if error is not None:
                    raise error
                chunk = self._decode_chunk(event)
                self._accumulator.reset()
                return chunk
            if event.event_type is SSEEventType.COMPLETION:
                raise EndOfStream

            if event.event_type is SSEEventType.ERROR:
                self._accumulator.write(event.data)
                error = self._error_decoder.try_decode(
                    self._response.status_code, event.data.encode("utf-8")
                )
                if error is not None:
                    raise error
            elif event.event_type is SSEEventType.UNKNOWN:
                self._accumulator.write(event.data)

            empty_messages += 1
            if empty_messages > self._empty_messages_limit:
                raise TooManyEmptyStreamMessagesError(
                    f"Stream has sent too many empty messages "
                    f"(limit {self._empty_messages_limit})",
                    status_code=self._response.status_code,
                )

    async def _read_line(self) -> str:
        try:
            return await anext(self._lines)
        except StopAsyncIteration:
            raise self._terminated_error() from None
        except httpx.TimeoutException:
            raise
        except (httpx.HTTPError, httpx.StreamError) as e:
            error = self._accumulated_error()
            if error is not None:
                raise error from e
            raise TransportError(f"Stream read failed: {e}") from e

    def _decode_chunk(self, event: RawSSELine) -> ChatCompletionStreamResponse:
        try:
            return ChatCompletionStreamResponse.model_validate_json(event.data)
        except ValidationError as e:
            raise StreamDecodeError(
                f"Malformed stream chunk: {e}", raw_data=event.data
            ) from e

    def _accumulated_error(self) -> APIError | None:
        if self._accumulator.is_empty:
            return None
        return self._error_decoder.try_decode(
            self._response.status_code, self._accumulator.getvalue()
        )

    def _terminated_error(self) -> LLMError:
        error = self._accumulated_error()
        if error is not None:
            return error
        return StreamTerminatedError(
            "Stream closed before the terminator frame",
            status_code=self._response.status_code,
        )

    def _fail(self, error: BaseException) -> None:
        self._state = StreamState.FAILED
        self._log.error(
            "Stream failed",
            error_type=type(error).__name__,
            error_message=str(error),
            chunks=self._chunks_received,
        )
