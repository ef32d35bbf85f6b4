"""
Failure body handling: raw byte accumulation and error envelope decoding.
"""

from __future__ import annotations

import httpx
from pydantic import ValidationError

from .exceptions import APIError, HTTPStatusError, RequestError
from .models import ErrorResponse


class ErrorAccumulator:
    """Buffers raw bytes seen on a failing stream for best-effort decoding."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def write(self, data: bytes | str) -> None:
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._buffer.extend(data)

    def reset(self) -> None:
        """Discard buffered bytes once a valid frame proves them unrelated."""
        self._buffer.clear()

    def getvalue(self) -> bytes:
        return bytes(self._buffer)

    @property
    def is_empty(self) -> bool:
        return not self._buffer


class ErrorResponseDecoder:
    """Turns a failure body into an APIError or a raw-status RequestError."""

    def decode(self, status_code: int, body: bytes) -> HTTPStatusError:
        """
        Decode an error body.

        The structured error always carries ``status_code``, the real HTTP
        status; the envelope's own ``code`` is kept separately.
        """
        try:
            envelope = ErrorResponse.model_validate_json(body)
        except ValidationError as e:
            return RequestError(status_code, cause=e)

        if envelope.error is None:
            return RequestError(status_code)

        detail = envelope.error
        return APIError(
            detail.message,
            status_code,
            code=detail.code,
            error_type=detail.type,
            param=detail.param,
            response_data=detail.model_dump(exclude_none=True),
        )

    def try_decode(self, status_code: int, body: bytes) -> APIError | None:
        """Return the structured error if ``body`` holds one, else None."""
        error = self.decode(status_code, body)
        return error if isinstance(error, APIError) else None

    async def decode_response(self, response: httpx.Response) -> HTTPStatusError:
        """Read the (possibly streamed) body once and decode it."""
        body = await response.aread()
        return self.decode(response.status_code, body)
