"""
Error types for ZhipuAI client operations.

Everything a call can fail with derives from LLMError:
- Credential parsing and signing failures
- Request serialization failures
- Transport and cancellation failures
- HTTP status errors, structured or raw-status fallback
- Stream decoding and termination failures

EndOfStream is not an LLMError: it marks the normal end of a stream so
read loops can stop on it without swallowing real failures.
"""

from __future__ import annotations

from typing import Any


class LLMError(Exception):
    """Base LLM error with rich context."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_data: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data or {}


class ConfigurationError(LLMError, ValueError):
    """Missing or invalid client configuration."""
    pass


class InvalidCredentialFormatError(LLMError, ValueError):
    """API key is not of the form ``{id}.{secret}``."""
    pass


class SigningError(LLMError):
    """The token signer rejected the secret or claims."""
    pass


class SerializationError(LLMError):
    """Request body could not be encoded."""
    pass


class ResponseDecodeError(LLMError):
    """A successful response body could not be decoded into its target."""
    pass


class TransportError(LLMError):
    """Network-level failure while sending or reading."""
    pass


class RequestCancelledError(LLMError):
    """The call was aborted by its deadline before it completed."""
    pass


class StreamingNotSupportedError(LLMError):
    """Incremental requests must go through the streaming call."""
    pass


class HTTPStatusError(LLMError):
    """Response status outside [200, 400)."""

    def __init__(self, message: str, status_code: int, **kwargs: Any):
        super().__init__(message, status_code=status_code, **kwargs)


class APIError(HTTPStatusError):
    """Structured error decoded from an ``{"error": {...}}`` envelope."""

    def __init__(
        self,
        message: str,
        status_code: int,
        code: str | int | None = None,
        error_type: str | None = None,
        param: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, status_code, **kwargs)
        self.code = code
        self.type = error_type
        self.param = param

    def __str__(self) -> str:
        if self.code is not None:
            return f"error, status code: {self.status_code}, code: {self.code}, message: {self.args[0]}"
        return f"error, status code: {self.status_code}, message: {self.args[0]}"


class RequestError(HTTPStatusError):
    """Raw-status fallback when the error body is not a structured envelope."""

    def __init__(
        self,
        status_code: int,
        cause: BaseException | None = None,
        **kwargs: Any,
    ):
        message = f"error, status code: {status_code}"
        if cause is not None:
            message = f"{message}, message: {cause}"
        super().__init__(message, status_code, **kwargs)
        self.cause = cause


class StreamingError(LLMError):
    """Streaming-specific errors."""
    pass


class StreamDecodeError(StreamingError):
    """A data frame carried a payload that is not a valid chunk."""

    def __init__(self, message: str, raw_data: str = "", **kwargs: Any):
        super().__init__(message, **kwargs)
        self.raw_data = raw_data


class StreamTerminatedError(StreamingError):
    """The connection closed before the terminator frame arrived."""
    pass


class TooManyEmptyStreamMessagesError(StreamingError):
    """Too many non-data lines arrived between two data frames."""
    pass


class EndOfStream(Exception):
    """The terminator frame was received; the stream ended normally."""
    pass
