"""
Async client for the ZhipuAI chat completion API.

This package provides:
- Signed, time-bounded tokens minted from ``{id}.{secret}`` API keys
- Non-streaming chat completions
- Pull-based SSE streaming of completion deltas
- Structured error decoding with raw-status fallback
"""

from __future__ import annotations

from .auth import generate_token, split_api_key
from .client import ZhipuClient
from .config import ClientConfig, Configuration, default_config
from .exceptions import (
    APIError,
    ConfigurationError,
    EndOfStream,
    HTTPStatusError,
    InvalidCredentialFormatError,
    LLMError,
    RequestCancelledError,
    RequestError,
    ResponseDecodeError,
    SerializationError,
    SigningError,
    StreamDecodeError,
    StreamingError,
    StreamingNotSupportedError,
    StreamTerminatedError,
    TooManyEmptyStreamMessagesError,
    TransportError,
)
from .models import (
    CHATGLM_LITE,
    CHATGLM_PRO,
    CHATGLM_STD,
    CHATGLM_TURBO,
    ChatCompletionMessage,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatCompletionStreamResponse,
    MessageRole,
    Usage,
)
from .request_builder import RawText, RequestBuilder, StructuredJSON
from .streaming import ChatCompletionStream, DeltaAccumulator, StreamState

__all__ = [
    # Model names
    "CHATGLM_LITE",
    "CHATGLM_PRO",
    "CHATGLM_STD",
    "CHATGLM_TURBO",
    # Exceptions
    "APIError",
    "ChatCompletionMessage",
    "ChatCompletionRequest",
    "ChatCompletionResponse",
    # Streaming
    "ChatCompletionStream",
    "ChatCompletionStreamResponse",
    "ClientConfig",
    "Configuration",
    "ConfigurationError",
    "DeltaAccumulator",
    "EndOfStream",
    "HTTPStatusError",
    "InvalidCredentialFormatError",
    "LLMError",
    "MessageRole",
    "RawText",
    "RequestBuilder",
    "RequestCancelledError",
    "RequestError",
    "ResponseDecodeError",
    "SerializationError",
    "SigningError",
    "StreamDecodeError",
    "StreamState",
    "StreamTerminatedError",
    "StreamingError",
    "StreamingNotSupportedError",
    "StructuredJSON",
    "TooManyEmptyStreamMessagesError",
    "TransportError",
    "Usage",
    # Client
    "ZhipuClient",
    "default_config",
    "generate_token",
    "split_api_key",
]
